"""
Source file loading for the wilayah mapping application.

This module provides the SourceLoader class for reading boundary source
files (GeoJSON) and reporting the quality of their property bags before
ingestion.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from .exceptions import DataLoadError, FileAccessError
from .hierarchy.code_deriver import derive
from .hierarchy.hierarchy_config import STANDARD_HIERARCHY
from .utils.data_utils import (
    detect_duplicates, feature_properties, get_data_quality_summary, properties_frame
)
from .utils.error_handler import RetryConfig, safe_file_operation


class SourceLoader:
    """
    Loads GeoJSON boundary files into feature lists.
    """

    def __init__(self, logger: Optional[logging.Logger] = None,
                 retry_config: Optional[RetryConfig] = None):
        """
        Initialize the SourceLoader.

        Args:
            logger: Optional logger instance for logging operations
            retry_config: Optional retry configuration for file reads
        """
        self.logger = logger or logging.getLogger(__name__)
        self.retry_config = retry_config or RetryConfig(max_attempts=3, base_delay=1.0)

    def load_features(self, file_path: Union[str, Path],
                      level: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Load features from a GeoJSON FeatureCollection or single Feature.

        Args:
            file_path: Path to the GeoJSON file
            level: Declared level; when given a quality summary is logged

        Returns:
            List of GeoJSON feature dictionaries

        Raises:
            FileAccessError: If the file is missing or cannot be read
            DataLoadError: If the content is not valid GeoJSON
        """
        path = Path(file_path)
        self.logger.info(f"Loading features from: {path}")

        if not path.exists():
            raise FileAccessError(
                f"Source file not found: {path}",
                file_path=str(path),
                operation="read"
            )

        if not path.is_file():
            raise FileAccessError(
                f"Path is not a file: {path}",
                file_path=str(path),
                operation="read"
            )

        def read_json():
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)

        try:
            document = safe_file_operation(
                operation=read_json,
                file_path=path,
                operation_name="read GeoJSON",
                retry_config=self.retry_config,
                logger=self.logger
            )
        except ValueError as e:
            raise DataLoadError(
                f"Invalid JSON in source file: {path}",
                file_path=str(path),
                original_error=e
            ) from e

        features = self._extract_features(document, path)
        self.logger.info(f"Loaded {len(features)} features from {path.name}")

        if level is not None:
            self.log_quality_summary(features, level)

        return features

    def _extract_features(self, document: Any, path: Path) -> List[Dict[str, Any]]:
        if not isinstance(document, dict):
            raise DataLoadError(
                f"Source file is not a GeoJSON object: {path}",
                file_path=str(path)
            )

        doc_type = document.get('type')
        if doc_type == 'FeatureCollection':
            features = document.get('features')
            if not isinstance(features, list):
                raise DataLoadError(
                    f"FeatureCollection has no feature list: {path}",
                    file_path=str(path)
                )
            return features

        if doc_type == 'Feature':
            return [document]

        raise DataLoadError(
            f"Unsupported GeoJSON type {doc_type!r} in {path}",
            file_path=str(path)
        )

    def quality_summary(self, features: List[Dict[str, Any]], level: int) -> Dict[str, Any]:
        """
        Summarize property quality of a batch for its declared level.

        Args:
            features: GeoJSON feature dictionaries
            level: Declared hierarchy level

        Returns:
            Dictionary with missing/blank code counts and duplicate identifiers
        """
        required = [
            STANDARD_HIERARCHY.get_level(number).code_key for number in range(1, level + 1)
        ]
        summary = get_data_quality_summary(properties_frame(features), required)

        identifiers = pd.DataFrame({
            'identifier': [
                derive(feature_properties(feature), level).identifier for feature in features
            ]
        })
        identifiers = identifiers[identifiers['identifier'] != '']
        duplicates = detect_duplicates(identifiers, ['identifier'])
        summary['duplicate_identifiers'] = sorted(duplicates['identifier'].unique().tolist())
        summary['invalid_features'] = sum(1 for feature in features if not isinstance(feature, dict))
        return summary

    def log_quality_summary(self, features: List[Dict[str, Any]], level: int) -> Dict[str, Any]:
        summary = self.quality_summary(features, level)
        self.logger.info(f"Source data quality: {summary}")

        if summary['missing_columns']:
            self.logger.warning(
                f"DATA QUALITY: properties missing for level {level}: {summary['missing_columns']}"
            )
        if summary['invalid_features']:
            self.logger.warning(
                f"DATA QUALITY: {summary['invalid_features']} entries are not GeoJSON features"
            )
        if summary['duplicate_identifiers']:
            self.logger.warning(
                f"DATA QUALITY: {len(summary['duplicate_identifiers'])} identifiers appear more "
                f"than once; the last feature wins"
            )
        return summary
