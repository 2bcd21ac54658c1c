"""
Source level detection for the wilayah mapping application.

The hierarchy level of a feature batch is declared by its source, not
inferred from feature content. This module maps source tags (normally the
boundary file name) to a level using the naming convention of the boundary
exports:

* ``<code>_kecamatan.geojson`` holds level 3 features
* ``<code>_kelurahan.geojson`` holds level 4 features
* ``<2 digits>_<Name>.geojson`` (e.g. ``11_Aceh.geojson``) holds the provinsi
* any other file holds kabupaten/kota features
"""

import logging
import re
from pathlib import PurePath
from typing import Optional, Union

from ..exceptions import ConfigurationError, ValidationError
from .hierarchy_config import HierarchyConfiguration, STANDARD_HIERARCHY


PROVINSI_FILE_PATTERN = re.compile(r'^\d{2}_.+$')
DEFAULT_LEVEL = 2


class LevelDetector:
    """
    Resolves the declared hierarchy level of a feature batch.
    """

    def __init__(self, hierarchy: Optional[HierarchyConfiguration] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the level detector.

        Args:
            hierarchy: Hierarchy configuration, defaults to the standard one
            logger: Optional logger instance for logging detection results

        Raises:
            ConfigurationError: If the hierarchy configuration is inconsistent
        """
        self.hierarchy = hierarchy or STANDARD_HIERARCHY
        self.logger = logger or logging.getLogger(__name__)

        is_valid, issues = self.hierarchy.validate()
        if not is_valid:
            raise ConfigurationError(
                f"Invalid hierarchy configuration: {'; '.join(issues)}",
                config_key='hierarchy'
            )

    def detect_level(self, source_tag: Union[str, int]) -> int:
        """
        Detect the hierarchy level declared by a source tag.

        Args:
            source_tag: File name or path, level name, or level number

        Returns:
            Level number (1-4)

        Raises:
            ValidationError: If the tag is empty or names an unknown level
        """
        if isinstance(source_tag, int):
            return self.hierarchy.get_level(source_tag).number

        tag = (source_tag or '').strip()
        if not tag:
            raise ValidationError(
                "Source tag is required to detect the hierarchy level",
                field_name='source_tag',
                invalid_value=source_tag
            )

        if tag.isdigit():
            return self.hierarchy.get_level(int(tag)).number

        named = self.hierarchy.get_level_by_name(tag)
        if named is not None:
            return named.number

        stem = PurePath(tag).name
        if stem.lower().endswith('.geojson'):
            stem = stem[:-len('.geojson')]

        level = self._level_from_stem(stem)
        self.logger.debug(f"Source '{tag}' declares level {level}")
        return level

    def _level_from_stem(self, stem: str) -> int:
        lowered = stem.lower()
        if lowered.endswith('_kecamatan'):
            return 3
        if lowered.endswith('_kelurahan'):
            return 4
        if PROVINSI_FILE_PATTERN.match(stem):
            return 1
        return DEFAULT_LEVEL
