"""
Data utility functions for type conversions and null handling.

This module provides utility functions for cleaning raw property values,
handling null values and summarizing the quality of a feature batch.
"""

import pandas as pd
from typing import Any, Dict, List


def safe_string_conversion(value: Any) -> str:
    """
    Safely convert a value to string, handling nulls and cleaning whitespace.

    Args:
        value: Value to convert to string

    Returns:
        Cleaned string value or empty string if null
    """
    if value is None:
        return ""

    if isinstance(value, float):
        if pd.isna(value):
            return ""
        # JSON numbers such as 11.0 carry no fractional part in a code
        if value.is_integer():
            return str(int(value))

    return str(value).strip()


def is_null_or_empty(value: Any) -> bool:
    """
    Check if a value is null, empty, or contains only whitespace.

    Args:
        value: Value to check

    Returns:
        True if value is null/empty, False otherwise
    """
    if value is None:
        return True

    if isinstance(value, float) and pd.isna(value):
        return True

    if isinstance(value, str):
        return not value.strip()

    return False


def feature_properties(feature: Any) -> Dict[str, Any]:
    """Property bag of a feature; empty when the feature or its properties are not objects."""
    if not isinstance(feature, dict):
        return {}
    properties = feature.get('properties')
    return properties if isinstance(properties, dict) else {}


def properties_frame(features: List[Dict[str, Any]]) -> pd.DataFrame:
    """
    Flatten the property bags of a feature batch into a DataFrame.

    Args:
        features: GeoJSON feature dictionaries

    Returns:
        DataFrame with one row per feature and one column per property key
    """
    rows = [feature_properties(feature) for feature in features]
    return pd.DataFrame.from_records(rows)


def detect_duplicates(df: pd.DataFrame, key_columns: list) -> pd.DataFrame:
    """
    Detect duplicate records based on specified key columns.

    Args:
        df: DataFrame to check for duplicates
        key_columns: List of column names to use for duplicate detection

    Returns:
        DataFrame containing only the duplicate records
    """
    present = [col for col in key_columns if col in df.columns]
    if df.empty or not present:
        return df.iloc[0:0].copy()

    duplicated_mask = df[present].duplicated(keep=False)
    return df[duplicated_mask].copy()


def get_data_quality_summary(df: pd.DataFrame, required_columns: list) -> dict:
    """
    Generate a summary of data quality metrics for a property DataFrame.

    Args:
        df: DataFrame to analyze
        required_columns: Columns the declared level needs

    Returns:
        Dictionary containing data quality metrics
    """
    summary = {
        'total_records': len(df),
        'missing_columns': [col for col in required_columns if col not in df.columns],
        'blank_counts': {}
    }

    for col in required_columns:
        if col not in df.columns:
            summary['blank_counts'][col] = len(df)
            continue
        blank = df[col].apply(is_null_or_empty)
        summary['blank_counts'][col] = int(blank.sum())

    return summary
