"""
Region code derivation for the wilayah mapping application.

This module converts the raw property bags found in boundary source files
into the canonical dotted Kemendagri identifier. Source files for the same
logical region disagree on digit widths, so each level applies its own
normalization:

* kecamatan codes are padded with extra leading digits in some files; only
  the last two characters are kept.
* kelurahan codes are missing their leading ``2``; it is prepended.

The rules are applied identically at level 3 and level 4 so that a
kelurahan identifier always extends its kecamatan identifier.
"""

import logging
from typing import Any, Dict, Optional

from ..models import (
    DerivedCode, RawFields, ProvinsiFields, KabupatenFields,
    KecamatanFields, KelurahanFields, parse_raw_fields
)
from ..exceptions import create_derivation_error
from .hierarchy_config import SEPARATOR, STANDARD_HIERARCHY


KECAMATAN_CODE_WIDTH = 2
KELURAHAN_CODE_PREFIX = "2"

EMPTY_CODE = DerivedCode(identifier="", display_name="")


def kecamatan_segment(raw_code: str) -> str:
    """Last two characters of a raw kecamatan code ("0105" -> "05")."""
    return raw_code[-KECAMATAN_CODE_WIDTH:]


def kelurahan_segment(raw_code: str) -> str:
    """Raw kelurahan code with the leading digit restored ("003" -> "2003")."""
    return f"{KELURAHAN_CODE_PREFIX}{raw_code}"


def derive_from_fields(fields: RawFields) -> DerivedCode:
    """
    Derive identifier and display name from a parsed property variant.

    Args:
        fields: One of the RawFields variants

    Returns:
        DerivedCode; the identifier is empty when a required code is missing
    """
    if fields.missing_codes():
        return EMPTY_CODE

    if isinstance(fields, ProvinsiFields):
        return DerivedCode(fields.kd_propinsi, fields.nm_propinsi)

    if isinstance(fields, KabupatenFields):
        return DerivedCode(
            SEPARATOR.join([fields.kd_propinsi, fields.kd_dati2]),
            fields.nm_dati2
        )

    if isinstance(fields, KecamatanFields):
        return DerivedCode(
            SEPARATOR.join([
                fields.kd_propinsi,
                fields.kd_dati2,
                kecamatan_segment(fields.kd_kecamatan)
            ]),
            fields.nm_kecamatan
        )

    if isinstance(fields, KelurahanFields):
        return DerivedCode(
            SEPARATOR.join([
                fields.kd_propinsi,
                fields.kd_dati2,
                kecamatan_segment(fields.kd_kecamatan),
                kelurahan_segment(fields.kd_kelurahan)
            ]),
            fields.nm_kelurahan
        )

    raise TypeError(f"Unsupported raw field type: {type(fields).__name__}")


def derive(raw_properties: Optional[Dict[str, Any]], level: int) -> DerivedCode:
    """
    Derive the canonical identifier for a raw feature at a declared level.

    Pure and deterministic; never raises for missing properties. Callers
    must treat an empty identifier as a failed feature.

    Args:
        raw_properties: Raw GeoJSON property bag
        level: Declared hierarchy level (1-4)

    Returns:
        DerivedCode with identifier and display name
    """
    STANDARD_HIERARCHY.get_level(level)
    return derive_from_fields(parse_raw_fields(raw_properties, level))


class CodeDeriver:
    """
    Derives canonical region identifiers for feature batches.

    Wraps :func:`derive` with statistics and a raising variant used by the
    ingestion pipeline.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize the code deriver.

        Args:
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self._derivation_stats = {
            'total_attempted': 0,
            'successful': 0,
            'missing_components': 0
        }

    def derive(self, raw_properties: Optional[Dict[str, Any]], level: int) -> DerivedCode:
        """Derive a code, counting successes and failures."""
        self._derivation_stats['total_attempted'] += 1
        code = derive(raw_properties, level)
        if code.is_valid:
            self._derivation_stats['successful'] += 1
        else:
            self._derivation_stats['missing_components'] += 1
        return code

    def derive_or_raise(self, raw_properties: Optional[Dict[str, Any]], level: int,
                        feature_index: Optional[int] = None) -> DerivedCode:
        """
        Derive a code or raise when required properties are absent.

        Args:
            raw_properties: Raw GeoJSON property bag
            level: Declared hierarchy level (1-4)
            feature_index: Optional position of the feature in its batch

        Returns:
            DerivedCode with a non-empty identifier

        Raises:
            DerivationError: If a required code property is missing or blank
        """
        code = self.derive(raw_properties, level)
        if not code.is_valid:
            missing = parse_raw_fields(raw_properties, level).missing_codes()
            raise create_derivation_error(level, missing, feature_index)
        return code

    def get_statistics(self) -> Dict[str, int]:
        return dict(self._derivation_stats)
