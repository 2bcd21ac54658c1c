"""
Data models for the wilayah mapping application.

This module defines the raw feature property variants consumed by the code
deriver, the stored region record and the read models returned by queries.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .utils.data_utils import safe_string_conversion, is_null_or_empty


@dataclass
class ProvinsiFields:
    """Raw properties of a level 1 (provinsi) feature."""

    kd_propinsi: str
    nm_propinsi: str = ""

    level = 1

    def missing_codes(self) -> List[str]:
        return [name for name in ('kd_propinsi',) if is_null_or_empty(getattr(self, name))]


@dataclass
class KabupatenFields:
    """Raw properties of a level 2 (kabupaten/kota) feature."""

    kd_propinsi: str
    kd_dati2: str
    nm_dati2: str = ""

    level = 2

    def missing_codes(self) -> List[str]:
        return [name for name in ('kd_propinsi', 'kd_dati2')
                if is_null_or_empty(getattr(self, name))]


@dataclass
class KecamatanFields:
    """Raw properties of a level 3 (kecamatan) feature."""

    kd_propinsi: str
    kd_dati2: str
    kd_kecamatan: str
    nm_kecamatan: str = ""

    level = 3

    def missing_codes(self) -> List[str]:
        return [name for name in ('kd_propinsi', 'kd_dati2', 'kd_kecamatan')
                if is_null_or_empty(getattr(self, name))]


@dataclass
class KelurahanFields:
    """Raw properties of a level 4 (kelurahan/desa) feature."""

    kd_propinsi: str
    kd_dati2: str
    kd_kecamatan: str
    kd_kelurahan: str
    nm_kelurahan: str = ""

    level = 4

    def missing_codes(self) -> List[str]:
        return [name for name in ('kd_propinsi', 'kd_dati2', 'kd_kecamatan', 'kd_kelurahan')
                if is_null_or_empty(getattr(self, name))]


RawFields = Union[ProvinsiFields, KabupatenFields, KecamatanFields, KelurahanFields]

_FIELD_TYPES = {
    1: ProvinsiFields,
    2: KabupatenFields,
    3: KecamatanFields,
    4: KelurahanFields,
}


def parse_raw_fields(properties: Optional[Dict[str, Any]], level: int) -> RawFields:
    """
    Build the property variant for a declared level.

    Only the keys the level needs are read; every value is converted to a
    stripped string and absent keys become empty strings.

    Args:
        properties: Raw GeoJSON property bag
        level: Declared hierarchy level (1-4)

    Returns:
        The RawFields variant matching ``level``

    Raises:
        KeyError: If ``level`` is not between 1 and 4
    """
    fields_type = _FIELD_TYPES[level]
    props = properties if isinstance(properties, dict) else {}
    values = {
        name: safe_string_conversion(props.get(name))
        for name in fields_type.__dataclass_fields__
    }
    return fields_type(**values)


@dataclass(frozen=True)
class DerivedCode:
    """Canonical identifier and display name derived from a raw feature."""

    identifier: str
    display_name: str

    @property
    def is_valid(self) -> bool:
        return bool(self.identifier)


@dataclass
class RegionFeature:
    """A region as read back from the store for map rendering."""

    identifier: str
    display_name: str
    level: int
    geometry: Optional[Dict[str, Any]]

    def to_feature(self) -> Dict[str, Any]:
        """Render as a GeoJSON Feature with ``{name, id}`` properties."""
        return {
            'type': 'Feature',
            'properties': {'name': self.display_name, 'id': self.identifier},
            'geometry': self.geometry
        }


@dataclass
class SearchResult:
    """One entry of a display-name search."""

    identifier: str
    display_name: str
    level: int

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.identifier, 'name': self.display_name, 'level': self.level}


def to_feature_collection(regions: List[RegionFeature]) -> Dict[str, Any]:
    """Wrap regions into a GeoJSON FeatureCollection."""
    return {
        'type': 'FeatureCollection',
        'features': [region.to_feature() for region in regions]
    }


@dataclass
class RegionStatus:
    """Per-level stored region counts under an identifier prefix."""

    prefix: str
    provinsi: int = 0
    kabupaten: int = 0
    kecamatan: int = 0
    kelurahan: int = 0

    @property
    def available(self) -> bool:
        return (self.provinsi + self.kabupaten + self.kecamatan + self.kelurahan) > 0

    def count_for(self, level: int) -> int:
        return [self.provinsi, self.kabupaten, self.kecamatan, self.kelurahan][level - 1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'provinsi': self.provinsi,
            'kabupaten': self.kabupaten,
            'kecamatan': self.kecamatan,
            'kelurahan': self.kelurahan,
            'available': self.available
        }


@dataclass
class IngestionResult:
    """Outcome of ingesting one feature batch."""

    level: int
    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed_writes: int = 0
    identifiers: List[str] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    duration: float = 0.0

    def record_failure(self, index: int, error: Exception):
        """Remember a per-feature failure for reporting."""
        entry = {'feature_index': index, 'error_type': type(error).__name__, 'message': str(error)}
        if hasattr(error, 'to_dict'):
            entry['context'] = error.to_dict().get('context', {})
        self.failures.append(entry)

    def get_success_rate(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.processed / self.total) * 100
