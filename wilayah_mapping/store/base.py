"""
Geometry store interface for the wilayah mapping application.

Every backend stores ``identifier -> (display name, level, simplified
multipolygon)`` and answers the same exact, prefix, count and search
lookups. Backends differ only in transport; results are identical for
identical inputs. No backend caps hierarchy reads; search is capped at
``SEARCH_LIMIT`` everywhere.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from ..config import SEARCH_LIMIT
from ..exceptions import MalformedGeometryError
from ..models import RegionFeature, SearchResult


_logger = logging.getLogger(__name__)


def parse_geometry(raw: Union[str, bytes, Dict[str, Any], None],
                   identifier: Optional[str] = None,
                   logger: Optional[logging.Logger] = None) -> Optional[Dict[str, Any]]:
    """
    Normalize a geometry value read from a store into a GeoJSON mapping.

    Stores return geometry either as structured JSON or as serialized text.
    Unparsable values degrade to ``None`` and are logged.

    Args:
        raw: Geometry as returned by the store driver
        identifier: Region identifier, used in the log message
        logger: Optional logger instance

    Returns:
        GeoJSON geometry dictionary, or None
    """
    log = logger or _logger
    if raw is None:
        return None

    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode('utf-8')
        value = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(value, dict) or 'type' not in value:
            raise ValueError(f"not a GeoJSON geometry object: {type(value).__name__}")
        return value
    except (ValueError, TypeError, UnicodeDecodeError) as e:
        error = MalformedGeometryError(
            f"Unparsable geometry for region {identifier}",
            identifier=identifier,
            original_error=e
        )
        log.warning(f"{error.message}: {e}", extra={'error': error.to_dict()})
        return None


def count_rows_to_levels(rows) -> Dict[int, int]:
    """Turn ``(level, count)`` rows into a level -> count mapping."""
    counts: Dict[int, int] = {}
    for level, count in rows:
        counts[int(level)] = counts.get(int(level), 0) + int(count)
    return counts


class GeometryStore(ABC):
    """
    Uniform interface to the persistent region geometry collection.

    Implementations translate connectivity failures into
    ``StoreUnavailableError`` and every other backend failure into
    ``StoreQueryError``. An absence of rows is an empty result, never an
    error.
    """

    backend_name = 'abstract'

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    @abstractmethod
    def exact_by_level(self, level: int, identifier: str) -> List[RegionFeature]:
        """Regions at ``level`` whose identifier equals ``identifier``."""

    @abstractmethod
    def prefix_by_level(self, level: int, prefix_identifier: str) -> List[RegionFeature]:
        """Regions at ``level`` whose identifier starts with ``prefix_identifier + "."``."""

    @abstractmethod
    def upsert(self, identifier: str, name: str, level: int,
               geometry: Dict[str, Any]) -> None:
        """
        Insert or overwrite one region atomically.

        On conflict the display name, geometry and update time are replaced;
        identifier and creation time are kept.
        """

    @abstractmethod
    def count_by_prefix(self, prefix_identifier: str) -> Dict[int, int]:
        """
        Count regions per level equal to or under ``prefix_identifier``.

        An empty prefix counts every stored region.
        """

    @abstractmethod
    def exists_any_at_level(self, level: int) -> bool:
        """Whether at least one region is stored at ``level``."""

    @abstractmethod
    def search_by_name(self, text: str, limit: int = SEARCH_LIMIT) -> List[SearchResult]:
        """Case-insensitive substring search over display names, ordered by level then name."""

    @abstractmethod
    def check_connection(self) -> bool:
        """Probe the store; raises StoreUnavailableError when unreachable."""

    def ensure_schema(self) -> None:
        """Create the region table if the backend manages its own schema."""

    def close(self) -> None:
        """Release connections held by the store."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
