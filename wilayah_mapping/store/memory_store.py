"""
In-memory geometry store.

Keeps regions in a dictionary guarded by a lock. Geometry is held in its
serialized form and parsed on read, exactly as the database backends do,
so the three backends share read semantics. Used for local development and
tests.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import SEARCH_LIMIT
from ..hierarchy.hierarchy_config import is_descendant
from ..models import RegionFeature, SearchResult
from .base import GeometryStore, parse_geometry


class InMemoryGeometryStore(GeometryStore):
    """Thread-safe dictionary-backed GeometryStore."""

    backend_name = 'memory'

    def __init__(self, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(row) for row in self._rows.values()]

    def _to_feature(self, row: Dict[str, Any]) -> RegionFeature:
        return RegionFeature(
            identifier=row['identifier'],
            display_name=row['display_name'],
            level=row['level'],
            geometry=parse_geometry(row['geometry'], row['identifier'], self.logger)
        )

    def exact_by_level(self, level: int, identifier: str) -> List[RegionFeature]:
        return [
            self._to_feature(row) for row in self._snapshot()
            if row['level'] == level and row['identifier'] == identifier
        ]

    def prefix_by_level(self, level: int, prefix_identifier: str) -> List[RegionFeature]:
        rows = [
            row for row in self._snapshot()
            if row['level'] == level and is_descendant(row['identifier'], prefix_identifier)
        ]
        rows.sort(key=lambda row: row['identifier'])
        return [self._to_feature(row) for row in rows]

    def upsert(self, identifier: str, name: str, level: int,
               geometry: Dict[str, Any]) -> None:
        serialized = json.dumps(geometry)
        now = datetime.now(timezone.utc)
        with self._lock:
            existing = self._rows.get(identifier)
            if existing is None:
                self._rows[identifier] = {
                    'identifier': identifier,
                    'display_name': name,
                    'level': level,
                    'geometry': serialized,
                    'created_at': now,
                    'updated_at': now
                }
            else:
                existing['display_name'] = name
                existing['geometry'] = serialized
                existing['updated_at'] = now

    def count_by_prefix(self, prefix_identifier: str) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for row in self._snapshot():
            identifier = row['identifier']
            if prefix_identifier and not (
                identifier == prefix_identifier or is_descendant(identifier, prefix_identifier)
            ):
                continue
            counts[row['level']] = counts.get(row['level'], 0) + 1
        return counts

    def exists_any_at_level(self, level: int) -> bool:
        return any(row['level'] == level for row in self._snapshot())

    def search_by_name(self, text: str, limit: int = SEARCH_LIMIT) -> List[SearchResult]:
        needle = text.lower()
        rows = [
            row for row in self._snapshot()
            if needle in (row['display_name'] or '').lower()
        ]
        rows.sort(key=lambda row: (row['level'], row['display_name']))
        return [
            SearchResult(row['identifier'], row['display_name'], row['level'])
            for row in rows[:limit]
        ]

    def check_connection(self) -> bool:
        return True

    def get_row(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Raw stored row, including timestamps and serialized geometry."""
        with self._lock:
            row = self._rows.get(identifier)
            return dict(row) if row else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
