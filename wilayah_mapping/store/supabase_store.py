"""
Geometry store over the Supabase remote procedure gateway.

Every operation calls one of the SQL functions defined in
``sql/init_db.sql`` through PostgREST. Child lookups are paged explicitly so
the gateway's server-side row limit never truncates a result silently.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from ..config import SEARCH_LIMIT
from ..exceptions import StoreQueryError, StoreUnavailableError
from ..models import RegionFeature, SearchResult
from .base import GeometryStore, count_rows_to_levels, parse_geometry


# Must not exceed the PostgREST max-rows setting of the project
PAGE_SIZE = 1000


class SupabaseGeometryStore(GeometryStore):
    """GeometryStore backed by Supabase RPC functions."""

    backend_name = 'supabase'

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None,
                 client: Optional[Client] = None, page_size: int = PAGE_SIZE,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the gateway client.

        Args:
            url: Supabase project URL
            key: Service role key
            client: Pre-built client, mainly for tests
            page_size: Rows requested per page for child lookups
            logger: Optional logger instance
        """
        super().__init__(logger)
        self.client = client or create_client(url, key)
        self.page_size = page_size

    def _rpc(self, operation: str, function: str, params: Dict[str, Any]) -> Any:
        try:
            response = self.client.rpc(function, params).execute()
        except httpx.TransportError as e:
            raise StoreUnavailableError(
                f"Supabase unreachable during {operation}: {e}",
                backend=self.backend_name,
                operation=operation,
                original_error=e
            ) from e
        except (APIError, httpx.HTTPError) as e:
            raise StoreQueryError(
                f"Supabase rejected {operation} ({function}): {e}",
                backend=self.backend_name,
                operation=operation,
                original_error=e
            ) from e
        return response.data

    def _to_features(self, rows: Optional[List[Dict[str, Any]]]) -> List[RegionFeature]:
        return [
            RegionFeature(
                identifier=row['id'],
                display_name=row.get('name') or '',
                level=int(row['level']),
                geometry=parse_geometry(row.get('geom'), row['id'], self.logger)
            )
            for row in rows or []
        ]

    def exact_by_level(self, level: int, identifier: str) -> List[RegionFeature]:
        rows = self._rpc('exact_by_level', 'get_region_exact',
                         {'p_level': level, 'p_kode': identifier})
        return self._to_features(rows)

    def prefix_by_level(self, level: int, prefix_identifier: str) -> List[RegionFeature]:
        features: List[RegionFeature] = []
        offset = 0
        while True:
            rows = self._rpc('prefix_by_level', 'get_region_children', {
                'p_level': level,
                'p_prefix': prefix_identifier,
                'p_offset': offset,
                'p_limit': self.page_size
            }) or []
            features.extend(self._to_features(rows))
            if len(rows) < self.page_size:
                return features
            offset += self.page_size

    def upsert(self, identifier: str, name: str, level: int,
               geometry: Dict[str, Any]) -> None:
        self._rpc('upsert', 'upsert_region', {
            'p_kode': identifier,
            'p_nama': name,
            'p_level': level,
            'p_geojson': geometry
        })

    def count_by_prefix(self, prefix_identifier: str) -> Dict[int, int]:
        rows = self._rpc('count_by_prefix', 'count_regions_by_prefix',
                         {'p_prefix': prefix_identifier or ''}) or []
        return count_rows_to_levels((row['level'], row['count']) for row in rows)

    def exists_any_at_level(self, level: int) -> bool:
        data = self._rpc('exists_any_at_level', 'region_exists_at_level', {'p_level': level})
        if isinstance(data, list):
            data = data[0] if data else False
        return bool(data)

    def search_by_name(self, text: str, limit: int = SEARCH_LIMIT) -> List[SearchResult]:
        rows = self._rpc('search_by_name', 'search_regions',
                         {'p_query': text, 'p_limit': limit}) or []
        return [SearchResult(row['id'], row.get('name') or '', int(row['level'])) for row in rows]

    def check_connection(self) -> bool:
        self.exists_any_at_level(1)
        return True
