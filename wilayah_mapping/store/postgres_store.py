"""
PostGIS geometry store over a direct psycopg connection pool.

The pool is created once per process and shared by every request; each
operation borrows a connection for the duration of one statement. Upserts
rely on ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent writers to the
same identifier resolve inside the database without a read-then-write race.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from ..config import SEARCH_LIMIT, SRID
from ..exceptions import StoreQueryError, StoreUnavailableError
from ..hierarchy.hierarchy_config import SEPARATOR
from ..models import RegionFeature, SearchResult
from .base import GeometryStore, count_rows_to_levels, parse_geometry


TABLE_NAME = "m_wilayah_poligon"

SCHEMA_STATEMENTS = [
    "CREATE EXTENSION IF NOT EXISTS postgis",
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        kode_wilayah_kemendagri VARCHAR(255) PRIMARY KEY,
        nama_wilayah_kemendagri VARCHAR(255),
        level INTEGER,
        geometry GEOMETRY(MultiPolygon, {SRID}),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_wilayah_level ON {TABLE_NAME}(level)",
    f"CREATE INDEX IF NOT EXISTS idx_wilayah_code_pattern "
    f"ON {TABLE_NAME}(kode_wilayah_kemendagri varchar_pattern_ops)",
    f"CREATE INDEX IF NOT EXISTS idx_wilayah_nama ON {TABLE_NAME}(lower(nama_wilayah_kemendagri))",
]

_REGION_COLUMNS = (
    "kode_wilayah_kemendagri, nama_wilayah_kemendagri, level, ST_AsGeoJSON(geometry)"
)

EXACT_SQL = f"""
    SELECT {_REGION_COLUMNS}
    FROM {TABLE_NAME}
    WHERE level = %s AND kode_wilayah_kemendagri = %s
"""

PREFIX_SQL = f"""
    SELECT {_REGION_COLUMNS}
    FROM {TABLE_NAME}
    WHERE level = %s AND kode_wilayah_kemendagri LIKE %s ESCAPE '\\'
    ORDER BY kode_wilayah_kemendagri
"""

UPSERT_SQL = f"""
    INSERT INTO {TABLE_NAME}
        (kode_wilayah_kemendagri, nama_wilayah_kemendagri, level, geometry, updated_at)
    VALUES (%s, %s, %s, ST_Multi(ST_SetSRID(ST_GeomFromGeoJSON(%s), {SRID})), NOW())
    ON CONFLICT (kode_wilayah_kemendagri)
    DO UPDATE SET
        nama_wilayah_kemendagri = EXCLUDED.nama_wilayah_kemendagri,
        geometry = EXCLUDED.geometry,
        updated_at = NOW()
"""

COUNT_SQL = f"""
    SELECT level, COUNT(*)
    FROM {TABLE_NAME}
    WHERE %s = '' OR kode_wilayah_kemendagri = %s OR kode_wilayah_kemendagri LIKE %s ESCAPE '\\'
    GROUP BY level
"""

EXISTS_SQL = f"SELECT EXISTS (SELECT 1 FROM {TABLE_NAME} WHERE level = %s)"

SEARCH_SQL = f"""
    SELECT kode_wilayah_kemendagri, nama_wilayah_kemendagri, level
    FROM {TABLE_NAME}
    WHERE lower(nama_wilayah_kemendagri) LIKE %s ESCAPE '\\'
    ORDER BY level ASC, nama_wilayah_kemendagri ASC
    LIMIT %s
"""


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def children_pattern(prefix_identifier: str) -> str:
    """LIKE pattern matching identifiers under a prefix, separator included."""
    return f"{escape_like(prefix_identifier)}{SEPARATOR}%"


class PostgresGeometryStore(GeometryStore):
    """GeometryStore backed by PostGIS through psycopg 3."""

    backend_name = 'postgres'

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 10,
                 connect_kwargs: Optional[Dict[str, Any]] = None,
                 pool: Optional[ConnectionPool] = None,
                 timeout: float = 30.0,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the store and its process-wide connection pool.

        Args:
            dsn: PostgreSQL connection string
            min_size: Minimum number of pooled connections
            max_size: Maximum number of pooled connections
            connect_kwargs: Extra psycopg connection arguments (e.g. sslmode)
            pool: Pre-built pool, mainly for tests
            timeout: Seconds to wait for a pooled connection
            logger: Optional logger instance
        """
        super().__init__(logger)
        self.timeout = timeout
        self.pool = pool or ConnectionPool(
            conninfo=dsn,
            min_size=min_size,
            max_size=max_size,
            kwargs=dict(connect_kwargs or {}),
            timeout=timeout,
            name="wilayah",
            open=True
        )

    def _run(self, operation: str, sql: str, params: Sequence[Any] = (),
             fetch: bool = True) -> List[tuple]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params or None)
                    return cur.fetchall() if fetch else []
        except (PoolTimeout, psycopg.OperationalError, psycopg.InterfaceError) as e:
            raise StoreUnavailableError(
                f"PostgreSQL unavailable during {operation}: {e}",
                backend=self.backend_name,
                operation=operation,
                original_error=e
            ) from e
        except psycopg.Error as e:
            raise StoreQueryError(
                f"PostgreSQL rejected {operation}: {e}",
                backend=self.backend_name,
                operation=operation,
                original_error=e
            ) from e

    def _to_features(self, rows: List[tuple]) -> List[RegionFeature]:
        return [
            RegionFeature(
                identifier=identifier,
                display_name=name,
                level=level,
                geometry=parse_geometry(geom, identifier, self.logger)
            )
            for identifier, name, level, geom in rows
        ]

    def exact_by_level(self, level: int, identifier: str) -> List[RegionFeature]:
        rows = self._run('exact_by_level', EXACT_SQL, (level, identifier))
        return self._to_features(rows)

    def prefix_by_level(self, level: int, prefix_identifier: str) -> List[RegionFeature]:
        rows = self._run('prefix_by_level', PREFIX_SQL, (level, children_pattern(prefix_identifier)))
        return self._to_features(rows)

    def upsert(self, identifier: str, name: str, level: int,
               geometry: Dict[str, Any]) -> None:
        self._run('upsert', UPSERT_SQL, (identifier, name, level, json.dumps(geometry)), fetch=False)

    def count_by_prefix(self, prefix_identifier: str) -> Dict[int, int]:
        prefix = prefix_identifier or ''
        rows = self._run('count_by_prefix', COUNT_SQL, (prefix, prefix, children_pattern(prefix)))
        return count_rows_to_levels(rows)

    def exists_any_at_level(self, level: int) -> bool:
        rows = self._run('exists_any_at_level', EXISTS_SQL, (level,))
        return bool(rows and rows[0][0])

    def search_by_name(self, text: str, limit: int = SEARCH_LIMIT) -> List[SearchResult]:
        pattern = f"%{escape_like(text.lower())}%"
        rows = self._run('search_by_name', SEARCH_SQL, (pattern, limit))
        return [SearchResult(identifier, name, level) for identifier, name, level in rows]

    def check_connection(self) -> bool:
        self._run('check_connection', "SELECT 1")
        return True

    def ensure_schema(self) -> None:
        for statement in SCHEMA_STATEMENTS:
            self._run('ensure_schema', statement, fetch=False)
        self.logger.info(f"Table {TABLE_NAME} is ready")

    def close(self) -> None:
        self.pool.close()
