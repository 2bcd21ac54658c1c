"""
Geometry store backends.

The backend is chosen once, at startup, from configuration.
"""

import logging
from typing import Optional

from ..config import WilayahConfig
from ..exceptions import ConfigurationError
from .base import GeometryStore, parse_geometry
from .memory_store import InMemoryGeometryStore


def create_store(config: WilayahConfig,
                 logger: Optional[logging.Logger] = None) -> GeometryStore:
    """
    Build the configured GeometryStore.

    Driver modules are imported lazily so that the memory backend works
    without database client libraries being importable.

    Args:
        config: Application configuration
        logger: Optional logger handed to the store

    Returns:
        GeometryStore instance for ``config.backend``
    """
    if config.backend == 'memory':
        return InMemoryGeometryStore(logger=logger)

    if config.backend == 'postgres':
        from .postgres_store import PostgresGeometryStore
        return PostgresGeometryStore(
            dsn=config.database_url,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            connect_kwargs=config.connection_kwargs(),
            logger=logger
        )

    if config.backend == 'supabase':
        from .supabase_store import SupabaseGeometryStore
        return SupabaseGeometryStore(
            url=config.supabase_url,
            key=config.supabase_key,
            logger=logger
        )

    raise ConfigurationError(
        f"Unsupported store backend: {config.backend}",
        config_key='backend',
        config_value=config.backend
    )


__all__ = ['GeometryStore', 'InMemoryGeometryStore', 'create_store', 'parse_geometry']
