"""
Region service for the wilayah mapping application.

This module provides the RegionService class, constructed once per process,
that owns the geometry store and exposes the operations consumed by the
route layer: ingest, status, hierarchy query and search.
"""

import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import SEARCH_LIMIT, SEARCH_MIN_LENGTH, WilayahConfig
from .hierarchy import CodeDeriver, HierarchyBundle, HierarchyQueryComposer, LevelDetector
from .ingestion import IngestionPipeline
from .logging_config import RegionLogger, setup_logging
from .models import IngestionResult, RegionStatus
from .source_loader import SourceLoader
from .status import BootstrapSeeder, StatusChecker
from .store import GeometryStore, create_store
from .utils.error_handler import RetryConfig, with_retry


class RegionService:
    """
    Facade over ingestion, status, query composition and search.

    The store is created once from configuration (or injected) and shared by
    every component; no component keeps per-request connection state.
    """

    def __init__(self, config: WilayahConfig, store: Optional[GeometryStore] = None,
                 logger: Optional[RegionLogger] = None,
                 retry_config: Optional[RetryConfig] = None):
        """
        Initialize the service.

        Args:
            config: Application configuration
            store: Pre-built store; created from ``config`` when omitted
            logger: Optional RegionLogger instance
            retry_config: Retry policy for the startup connection check
        """
        self.config = config
        self.logger = logger or setup_logging(config)
        log = self.logger.logger

        self.store = store or create_store(config, log)
        self.retry_config = retry_config or RetryConfig(max_attempts=5, base_delay=1.0, max_delay=30.0)

        self.level_detector = LevelDetector(logger=log)
        self.deriver = CodeDeriver(log)
        self.loader = SourceLoader(log)
        self.pipeline = IngestionPipeline(
            self.store,
            deriver=self.deriver,
            show_progress=config.show_progress,
            logger=log
        )
        self.checker = StatusChecker(self.store, log)
        self.composer = HierarchyQueryComposer(self.store, max_workers=config.query_workers, logger=log)
        self.seeder = BootstrapSeeder(
            self.checker,
            self.pipeline,
            self.loader,
            seed_file=config.seed_file,
            marker_file=config.seed_marker_file,
            logger=log
        )
        self._seed_thread: Optional[threading.Thread] = None

    def start(self, seed: bool = True, background: bool = True):
        """
        Confirm the store is reachable, prepare the schema and start seeding.

        Args:
            seed: Whether to run bootstrap seeding
            background: Run seeding on a daemon thread instead of inline

        Raises:
            StoreUnavailableError: If the store stays unreachable after retries
        """
        self.logger.log_phase_start("Store Initialization")
        start_time = time.time()

        @with_retry(self.retry_config, self.logger.logger)
        def probe():
            return self.store.check_connection()

        probe()
        self.store.ensure_schema()
        self.logger.log_phase_complete("Store Initialization", 1, time.time() - start_time)

        if not seed:
            return
        if background:
            self._seed_thread = self.seeder.start_background()
        else:
            self.seeder.run()

    def seed(self) -> Optional[IngestionResult]:
        """Run bootstrap seeding inline; returns the result when it ran."""
        return self.seeder.run()

    def wait_for_seed(self, timeout: Optional[float] = None):
        if self._seed_thread is not None:
            self._seed_thread.join(timeout)

    def ingest(self, source_level: Union[int, str], features: List[Dict[str, Any]]) -> int:
        """
        Ingest a feature batch.

        Args:
            source_level: Declared level number, level name or source tag
            features: GeoJSON Feature mappings

        Returns:
            Number of regions written

        Raises:
            ValidationError: If the level cannot be resolved
            StoreUnavailableError: If the store becomes unreachable
        """
        return self.ingest_source_tag(source_level, features).processed

    def ingest_source_tag(self, source_tag: Union[int, str],
                          features: List[Dict[str, Any]]) -> IngestionResult:
        """Resolve the level of ``source_tag`` and ingest ``features`` at it."""
        level = self.level_detector.detect_level(source_tag)
        self.logger.log_ingestion_start(str(source_tag), level, len(features))
        result = self.pipeline.ingest(features, level)
        self.logger.log_ingestion_complete(result, self.deriver.get_statistics())
        return result

    def ingest_file(self, file_path: Union[str, Path], level: Optional[int] = None,
                    source_tag: Optional[str] = None) -> IngestionResult:
        """
        Load a GeoJSON source file and ingest it.

        The level is taken from ``level``, else from ``source_tag``, else
        from the file name.
        """
        path = Path(file_path)
        if level is not None:
            resolved = self.level_detector.detect_level(level)
        else:
            resolved = self.level_detector.detect_level(source_tag or path.name)

        features = self.loader.load_features(path, level=resolved)
        self.logger.log_file_operation("Loaded", str(path), len(features))
        return self.ingest_source_tag(resolved, features)

    def status(self, prefix: Optional[str] = None) -> RegionStatus:
        """Per-level region counts equal to or under ``prefix``."""
        return self.checker.status(prefix)

    def query_hierarchy(self, identifier: str) -> HierarchyBundle:
        """Compose the hierarchy bundle for ``identifier``."""
        return self.composer.compose(identifier)

    def search(self, text: Optional[str]) -> List[Dict[str, Any]]:
        """
        Search regions by display name.

        Args:
            text: Search text; fewer than three characters returns nothing

        Returns:
            Up to ten ``{id, name, level}`` dicts ordered by level then name
        """
        query = (text or '').strip()
        if len(query) < SEARCH_MIN_LENGTH:
            return []
        return [result.to_dict() for result in self.store.search_by_name(query, SEARCH_LIMIT)]

    def close(self):
        self.composer.close()
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
