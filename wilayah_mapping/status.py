"""
Status reporting and bootstrap seeding for the wilayah mapping application.
"""

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

from .exceptions import SeedFailure, WilayahMappingError
from .hierarchy.hierarchy_config import STANDARD_HIERARCHY
from .models import IngestionResult, RegionStatus
from .utils.error_handler import RetryConfig, log_error_details, safe_file_operation

if TYPE_CHECKING:
    from .ingestion import IngestionPipeline
    from .source_loader import SourceLoader
    from .store.base import GeometryStore


SEED_IN_PROGRESS = 'in_progress'
SEED_COMPLETED = 'completed'
SEED_FAILED = 'failed'


class StatusChecker:
    """Reports stored region counts per level."""

    def __init__(self, store: 'GeometryStore', logger: Optional[logging.Logger] = None):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    def status(self, prefix: Optional[str] = None) -> RegionStatus:
        """
        Count stored regions equal to or under ``prefix``, per level.

        Args:
            prefix: Identifier prefix; empty counts every region

        Returns:
            RegionStatus with per-level counts

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        prefix = (prefix or '').strip()
        counts = self.store.count_by_prefix(prefix)
        values = {
            STANDARD_HIERARCHY.get_level(number).name: counts.get(number, 0)
            for number in range(1, len(STANDARD_HIERARCHY.levels) + 1)
        }
        return RegionStatus(prefix=prefix, **values)

    def has_bootstrap_data(self) -> bool:
        """Whether any top-level region is stored."""
        return self.store.exists_any_at_level(1)


class BootstrapSeeder:
    """
    Seeds the top level from a designated source file when the store is empty.

    A seeder runs at most once; the owning service creates a single
    instance per process. Each attempt is recorded in a JSON marker file.
    An unfinished or failed attempt blocks later ones until the marker is
    removed, so a broken seed file is not retried on every restart.
    """

    def __init__(self, checker: StatusChecker, pipeline: 'IngestionPipeline',
                 loader: 'SourceLoader', seed_file: Optional[str],
                 marker_file: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the seeder.

        Args:
            checker: StatusChecker over the target store
            pipeline: IngestionPipeline writing into the same store
            loader: SourceLoader used to read the seed file
            seed_file: Designated top-level source file, None to disable
            marker_file: Path of the JSON attempt marker
            logger: Optional logger instance
        """
        self.checker = checker
        self.pipeline = pipeline
        self.loader = loader
        self.seed_file = seed_file
        self.marker_file = Path(marker_file) if marker_file else None
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._attempted = False
        self.result: Optional[IngestionResult] = None

    @property
    def attempted(self) -> bool:
        return self._attempted

    def run(self) -> Optional[IngestionResult]:
        """
        Seed once. Never raises; failures are logged as SeedFailure.

        Returns:
            IngestionResult when seeding ran, otherwise None
        """
        with self._lock:
            if self._attempted:
                self.logger.debug("Bootstrap seeding already attempted in this process")
                return self.result
            self._attempted = True

        try:
            self.result = self._seed()
        except SeedFailure as e:
            log_error_details(self.logger, e)
        return self.result

    def start_background(self) -> threading.Thread:
        """Run the seeder on a daemon thread."""
        thread = threading.Thread(target=self.run, name="wilayah-seed", daemon=True)
        thread.start()
        return thread

    def _seed(self) -> Optional[IngestionResult]:
        if not self.seed_file:
            self.logger.info("No seed file configured, skipping bootstrap seeding")
            return None

        try:
            if self.checker.has_bootstrap_data():
                self.logger.info("Top-level regions present, skipping bootstrap seeding")
                return None
        except Exception as e:
            raise SeedFailure(
                "Could not check the store for top-level regions",
                seed_file=self.seed_file,
                original_error=e
            ) from e

        marker = self.read_marker()
        if marker and marker.get('status') in (SEED_IN_PROGRESS, SEED_FAILED):
            self.logger.warning(
                f"Previous bootstrap seeding from {marker.get('seed_file')} ended as "
                f"'{marker.get('status')}'; remove {self.marker_file} to retry"
            )
            return None

        self.logger.info(f"Seeding top-level regions from {self.seed_file}")
        started_at = datetime.now().isoformat()
        try:
            self._write_marker({'status': SEED_IN_PROGRESS, 'started_at': started_at})
            features = self.loader.load_features(self.seed_file, level=1)
            result = self.pipeline.ingest(features, 1)
        except Exception as e:
            self._record_failure(started_at, str(e))
            raise SeedFailure(
                f"Bootstrap seeding from {self.seed_file} failed",
                seed_file=self.seed_file,
                processed_count=0,
                original_error=e
            ) from e

        if result.processed == 0:
            self._record_failure(started_at, "no regions written", result)
            raise SeedFailure(
                f"Bootstrap seeding from {self.seed_file} wrote no regions",
                seed_file=self.seed_file,
                processed_count=0
            )

        self._write_marker({
            'status': SEED_COMPLETED,
            'started_at': started_at,
            'finished_at': datetime.now().isoformat(),
            **self._result_counts(result)
        })
        self.logger.info(f"Bootstrap seeding wrote {result.processed} top-level regions")
        return result

    def _record_failure(self, started_at: str, error: str,
                        result: Optional[IngestionResult] = None):
        entry = {
            'status': SEED_FAILED,
            'started_at': started_at,
            'finished_at': datetime.now().isoformat(),
            'error': error
        }
        if result is not None:
            entry.update(self._result_counts(result))
        try:
            self._write_marker(entry)
        except WilayahMappingError as e:
            self.logger.error(f"Could not record failed seeding attempt: {e}")

    @staticmethod
    def _result_counts(result: IngestionResult) -> Dict[str, int]:
        return {
            'processed': result.processed,
            'skipped': result.skipped,
            'failed_writes': result.failed_writes
        }

    def read_marker(self) -> Optional[Dict[str, Any]]:
        """Load the attempt marker, or None when there is none."""
        if self.marker_file is None or not self.marker_file.exists():
            return None
        try:
            with open(self.marker_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            # An unreadable marker still blocks retries
            self.logger.warning(f"Unreadable seed marker {self.marker_file}: {e}")
            return {'status': SEED_FAILED, 'seed_file': self.seed_file}

    def _write_marker(self, entry: Dict[str, Any]):
        if self.marker_file is None:
            return
        entry = {'seed_file': str(self.seed_file), **entry}

        def write():
            self.marker_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.marker_file, 'w', encoding='utf-8') as f:
                json.dump(entry, f, indent=2)

        safe_file_operation(
            operation=write,
            file_path=self.marker_file,
            operation_name="write seed marker",
            retry_config=RetryConfig(max_attempts=2, base_delay=0.1),
            logger=self.logger
        )
