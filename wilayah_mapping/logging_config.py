"""
Logging configuration for the wilayah mapping application.

This module provides the logging infrastructure with configurable levels,
optional file output and helpers for ingestion progress reporting.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime


class RegionLogger:
    """Custom logger for region ingestion and query operations."""

    def __init__(self, name: str = "wilayah_mapping", level: str = "INFO",
                 log_file: Optional[str] = None):
        """
        Initialize the region logger.

        Args:
            name: Logger name
            level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional file path for log output
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        # Clear any existing handlers
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            self._setup_file_handler(log_file, formatter)

    def _setup_file_handler(self, log_file: str, formatter: logging.Formatter):
        """Set up file logging handler."""
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(formatter)
        self.logger.addHandler(file_handler)

    def info(self, message: str):
        self.logger.info(message)

    def debug(self, message: str):
        self.logger.debug(message)

    def warning(self, message: str):
        self.logger.warning(message)

    def error(self, message: str):
        self.logger.error(message)

    def log_ingestion_start(self, source: str, level: int, feature_count: int):
        """Log the start of an ingestion batch."""
        self.info("=" * 60)
        self.info("REGION INGESTION STARTED")
        self.info("=" * 60)
        self.info(f"Source: {source}")
        self.info(f"Declared level: {level}")
        self.info(f"Features in batch: {feature_count:,}")
        self.info(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    def log_ingestion_complete(self, result, derivation_stats: Optional[dict] = None):
        """Log ingestion completion with statistics."""
        self.info("=" * 60)
        self.info("REGION INGESTION COMPLETED")
        self.info("=" * 60)
        self.info(f"Features received: {result.total:,}")
        self.info(f"Regions written: {result.processed:,}")
        self.info(f"Skipped features: {result.skipped:,}")
        self.info(f"Failed writes: {result.failed_writes:,}")
        self.info(f"Processing time: {result.duration:.2f} seconds")
        if derivation_stats:
            self.info(
                f"Codes derived so far: {derivation_stats['successful']:,} of "
                f"{derivation_stats['total_attempted']:,} attempted"
            )
        self.info(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    def log_phase_start(self, phase_name: str):
        """Log the start of a processing phase."""
        self.info("-" * 40)
        self.info(f"Starting {phase_name}")
        self.info("-" * 40)

    def log_phase_complete(self, phase_name: str, count: int, duration: float):
        """Log the completion of a processing phase."""
        self.info(f"Completed {phase_name}")
        self.info(f"Records processed: {count:,}")
        self.info(f"Duration: {duration:.2f} seconds")

    def log_file_operation(self, operation: str, file_path: str, record_count: int):
        self.info(f"{operation}: {file_path} ({record_count:,} records)")


def setup_logging(config) -> RegionLogger:
    """
    Set up logging based on configuration.

    Args:
        config: WilayahConfig instance

    Returns:
        Configured RegionLogger instance
    """
    return RegionLogger(
        name="wilayah_mapping",
        level=config.log_level,
        log_file=config.log_file
    )
