"""
Main entry point for the wilayah mapping application.

This script provides the command-line interface for preparing the store,
ingesting boundary files and running status, hierarchy and search queries.
"""

import argparse
import gc
import json
import sys
import time
from pathlib import Path

import psutil

# Add the current directory to Python path for imports
sys.path.insert(0, str(Path(__file__).parent))

from wilayah_mapping.config import WilayahConfig
from wilayah_mapping.exceptions import WilayahMappingError, StoreUnavailableError
from wilayah_mapping.logging_config import setup_logging
from wilayah_mapping.service import RegionService
from wilayah_mapping.utils.error_handler import log_error_details


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Wilayah Mapping - ingest and query Indonesian administrative boundaries"
    )

    parser.add_argument(
        "--backend",
        choices=["postgres", "supabase", "memory"],
        help="Store backend (default: WILAYAH_BACKEND or postgres)"
    )

    parser.add_argument(
        "--env-file",
        help="Path to a .env file with connection settings"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-file",
        help="Also write logs to this file"
    )

    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars during ingestion"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the region table and indexes")

    ingest = subparsers.add_parser("ingest", help="Ingest a GeoJSON boundary file")
    ingest.add_argument("file", help="Path to the GeoJSON file")
    level_group = ingest.add_mutually_exclusive_group()
    level_group.add_argument(
        "--level",
        type=int,
        choices=[1, 2, 3, 4],
        help="Declared hierarchy level (default: detected from the file name)"
    )
    level_group.add_argument(
        "--source-tag",
        help="Source tag used for level detection instead of the file name"
    )

    status = subparsers.add_parser("status", help="Show stored region counts under a code")
    status.add_argument("code", nargs="?", default="", help="Region code prefix (default: all)")

    query = subparsers.add_parser("query", help="Compose the hierarchy bundle for a code")
    query.add_argument("code", help="Region code, e.g. 11.01")
    query.add_argument("--output", help="Write the bundle as JSON to this file")

    search = subparsers.add_parser("search", help="Search regions by name")
    search.add_argument("text", help="Search text (at least 3 characters)")

    subparsers.add_parser("seed", help="Seed top-level regions when the store has none")

    return parser.parse_args(argv)


class PerformanceMonitor:
    """Monitor memory and timing of long-running ingestion commands."""

    def __init__(self, logger=None):
        """Initialize performance monitor."""
        self.logger = logger
        self.process = psutil.Process()
        self.start_time = time.time()
        self.memory_snapshots = []

    def log_memory_usage(self, checkpoint_name: str):
        """Log current memory usage."""
        memory_mb = self.process.memory_info().rss / 1024 / 1024
        self.memory_snapshots.append(memory_mb)

        if self.logger:
            self.logger.info(f"Memory usage at {checkpoint_name}: {memory_mb:.1f} MB")

    def force_garbage_collection(self):
        """Release the loaded feature batch and log the memory impact."""
        before_memory = self.process.memory_info().rss / 1024 / 1024
        collected = gc.collect()
        after_memory = self.process.memory_info().rss / 1024 / 1024

        if self.logger:
            self.logger.info(
                f"Garbage collection: freed {before_memory - after_memory:.1f} MB, "
                f"collected {collected} objects"
            )

    def get_performance_summary(self) -> dict:
        return {
            'total_execution_time': time.time() - self.start_time,
            'peak_memory_mb': max(self.memory_snapshots, default=0.0)
        }


def build_config(args) -> WilayahConfig:
    """Create configuration from the environment and command line overrides."""
    return WilayahConfig.from_env(
        env_file=args.env_file,
        backend=args.backend,
        log_level=args.log_level,
        log_file=args.log_file,
        show_progress=False if args.no_progress else None
    )


def print_ingestion_summary(result, perf_summary):
    """Print a summary of an ingestion run to console."""
    print("\n" + "=" * 60)
    print("REGION INGESTION COMPLETED")
    print("=" * 60)
    print(f"  Declared level: {result.level}")
    print(f"  Features received: {result.total:,}")
    print(f"  Regions written: {result.processed:,}")
    print(f"  Skipped features: {result.skipped:,}")
    print(f"  Failed writes: {result.failed_writes:,}")
    print(f"  Success rate: {result.get_success_rate():.2f}%")
    print(f"  Execution time: {perf_summary['total_execution_time']:.2f} seconds")
    print(f"  Peak memory usage: {perf_summary['peak_memory_mb']:.1f} MB")

    if result.failures:
        print("\nFirst failures:")
        for failure in result.failures[:10]:
            print(f"  feature {failure['feature_index']}: {failure['error_type']} - {failure['message']}")


def run_command(service: RegionService, args, logger) -> int:
    """Dispatch a parsed sub-command; returns the process exit code."""
    if args.command == "init-db":
        service.start(seed=False)
        print("Region table is ready")
        return 0

    if args.command == "ingest":
        service.start(seed=False)
        perf_monitor = PerformanceMonitor(logger.logger)
        perf_monitor.log_memory_usage("ingest_start")
        result = service.ingest_file(args.file, level=args.level, source_tag=args.source_tag)
        perf_monitor.log_memory_usage("ingest_end")
        perf_monitor.force_garbage_collection()
        print_ingestion_summary(result, perf_monitor.get_performance_summary())
        return 0 if result.processed > 0 or result.total == 0 else 1

    if args.command == "status":
        print(json.dumps(service.status(args.code).to_dict(), indent=2))
        return 0

    if args.command == "query":
        bundle = service.query_hierarchy(args.code).to_dict()
        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(bundle, f)
            logger.log_file_operation("Wrote hierarchy bundle", str(output_path),
                                      sum(len(v['data']['features']) for v in bundle.values() if v['data']))
        else:
            print(json.dumps(bundle, indent=2))
        return 0

    if args.command == "search":
        print(json.dumps(service.search(args.text), indent=2))
        return 0

    if args.command == "seed":
        service.start(seed=False)
        result = service.seed()
        if result is None:
            print("Bootstrap seeding did not run; see the log for details")
            return 0 if service.checker.has_bootstrap_data() else 1
        print(f"Seeded {result.processed:,} top-level regions")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None):
    """Main application entry point."""
    args = parse_arguments(argv)

    try:
        config = build_config(args)
    except WilayahMappingError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(config)
    logger.debug(f"Configuration: {config.to_dict()}")

    try:
        with RegionService(config, logger=logger) as service:
            return run_command(service, args, logger)
    except StoreUnavailableError as e:
        log_error_details(logger.logger, e)
        print(f"Store unavailable: {e}", file=sys.stderr)
        return 1
    except WilayahMappingError as e:
        log_error_details(logger.logger, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
