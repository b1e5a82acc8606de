"""
Command-line interface for the review history pipeline.

Usage:
    review-history run --mode seed --input data/reviews.json
    review-history run --mode incremental --input data/reviews.json [--simulate]
    review-history repair
    review-history check
"""

import argparse
import json
import sys
from pathlib import Path

from pyspark.sql import SparkSession

from review_history.batch.pipeline import HistoryPipeline
from review_history.batch.readers.file_reader import SUPPORTED_FORMATS
from review_history.core.config import load_pipeline_config
from review_history.core.errors import HistoryPipelineError
from review_history.observability.logger import get_logger
from review_history.observability.metrics import start_metrics_server
from review_history.warehouse import (
    DatabaseConnectionPool,
    DatabaseSettings,
    HistoryTableManager,
    InMemoryHistoryStore,
    PostgresHistoryStore,
)

logger = get_logger(__name__)


def create_spark_session(app_name: str = "ReviewHistory") -> SparkSession:
    """
    Create Spark session for batch processing.

    Args:
        app_name: Application name

    Returns:
        SparkSession
    """
    spark = SparkSession.builder \
        .appName(app_name) \
        .master("local[*]") \
        .config("spark.sql.adaptive.enabled", "true") \
        .config("spark.sql.adaptive.coalescePartitions.enabled", "true") \
        .getOrCreate()

    return spark


def create_pool(args) -> DatabaseConnectionPool:
    settings = DatabaseSettings.from_env(
        host=args.db_host,
        port=args.db_port,
        dbname=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool = DatabaseConnectionPool(settings)
    pool.open()
    return pool


def require_history_table(pool: DatabaseConnectionPool, table_name: str) -> bool:
    if HistoryTableManager(pool, table_name).table_exists():
        return True
    logger.error(f"History table '{table_name}' does not exist; run a seed first")
    return False


def run_command(args) -> int:
    """
    Execute a seed or incremental run.

    Args:
        args: Command-line arguments

    Returns:
        Process exit code
    """
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input file not found: {args.input}")
        return 1

    config = load_pipeline_config(args.config)
    if args.simulate:
        config.simulation.enabled = True
    if args.simulate_seed is not None:
        config.simulation.seed = args.simulate_seed

    spark = create_spark_session(f"ReviewHistory-{args.mode}")
    pool = None

    try:
        if args.dry_run:
            logger.info("DRY RUN MODE: history is built in memory and discarded")
            store = InMemoryHistoryStore()
        else:
            pool = create_pool(args)
            HistoryTableManager(pool, config.table_name).create_table()
            store = PostgresHistoryStore(pool, config.table_name)

        pipeline = HistoryPipeline.from_config(store, config, spark=spark)
        result = pipeline.process_file(
            str(input_path),
            mode=args.mode,
            file_format=args.format,
            full_refresh=args.full_refresh,
        )

        logger.info("=" * 60)
        logger.info(f"RUN COMPLETE ({result.mode})")
        logger.info("=" * 60)
        logger.info(f"Records received:   {result.total_records}")
        logger.info(f"Records rejected:   {result.rejected_records}")
        logger.info(f"Duplicates removed: {result.duplicate_records}")
        logger.info(f"Rows inserted:      {result.inserted_rows}")
        logger.info(f"Rows expired:       {result.expired_rows}")
        if result.simulated_keys:
            logger.info(f"Simulated changes:  {len(result.simulated_keys)}")
        logger.info("=" * 60)
        return 0

    except (HistoryPipelineError, ValueError) as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        return 1
    finally:
        if pool is not None:
            pool.close()
        spark.stop()


def repair_command(args) -> int:
    """Close rows left current by an interrupted run."""
    config = load_pipeline_config(args.config)
    pool = None
    try:
        pool = create_pool(args)
        if not require_history_table(pool, config.table_name):
            return 1
        store = PostgresHistoryStore(pool, config.table_name)
        expired = HistoryPipeline(store, config=config).repair()
        logger.info(f"Repair complete: {expired} rows expired")
        return 0
    except (HistoryPipelineError, ValueError) as e:
        logger.error(f"Repair failed: {e}", exc_info=True)
        return 1
    finally:
        if pool is not None:
            pool.close()


def check_command(args) -> int:
    """Report SCD-2 invariant violations; exit code 2 when any are found."""
    config = load_pipeline_config(args.config)
    pool = None
    try:
        pool = create_pool(args)
        if not require_history_table(pool, config.table_name):
            return 1
        report = PostgresHistoryStore(pool, config.table_name).check_invariants()
        print(json.dumps(report.model_dump(), indent=2))
        if not report.ok:
            logger.warning("History table violates SCD-2 invariants")
            return 2
        return 0
    except (HistoryPipelineError, ValueError) as e:
        logger.error(f"Check failed: {e}", exc_info=True)
        return 1
    finally:
        if pool is not None:
            pool.close()


def add_db_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", default="config/pipeline.yaml", help="Pipeline config YAML")
    parser.add_argument("--db-host", default=None, help="Database host (default: $DB_HOST)")
    parser.add_argument("--db-port", type=int, default=None, help="Database port (default: $DB_PORT)")
    parser.add_argument("--db-name", default=None, help="Database name (default: $DB_NAME)")
    parser.add_argument("--db-user", default=None, help="Database user (default: $DB_USER)")
    parser.add_argument("--db-password", default=None, help="Database password (default: $DB_PASSWORD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review-history",
        description="SCD-2 review history pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # First load
  review-history run --mode seed --input data/reviews.json

  # Daily load with synthetic changes for a test environment
  review-history run --mode incremental --input data/reviews.json --simulate --simulate-seed 42

  # Rebuild history from scratch
  review-history run --mode seed --input data/reviews.json --full-refresh

  # Recover after a run was interrupted between insert and expire
  review-history repair
        """
    )
    parser.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Load a review file into history")
    run_parser.add_argument("--mode", required=True, choices=["seed", "incremental"], help="Run mode")
    run_parser.add_argument("--input", required=True, help="Path to input file")
    run_parser.add_argument(
        "--format", default="json", choices=SUPPORTED_FORMATS, help="Input file format (default: json)"
    )
    run_parser.add_argument("--full-refresh", action="store_true", help="Seed only: replace existing history")
    run_parser.add_argument("--simulate", action="store_true", help="Enable the mutation simulator")
    run_parser.add_argument("--simulate-seed", type=int, default=None, help="Random seed for the simulator")
    run_parser.add_argument("--dry-run", action="store_true", help="Use an in-memory store; write nothing")
    add_db_arguments(run_parser)

    repair_parser = subparsers.add_parser("repair", help="Expire rows superseded by newer versions")
    add_db_arguments(repair_parser)

    check_parser = subparsers.add_parser("check", help="Check history invariants")
    add_db_arguments(check_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    commands = {
        "run": run_command,
        "repair": repair_command,
        "check": check_command,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
