"""
Command-line interface for grouped imports.

Usage:
    atomic-import orders --input <file.csv> [options]
    atomic-import skus --input <file.csv> [--upsert-mode update] [options]
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from atomic_import.config import load_settings
from atomic_import.core.errors import AtomicImportError
from atomic_import.core.models import ProgressEvent, ProgressPhase
from atomic_import.engine import ImportOptions, OrderImporter, SkuImporter
from atomic_import.jobs import JobTracker
from atomic_import.observability.logger import configure_logging, get_logger
from atomic_import.observability.metrics import start_metrics_server
from atomic_import.readers import SparkCSVReader, create_spark_session
from atomic_import.store import EntityStore, InMemoryStore
from atomic_import.store.postgres import PostgresStore

logger = get_logger(__name__)

IMPORTERS = {"orders": OrderImporter, "skus": SkuImporter}


def print_progress(event: ProgressEvent) -> None:
    if event.phase == ProgressPhase.GROUP_COMPLETED:
        print(f"[{event.current}/{event.total}] {event.message}")
    elif event.phase in (ProgressPhase.FINISHED, ProgressPhase.CANCELLED, ProgressPhase.PAUSED):
        print(event.message)


async def open_store(args) -> EntityStore:
    if args.backend == "postgres":
        return await PostgresStore.connect(args.database_url)
    return InMemoryStore()


async def run_import_command(args) -> int:
    """
    Execute an import command.

    Returns:
        Process exit code (0 when every group succeeded)
    """
    settings = load_settings(args.settings, dotenv_path=args.env_file)
    if args.rules:
        settings = settings.model_copy(update={"rules_path": args.rules})

    logger.info(f"Reading input file: {args.input}")
    spark = create_spark_session(f"AtomicImport-{args.command}")
    try:
        rows = SparkCSVReader(spark).read_rows(args.input, delimiter=args.delimiter)
    finally:
        spark.stop()

    options = ImportOptions(
        upsert_mode=args.upsert_mode or settings.upsert_mode,
        stock_mode=args.stock_mode or settings.stock_mode,
        concurrency=args.concurrency,
        tenant_id=args.tenant,
    )

    store = await open_store(args)
    try:
        importer = IMPORTERS[args.command](store, settings=settings)

        if args.job or args.resume_job:
            tracker = JobTracker(store.background_jobs)
            job_id = None
            if args.resume_job:
                job = await tracker.resume(args.resume_job)
                job_id = job.job_id
                options = options.model_copy(update={"start_index": int(job.result.get("next_index", 0))})
            job, result = await importer.run_import_job(
                rows, tracker, options, on_progress=print_progress, tenant_id=args.tenant, job_id=job_id,
            )
            print(f"Job {job.job_id}: {job.status.value}")
        else:
            result = await importer.run_import(rows, options, on_progress=print_progress)
    finally:
        await store.close()

    print("=" * 60)
    for key, value in result.summary().items():
        print(f"{key:>12}: {value}")
    for warning in result.warnings:
        print(f"WARNING: {warning}")
    print("=" * 60)

    if args.failed_rows and result.errors:
        Path(args.failed_rows).write_text(json.dumps(result.failed_rows(), indent=2, default=str))
        logger.info(f"Wrote {len(result.failed_rows())} failed rows to {args.failed_rows}")

    return 0 if result.fail_count == 0 else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="atomic-import",
        description="Grouped, all-or-nothing import of orders and SKUs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import orders into a local PostgreSQL store
  atomic-import orders --input data/orders.csv --backend postgres

  # Update existing SKUs, adding stock deltas
  atomic-import skus --input data/skus.csv --upsert-mode update --stock-mode delta

  # Run as a tracked job and keep the failed rows
  atomic-import orders --input data/orders.csv --job --failed-rows failed.json
        """,
    )

    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--log-format", choices=["json", "text"], default=None,
                        help="Log output format (default: LOG_FORMAT or json)")

    subparsers = parser.add_subparsers(dest="command", help="Entity kind to import")
    for name in IMPORTERS:
        sub = subparsers.add_parser(name, help=f"Import {name} from a CSV file")
        sub.add_argument("--input", required=True, help="Path to input CSV file")
        sub.add_argument("--delimiter", default=",", help="Field delimiter (default: ,)")
        sub.add_argument("--backend", choices=["memory", "postgres"], default="memory",
                         help="Entity store backend (default: memory, a dry run)")
        sub.add_argument("--database-url", default=None,
                         help="PostgreSQL URL (defaults to DATABASE_URL or DB_* env vars)")
        sub.add_argument("--tenant", default=None, help="Tenant id for lookups and created records")
        sub.add_argument("--upsert-mode", choices=["skip", "update", "fail"], default=None,
                         help="Handling of existing keys (default from settings)")
        sub.add_argument("--stock-mode", choices=["set", "delta"], default=None,
                         help="Stock aggregation for SKU imports (default from settings)")
        sub.add_argument("--concurrency", type=int, default=None, help="Groups per wave")
        sub.add_argument("--settings", default=None, help="Path to import settings YAML")
        sub.add_argument("--rules", default=None, help="Path to validation rules YAML")
        sub.add_argument("--env-file", default=None, help="Optional .env file to load")
        sub.add_argument("--job", action="store_true", help="Track the run as a background job")
        sub.add_argument("--resume-job", default=None, help="Resume a paused or failed job by id")
        sub.add_argument("--failed-rows", default=None, help="Write failed rows as JSON to this path")
        sub.add_argument("--metrics-port", type=int, default=None, help="Expose Prometheus metrics")

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level, args.log_format)

    if not Path(args.input).exists():
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    try:
        sys.exit(asyncio.run(run_import_command(args)))
    except AtomicImportError as e:
        logger.error(f"Import failed: {e}", extra={"error_code": e.code}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
