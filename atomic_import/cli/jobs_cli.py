"""
Command-line interface for background import jobs.

Usage:
    atomic-import-jobs status <job_id>
    atomic-import-jobs list --tenant <tenant_id> [--status running]
    atomic-import-jobs cancel <job_id>
    atomic-import-jobs pause <job_id>
    atomic-import-jobs resume <job_id>
"""

import argparse
import asyncio
import json
import sys

from atomic_import.core.errors import JobError
from atomic_import.core.models import Job, JobStatus
from atomic_import.jobs import JobTracker
from atomic_import.observability.logger import configure_logging, get_logger
from atomic_import.store.postgres import PostgresStore

logger = get_logger(__name__)


def format_job(job: Job) -> str:
    line = (
        f"{job.job_id}  {job.job_type:<12} {job.status.value:<10} "
        f"{job.progress_percent:>3}%  {job.processed_count}/{job.total_count} "
        f"(ok {job.success_count}, failed {job.failed_count})"
    )
    if job.error_message:
        line += f"  error: {job.error_message}"
    return line


async def run_jobs_command(args) -> int:
    store = await PostgresStore.connect(args.database_url)
    try:
        tracker = JobTracker(store.background_jobs)

        if args.command == "status":
            job = await tracker.get(args.job_id)
            print(json.dumps(job.model_dump(mode="json"), indent=2))
        elif args.command == "list":
            jobs = await tracker.list_for_tenant(args.tenant, status=JobStatus(args.status) if args.status else None)
            if not jobs:
                print(f"No jobs for tenant {args.tenant}")
            for job in jobs:
                print(format_job(job))
        elif args.command == "cancel":
            print(format_job(await tracker.request_cancel(args.job_id)))
        elif args.command == "pause":
            print(format_job(await tracker.request_pause(args.job_id)))
        elif args.command == "resume":
            job = await tracker.resume(args.job_id)
            print(format_job(job))
            print("Re-run the import with --resume-job to continue processing.")
    finally:
        await store.close()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="atomic-import-jobs", description="Manage background import jobs")
    parser.add_argument("--database-url", default=None,
                        help="PostgreSQL URL (defaults to DATABASE_URL or DB_* env vars)")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in [
        ("status", "Show one job"),
        ("cancel", "Request cancellation"),
        ("pause", "Request a pause at the next wave boundary"),
        ("resume", "Make a paused or failed job runnable again"),
    ]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("job_id", help="Job id")

    list_parser = subparsers.add_parser("list", help="List jobs of a tenant")
    list_parser.add_argument("--tenant", required=True, help="Tenant id")
    list_parser.add_argument("--status", choices=[s.value for s in JobStatus], default=None)

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)

    try:
        sys.exit(asyncio.run(run_jobs_command(args)))
    except JobError as e:
        logger.error(str(e), extra={"error_code": e.code})
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
