"""
Startup recovery sweep.

Fails processing jobs orphaned by a crash or restart: jobs whose lease expired,
and lease-less jobs not updated within the stuck-job threshold. Interrupted
work is not resumed.

Usage:
    python -m api_gateway.recovery [--dry-run] [--threshold-minutes N]
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from shared.config import settings
from shared.database import DatabaseClient
from shared.logging import get_logger
from shared.models.job import Job
from modules.job_store import JobStore

logger = get_logger(__name__)


async def recover_stuck_jobs(
    job_store: JobStore,
    threshold_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Job]:
    """
    Mark orphaned processing jobs as failed.

    Args:
        job_store: Job store to sweep
        threshold_minutes: Staleness threshold for lease-less jobs
            (default: settings.stuck_job_threshold_minutes)
        now: Reference time (default: current UTC time)

    Returns:
        Jobs that were marked failed
    """
    minutes = settings.stuck_job_threshold_minutes if threshold_minutes is None else threshold_minutes
    recovered = await job_store.recover_stuck_jobs(timedelta(minutes=minutes), now=now)
    logger.info(
        "Recovery sweep finished",
        extra={"recovered_count": len(recovered), "threshold_minutes": minutes}
    )
    return recovered


async def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point for operators."""
    parser = argparse.ArgumentParser(
        description="Fail processing jobs left behind by a crashed or restarted server"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the jobs that would be recovered without changing them"
    )
    parser.add_argument(
        "--threshold-minutes",
        type=int,
        default=settings.stuck_job_threshold_minutes,
        help=f"Staleness threshold for jobs without a lease (default: {settings.stuck_job_threshold_minutes})"
    )
    args = parser.parse_args(argv)

    job_store = JobStore(DatabaseClient())

    if args.dry_run:
        jobs = await job_store.find_stuck_jobs(timedelta(minutes=args.threshold_minutes))
        print(f"{len(jobs)} job(s) would be recovered")
    else:
        jobs = await recover_stuck_jobs(job_store, args.threshold_minutes)
        print(f"{len(jobs)} job(s) recovered")

    for job in jobs:
        print(f"  {job.id}  user={job.user_id}  updated_at={job.updated_at.isoformat()}")
    return 0


def cli() -> None:
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
