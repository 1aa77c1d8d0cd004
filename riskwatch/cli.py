"""
Riskwatch command line.

Usage:
    # Run one rule job
    riskwatch run rework-trend

    # Bypass dedup and cooldowns (manual testing only)
    riskwatch run overwork --force

    # Every job once, then the list of jobs
    riskwatch run-all
    riskwatch list

    # Create tables / run the blocking scheduler loop
    riskwatch init-db
    riskwatch schedule

Exit code is 0 when a run completes, even if some entities failed, and 1 on a
fatal error or an unknown job name.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from riskwatch.config import settings
from riskwatch.database import init_models
from riskwatch.detection.base import JobSummary
from riskwatch.detection.scheduler import JOB_REGISTRY, UnknownJobError, run_all, run_job, setup_apscheduler

logger = logging.getLogger("riskwatch.cli")


def print_summary(summary: JobSummary) -> None:
    print("\n" + "=" * 60)
    print(f"{summary.job}{' (forced)' if summary.forced else ''}")
    print("=" * 60)
    print(f"  Tenants:            {summary.tenants}")
    print(f"  Checked:            {summary.checked}")
    print(f"  Triggered:          {summary.triggered}")
    print(f"  Notifications:      {summary.notifications_created} created, {summary.notifications_updated} updated")
    print(f"  Emails:             {summary.emails_sent} sent, {summary.emails_failed} failed")
    print(f"  State changes:      {summary.state_changes}")
    print(f"  Skipped:            {summary.skipped}")
    print(f"  Failed:             {summary.failed}")
    for error in summary.errors:
        print(f"  ✗ {error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="riskwatch",
        description="Project-health rule jobs and alert escalation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run one job")
    run_parser.add_argument("job", help="Job name (see `riskwatch list`)")
    run_parser.add_argument(
        "--force",
        action="store_true",
        help="Bypass dedup and cooldown checks",
    )

    run_all_parser = subparsers.add_parser("run-all", help="Run every job once")
    run_all_parser.add_argument(
        "--force",
        action="store_true",
        help="Bypass dedup and cooldown checks",
    )

    subparsers.add_parser("list", help="List registered jobs")
    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("schedule", help="Run jobs on their schedules until interrupted")
    return parser


async def schedule_forever() -> None:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    scheduler = AsyncIOScheduler()
    setup_apscheduler(scheduler)
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)


def list_jobs() -> None:
    for entry in JOB_REGISTRY.values():
        schedule = ", ".join(f"{k}={v}" for k, v in entry.trigger_args.items())
        print(f"  {entry.name:<24} {entry.trigger} ({schedule})  {entry.description}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "list":
            list_jobs()
        elif args.command == "init-db":
            asyncio.run(init_models())
            print("Tables created")
        elif args.command == "run":
            print_summary(asyncio.run(run_job(args.job, force=args.force)))
        elif args.command == "run-all":
            for summary in asyncio.run(run_all(force=args.force)):
                print_summary(summary)
        elif args.command == "schedule":
            asyncio.run(schedule_forever())
    except UnknownJobError as e:
        logger.error(f"Unknown job {e.args[0]!r}; known jobs: {', '.join(JOB_REGISTRY)}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        logger.exception(f"Fatal error running {args.command}: {e}")
        return 1

    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
