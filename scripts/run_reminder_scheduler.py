#!/usr/bin/env python
"""
Contract Reminder Scheduler - one-off run
Runs a single scheduling pass, through the leader lock by default

Usage:
    python scripts/run_reminder_scheduler.py [--unlocked] [--windows 30,14,7,1]

Schedule:
    Use when the in-process scheduler is disabled, e.g. from cron:
    0 6 * * * cd /app && python scripts/run_reminder_scheduler.py >> /var/log/reminders.log 2>&1
"""
import argparse
import logging
import sys

from contract_reminders.config import config
from contract_reminders.coordination import CoordinationContext
from contract_reminders.db.engine import SessionLocal
from contract_reminders.logging_config import setup_logging
from contract_reminders.services.leader_lock import LockedSchedulerRunner
from contract_reminders.services.reminder_scheduler import run_daily_pass

logger = logging.getLogger(__name__)


def parse_windows(value: str):
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid windows: {value}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run one contract reminder scheduling pass")
    parser.add_argument(
        "--unlocked",
        action="store_true",
        help="Skip the leader lock (single-instance deployments only)",
    )
    parser.add_argument(
        "--windows",
        type=parse_windows,
        default=None,
        help="Comma separated days before expiry (default: REMINDER_WINDOWS)",
    )
    args = parser.parse_args(argv)
    
    setup_logging(env=config.ENV, log_level=config.LOG_LEVEL)
    
    with CoordinationContext.from_config() as coordination:
        db = SessionLocal()
        try:
            work = lambda: run_daily_pass(db, coordination.queue, windows=args.windows)
            
            if args.unlocked:
                logger.warning("Running scheduler WITHOUT the leader lock")
                created = work()
                result = {"acquired": None, "created": len(created)}
            else:
                result = LockedSchedulerRunner(coordination).acquire_and_run(work)
        except Exception as e:
            logger.error(f"Scheduler run failed: {e}", exc_info=True)
            return 1
        finally:
            db.close()
    
    logger.info(f"Scheduler run result: {result}")
    return 1 if result.get("error") else 0


if __name__ == "__main__":
    sys.exit(main())
