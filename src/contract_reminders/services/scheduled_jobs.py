"""
Scheduled Jobs Service
Registers the daily locked reminder pass with the background scheduler
"""
import logging
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import config

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = 'contract_reminders'

# Global scheduler instance
_scheduler: Optional[BackgroundScheduler] = None


def get_scheduler() -> BackgroundScheduler:
    """
    Get or create the background scheduler instance

    Returns:
        BackgroundScheduler instance
    """
    global _scheduler

    if _scheduler is None:
        _scheduler = BackgroundScheduler(
            job_defaults={
                'coalesce': True,  # Combine missed runs
                'max_instances': 1,  # Only one instance at a time
                'misfire_grace_time': 3600  # 1 hour grace period
            },
            timezone='UTC'
        )

    return _scheduler


def start_scheduler(coordination=None):
    """
    Start the background scheduler and register the reminder job

    Args:
        coordination: CoordinationContext shared with the API process
            (a fresh one is created per run when omitted)
    """
    scheduler = get_scheduler()

    if not scheduler.running:
        scheduler.add_job(
            func=run_locked_reminders_job,
            trigger=CronTrigger(hour=config.SCHEDULER_CRON_HOUR, minute=config.SCHEDULER_CRON_MINUTE),
            kwargs={'coordination': coordination},
            id=REMINDER_JOB_ID,
            name='Contract reminder scheduling',
            replace_existing=True
        )
        logger.info(
            f"Registered contract reminder job "
            f"(daily at {config.SCHEDULER_CRON_HOUR:02d}:{config.SCHEDULER_CRON_MINUTE:02d} UTC)"
        )

        scheduler.start()
        logger.info("Background scheduler started")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """
    Stop the background scheduler
    """
    scheduler = get_scheduler()

    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler stopped")


def run_locked_reminders_job(coordination=None) -> Dict[str, Any]:
    """
    Daily reminder job - runs one scheduling pass under the leader lock

    Only the instance holding the lock creates reminders; every other
    instance returns immediately.

    Args:
        coordination: CoordinationContext (created and closed here if omitted)

    Returns:
        Result of LockedSchedulerRunner.acquire_and_run()
    """
    from ..coordination import CoordinationContext
    from ..db.engine import SessionLocal
    from .leader_lock import LockedSchedulerRunner
    from .reminder_scheduler import run_daily_pass

    owns_coordination = coordination is None
    if owns_coordination:
        coordination = CoordinationContext.from_config()

    logger.info("=" * 60)
    logger.info("Starting scheduled contract reminder job")
    logger.info("=" * 60)

    def work():
        db = SessionLocal()
        try:
            return run_daily_pass(db, coordination.queue)
        finally:
            db.close()

    try:
        result = LockedSchedulerRunner(coordination).acquire_and_run(work)
        logger.info(f"Contract reminder job finished: {result}")
        return result
    except Exception as e:
        # Already recorded in scheduler:last_run_error; keep the scheduler thread alive
        logger.error(f"Contract reminder job failed: {e}", exc_info=True)
        return {"acquired": True, "error": str(e)}
    finally:
        if owns_coordination:
            coordination.close()
