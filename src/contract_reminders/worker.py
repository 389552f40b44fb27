"""
Reminder worker process
Consumes the reminder queue and delivers due reminders
"""
import argparse
import logging
import sys

from rq import Worker

from .config import config
from .coordination import CoordinationContext
from .logging_config import setup_logging

logger = logging.getLogger(__name__)


def run_worker(argv=None) -> int:
    """
    Run an RQ worker on the reminder queue
    
    The worker also promotes delayed jobs whose send time has arrived.
    
    Args:
        argv: Command line arguments (default: sys.argv[1:])
    
    Returns:
        Process exit code
    """
    parser = argparse.ArgumentParser(description="Deliver queued contract reminders")
    parser.add_argument(
        "--burst",
        action="store_true",
        help="Exit once the queue is empty instead of waiting for new jobs",
    )
    args = parser.parse_args(argv)
    
    setup_logging(env=config.ENV, log_level=config.LOG_LEVEL)
    
    logger.info("=" * 60)
    logger.info(f"Reminder worker starting (queue={config.REMINDER_QUEUE_NAME}, burst={args.burst})")
    logger.info("=" * 60)
    
    with CoordinationContext.from_config() as coordination:
        try:
            worker = Worker([coordination.queue.queue], connection=coordination.queue_connection)
            worker.work(with_scheduler=True, burst=args.burst)
        except Exception as e:
            logger.error(f"Reminder worker stopped with error: {e}", exc_info=True)
            return 1
    
    logger.info("Reminder worker stopped")
    return 0


if __name__ == "__main__":
    sys.exit(run_worker())
