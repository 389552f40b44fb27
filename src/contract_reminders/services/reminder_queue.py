"""
Reminder Queue
Thin boundary around the RQ queue holding one delayed job per reminder
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.job import Job
from rq.registry import (
    FailedJobRegistry,
    FinishedJobRegistry,
    ScheduledJobRegistry,
    StartedJobRegistry,
)
from rq.suspension import is_suspended

from ..exceptions import QueueUnavailableError

logger = logging.getLogger(__name__)

# Referenced by import path so enqueuers never import the worker module
REMINDER_JOB_FUNCTION = "contract_reminders.services.reminder_worker.run_reminder_job"


class ReminderQueue:
    """
    Delayed reminder delivery queue
    
    Every job is named after its reminder, retried with exponential backoff
    and removed once it completes. Delivery is at-least-once; the worker's
    idempotence check prevents duplicate sends.
    """
    
    def __init__(
        self,
        connection,
        name: str = "reminders",
        attempts: int = 3,
        backoff_seconds: int = 1,
        failure_ttl: Optional[int] = None,
    ):
        """
        Args:
            connection: Redis client created with decode_responses=False
            name: Queue name
            attempts: Total delivery attempts per job (first try included)
            backoff_seconds: Base delay of the exponential retry backoff
            failure_ttl: Seconds failed jobs stay in the failed registry
        """
        self.name = name
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.failure_ttl = failure_ttl
        self.queue = Queue(name, connection=connection)
    
    @staticmethod
    def job_id_for(reminder_id) -> str:
        return f"reminder-{reminder_id}"
    
    def retry_intervals(self) -> List[int]:
        """Backoff delays before each retry: base, 2*base, 4*base, ..."""
        return [self.backoff_seconds * (2 ** i) for i in range(self.attempts - 1)]
    
    def retry_policy(self) -> Optional[Retry]:
        intervals = self.retry_intervals()
        if not intervals:
            return None
        return Retry(max=len(intervals), interval=intervals)
    
    def enqueue(
        self,
        reminder_id,
        delay: Optional[timedelta] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """
        Enqueue delivery of one reminder
        
        Args:
            reminder_id: Reminder primary key
            delay: Time to wait before the job becomes runnable (None/zero = now)
            payload: Extra data stored in the job meta
        
        Returns:
            The RQ job
        
        Raises:
            QueueUnavailableError: If the queue backend cannot accept the job
        """
        job_options = dict(
            job_id=self.job_id_for(reminder_id),
            retry=self.retry_policy(),
            result_ttl=0,
            failure_ttl=self.failure_ttl,
            description=f"Deliver reminder {reminder_id}",
            meta={"reminderId": str(reminder_id), **(payload or {})},
        )
        
        try:
            if delay is not None and delay.total_seconds() > 0:
                job = self.queue.enqueue_in(delay, REMINDER_JOB_FUNCTION, reminder_id, **job_options)
                logger.debug(f"Scheduled job {job.id} in {delay}")
            else:
                job = self.queue.enqueue(REMINDER_JOB_FUNCTION, reminder_id, **job_options)
                logger.debug(f"Enqueued job {job.id} for immediate delivery")
        except RedisError as e:
            raise QueueUnavailableError(f"Reminder queue unavailable: {e}") from e
        
        return job
    
    def job_counts(self) -> Dict[str, int]:
        """
        Job counts by state
        
        Returns:
            Dictionary with waiting, active, delayed, failed, completed and paused counts
        """
        waiting = self.queue.count
        return {
            "waiting": waiting,
            "active": StartedJobRegistry(queue=self.queue).count,
            "delayed": ScheduledJobRegistry(queue=self.queue).count,
            "failed": FailedJobRegistry(queue=self.queue).count,
            "completed": FinishedJobRegistry(queue=self.queue).count,
            "paused": waiting if is_suspended(self.queue.connection) else 0,
        }
