"""
Daily Reminder Scheduler
Ensures every contract nearing expiry has its reminders created and enqueued.

Must run through LockedSchedulerRunner in production; the existence check
here is a second, local idempotence layer, not a substitute for the lock.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ..config import config
from ..db.base import utcnow
from ..db.models import Reminder, ReminderChannel
from ..exceptions import QueueUnavailableError
from .reminder_queue import ReminderQueue
from .reminder_store import ReminderStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOWS = (30, 14, 7, 1)

# Send times older than this are stale and never scheduled
STALE_TOLERANCE = timedelta(hours=1)


class ReminderSchedulerService:
    """
    One scheduling pass over contracts nearing expiry

    Features:
    - Single bounded query covering every window that can still fire
    - Skips organizations that opted out (scheduler_enabled is False)
    - Never duplicates a (contract, send time) pair across runs
    - Keeps reminders whose enqueue failed in the scheduled state
    """

    def __init__(self, db: Session, queue: ReminderQueue, store: Optional[ReminderStore] = None):
        self.db = db
        self.queue = queue
        self.store = store or ReminderStore(db)

    def run(self, windows: Optional[Sequence[int]] = None, now: Optional[datetime] = None) -> List[Reminder]:
        """
        Run one scheduling pass

        Args:
            windows: Days before expiry to remind (default: REMINDER_WINDOWS)
            now: Reference time (default: current UTC time)

        Returns:
            Every reminder created during this pass
        """
        windows = list(windows or config.REMINDER_WINDOWS or DEFAULT_WINDOWS)
        now = now or utcnow()
        stale_before = now - STALE_TOLERANCE

        cutoff = now + timedelta(days=max(windows) + 1)
        contracts = self.store.contracts_expiring_before(cutoff)
        logger.info(f"Scheduler pass: {len(contracts)} contracts expire before {cutoff.isoformat()}")

        created: List[Reminder] = []
        organization_enabled = {}

        for contract in contracts:
            org_id = contract.organization_id
            if org_id not in organization_enabled:
                organization = self.store.get_organization(org_id)
                organization_enabled[org_id] = organization is None or organization.reminders_enabled
            if not organization_enabled[org_id]:
                logger.debug(f"Skipping contract {contract.id}: organization {org_id} disabled reminders")
                continue

            for days_before in windows:
                send_at = contract.expiry_date - timedelta(days=days_before)
                if send_at < stale_before:
                    continue
                if self.store.exists_for(contract.id, send_at):
                    continue

                reminder = self.store.create(
                    contract,
                    send_at=send_at,
                    channel=ReminderChannel.EMAIL.value,
                )
                self._enqueue(reminder, now)
                created.append(reminder)

        logger.info(f"Scheduler pass created {len(created)} reminders")
        return created

    def requeue_scheduled(self, now: Optional[datetime] = None) -> List[Reminder]:
        """
        Retry enqueueing reminders left in the scheduled state

        Covers reminders whose enqueue failed in an earlier pass (or on the
        immediate-send path) and whose send time is not yet stale.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Reminders that were enqueued by this call
        """
        now = now or utcnow()
        pending = self.store.list_unqueued(now - STALE_TOLERANCE)
        requeued = [reminder for reminder in pending if self._enqueue(reminder, now)]

        if pending:
            logger.info(f"Requeued {len(requeued)} of {len(pending)} unqueued reminders")
        return requeued

    def _enqueue(self, reminder: Reminder, now: datetime) -> bool:
        """Enqueue a delayed job; on failure leave the reminder scheduled"""
        delay = max(timedelta(0), reminder.send_at - now)
        try:
            job = self.queue.enqueue(
                reminder.id,
                delay=delay,
                payload={"contractId": str(reminder.contract_id)},
            )
        except QueueUnavailableError as e:
            logger.warning(f"Failed to enqueue reminder {reminder.id}: {e}")
            return False

        self.store.mark_enqueued(reminder, job.id)
        return True


def run_daily_pass(
    db: Session,
    queue: ReminderQueue,
    windows: Optional[Sequence[int]] = None,
    now: Optional[datetime] = None,
    requeue: Optional[bool] = None,
) -> List[Reminder]:
    """
    Scheduling pass followed by the unqueued-reminder recovery step

    Args:
        db: Database session
        queue: Reminder queue
        windows: Reminder windows in days
        now: Reference time
        requeue: Run the recovery step (default: REMINDER_REQUEUE_SCHEDULED)

    Returns:
        Reminders created by the scheduling pass
    """
    service = ReminderSchedulerService(db, queue)
    created = service.run(windows=windows, now=now)

    if config.REMINDER_REQUEUE_SCHEDULED if requeue is None else requeue:
        service.requeue_scheduled(now=now)

    return created
