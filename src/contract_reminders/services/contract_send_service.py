"""
Immediate reminder send for a single contract
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import ReminderChannel
from ..exceptions import ContractAccessDeniedError, ContractNotFoundError
from .reminder_queue import ReminderQueue
from .reminder_store import ReminderStore

logger = logging.getLogger(__name__)


class ContractSendService:
    """Creates a zero-delay reminder and hands it to the queue right away"""

    def __init__(self, db: Session, queue: ReminderQueue, store: Optional[ReminderStore] = None):
        self.db = db
        self.queue = queue
        self.store = store or ReminderStore(db)

    def send_now(
        self,
        contract_id,
        organization_id,
        channel: str = ReminderChannel.EMAIL.value,
        template_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Send a reminder for one contract now

        Delivery still happens asynchronously in the reminder worker.

        Args:
            contract_id: Contract to remind about
            organization_id: Caller's organization (scope check)
            channel: Delivery channel
            template_id: Optional template
            now: Send time (default: current UTC time)

        Returns:
            {"reminderId": ..., "jobId": ...}

        Raises:
            ContractNotFoundError: Contract does not exist
            ContractAccessDeniedError: Contract belongs to another organization
            QueueUnavailableError: Queue rejected the job (reminder stays scheduled)
        """
        contract = self.store.get_contract(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        if str(contract.organization_id) != str(organization_id):
            logger.warning(
                f"Organization {organization_id} attempted to send reminder for contract {contract_id}"
            )
            raise ContractAccessDeniedError(contract_id)

        reminder = self.store.create(
            contract,
            send_at=now or utcnow(),
            channel=channel,
            template_id=template_id,
        )

        job = self.queue.enqueue(
            reminder.id,
            delay=None,
            payload={"contractId": str(contract.id), "trigger": "manual"},
        )
        self.store.mark_enqueued(reminder, job.id)

        logger.info(f"Reminder {reminder.id} enqueued for contract {contract.id} (job {job.id})")
        return {"reminderId": reminder.id, "jobId": job.id}
