"""
Reminder Worker
Delivers one reminder per queue job: render, send, record, audit.
"""
import logging
from typing import Any, Callable, Dict, Optional

from rq import get_current_job
from sqlalchemy.orm import Session

from ..config import config
from ..db.base import utcnow
from ..db.engine import SessionLocal
from ..db.models import Reminder, ReminderChannel, ReminderStatus
from ..exceptions import (
    PermanentDeliveryError,
    ReminderNotFoundError,
    UnsupportedChannelError,
)
from ..logging_config import request_id_var, set_job_context
from .contract_audit import AuditAction, SYSTEM_ACTOR, append_contract_audit, build_audit_entry
from .email_provider import EmailMessage, EmailProvider, get_email_provider
from .reminder_store import ReminderStore
from .template_renderer import build_context, render_reminder

logger = logging.getLogger(__name__)


class ReminderDeliveryService:
    """
    Processes reminder delivery jobs

    Delivery is at-least-once at the queue level; a reminder already marked
    sent is acknowledged without sending again.
    """

    def __init__(
        self,
        db: Session,
        email_provider: Optional[EmailProvider] = None,
        clock: Callable[[], Any] = utcnow,
    ):
        self.db = db
        self.store = ReminderStore(db)
        self.email_provider = email_provider or get_email_provider()
        self.clock = clock

    def process(self, reminder_id) -> Dict[str, Any]:
        """
        Deliver a reminder

        Args:
            reminder_id: Reminder primary key

        Returns:
            {"ok": True, "info": provider info} after sending, or
            {"ok": True, "reason": "already-sent"} for a redelivered job

        Raises:
            ReminderNotFoundError: Reminder does not exist
            UnsupportedChannelError: Channel has no dispatcher
            Exception: Send failures propagate to the queue's retry machinery
        """
        reminder = self.store.get(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)

        if reminder.status == ReminderStatus.SENT.value:
            logger.info(f"Reminder {reminder_id} already sent; skipping")
            return {"ok": True, "reason": "already-sent"}

        contract = self.store.get_contract(reminder.contract_id)
        template = self.store.get_template(reminder.template_id)
        tenant = self.store.get_tenant(reminder.tenant_id or (contract.tenant_id if contract else None))
        organization = self.store.get_organization(reminder.organization_id)

        context = build_context(contract=contract, tenant=tenant, organization=organization)
        rendered = render_reminder(template, context)

        info = self._dispatch(reminder, contract, rendered)

        self.store.mark_sent(reminder)
        logger.info(f"Reminder {reminder.id} sent via {reminder.channel}")

        # The notification is already out; a lost audit entry must not trigger a resend
        try:
            entry = build_audit_entry(
                AuditAction.REMINDER_SENT,
                by=SYSTEM_ACTOR,
                meta={"reminderId": reminder.id, "providerInfo": info},
                at=self.clock(),
            )
            append_contract_audit(self.db, reminder.contract_id, entry)
        except Exception as e:
            logger.warning(f"Failed to append audit for reminder {reminder.id}: {e}")

        return {"ok": True, "info": info}

    def _dispatch(self, reminder: Reminder, contract, rendered: Dict[str, str]) -> Dict[str, Any]:
        if reminder.channel != ReminderChannel.EMAIL.value:
            raise UnsupportedChannelError(reminder.channel)

        recipient = (contract.primary_contact if contract else None) or config.DEV_NOTIFICATION_EMAIL
        message = EmailMessage(
            to=recipient,
            subject=rendered["subject"],
            html_body=rendered["html"],
            text_body=rendered["text"],
            from_address=config.EMAIL_FROM,
        )
        return self.email_provider.send(message)

    def record_failure(self, reminder_id, error: BaseException, final: bool = False) -> None:
        """
        Record a failed delivery attempt on the reminder

        Only used when REMINDER_RECORD_FAILED_ATTEMPTS is enabled. Never
        raises; the original delivery error is what the queue must see.
        """
        try:
            reminder = self.store.get(reminder_id)
            if reminder is None or reminder.status == ReminderStatus.SENT.value:
                return
            self.store.record_failed_attempt(reminder, str(error) or type(error).__name__, final=final)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"Failed to record delivery failure for reminder {reminder_id}: {e}")


def run_reminder_job(reminder_id) -> Dict[str, Any]:
    """
    Queue job entrypoint

    Opens its own database session. Permanent failures clear the job's
    remaining retries before re-raising.
    """
    job = get_current_job()
    context_token = set_job_context(job.id if job else None)
    db = SessionLocal()
    try:
        service = ReminderDeliveryService(db)
        try:
            return service.process(reminder_id)
        except PermanentDeliveryError as e:
            logger.error(f"Reminder {reminder_id} failed permanently: {e}")
            if job is not None:
                job.retries_left = 0
            if config.REMINDER_RECORD_FAILED_ATTEMPTS and not isinstance(e, ReminderNotFoundError):
                service.record_failure(reminder_id, e, final=True)
            raise
        except Exception as e:
            final_attempt = job is None or not job.retries_left
            logger.warning(
                f"Reminder {reminder_id} delivery failed "
                f"({'final attempt' if final_attempt else 'will retry'}): {e}"
            )
            if config.REMINDER_RECORD_FAILED_ATTEMPTS:
                service.record_failure(reminder_id, e, final=final_attempt)
            raise
    finally:
        db.close()
        request_id_var.reset(context_token)
