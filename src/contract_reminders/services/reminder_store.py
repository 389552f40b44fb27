"""
Reminder Store
Data access for reminders, templates and the contract collaborators the
pipeline reads (contracts, organizations, tenants)
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import case
from sqlalchemy.orm import Session

from ..db.models import (
    Contract,
    Organization,
    Reminder,
    ReminderChannel,
    ReminderStatus,
    ReminderTemplate,
    Tenant,
)

logger = logging.getLogger(__name__)


class ReminderStore:
    """Read/compute/write access to reminder records"""
    
    def __init__(self, db: Session):
        self.db = db
    
    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------
    
    def get(self, reminder_id) -> Optional[Reminder]:
        return self.db.query(Reminder).filter(Reminder.id == reminder_id).first()
    
    def exists_for(self, contract_id, send_at: datetime) -> bool:
        """Check whether a reminder already covers this contract and send time"""
        existing = self.db.query(Reminder.id).filter(
            Reminder.contract_id == contract_id,
            Reminder.send_at == send_at
        ).first()
        return existing is not None
    
    def create(
        self,
        contract: Contract,
        send_at: datetime,
        channel: str = ReminderChannel.EMAIL.value,
        template_id: Optional[int] = None,
        organization_id=None,
    ) -> Reminder:
        """
        Create a reminder in the scheduled state
        
        Args:
            contract: Contract the reminder belongs to
            send_at: Intended delivery time
            channel: Delivery channel
            template_id: Optional template reference
            organization_id: Owning organization (defaults to the contract's)
        
        Returns:
            The persisted Reminder
        """
        reminder = Reminder(
            contract_id=contract.id,
            organization_id=organization_id if organization_id is not None else contract.organization_id,
            tenant_id=contract.tenant_id,
            channel=channel,
            template_id=template_id,
            send_at=send_at,
            status=ReminderStatus.SCHEDULED.value,
            attempts=0,
        )
        self.db.add(reminder)
        self.db.commit()
        self.db.refresh(reminder)
        return reminder
    
    def mark_enqueued(self, reminder: Reminder, job_id: str) -> Reminder:
        """
        Store the queue job id and move scheduled -> enqueued
        
        A single UPDATE against the stored status: a worker may already have
        delivered the job and committed `sent` before the enqueue returned,
        and that status must never move backwards.
        """
        self.db.query(Reminder).filter(Reminder.id == reminder.id).update(
            {
                Reminder.job_id: job_id,
                Reminder.status: case(
                    (Reminder.status == ReminderStatus.SCHEDULED.value, ReminderStatus.ENQUEUED.value),
                    else_=Reminder.status,
                ),
            },
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(reminder)
        return reminder
    
    def mark_sent(self, reminder: Reminder) -> Reminder:
        reminder.status = ReminderStatus.SENT.value
        reminder.attempts = (reminder.attempts or 0) + 1
        reminder.last_error = None
        self.db.commit()
        return reminder
    
    def record_failed_attempt(self, reminder: Reminder, error: str, final: bool = False) -> Reminder:
        """
        Record a failed delivery attempt on the reminder itself
        
        Args:
            reminder: Reminder that failed
            error: Error message
            final: True when the queue will not retry again
        """
        reminder.attempts = (reminder.attempts or 0) + 1
        reminder.last_error = error[:2000]
        if final:
            reminder.status = ReminderStatus.FAILED.value
        self.db.commit()
        return reminder
    
    def list_unqueued(self, not_before: datetime) -> List[Reminder]:
        """Reminders still waiting for a queue job whose send time is not stale"""
        return self.db.query(Reminder).filter(
            Reminder.status == ReminderStatus.SCHEDULED.value,
            Reminder.send_at >= not_before
        ).order_by(Reminder.send_at).all()
    
    # ------------------------------------------------------------------
    # Templates and collaborators
    # ------------------------------------------------------------------
    
    def get_template(self, template_id) -> Optional[ReminderTemplate]:
        if template_id is None:
            return None
        return self.db.query(ReminderTemplate).filter(ReminderTemplate.id == template_id).first()
    
    def get_contract(self, contract_id) -> Optional[Contract]:
        """Look up a contract; ids that are not integers never match"""
        try:
            contract_id = int(contract_id)
        except (TypeError, ValueError):
            return None
        return self.db.query(Contract).filter(Contract.id == contract_id).first()
    
    def get_organization(self, organization_id) -> Optional[Organization]:
        if organization_id is None:
            return None
        return self.db.query(Organization).filter(Organization.id == organization_id).first()
    
    def get_tenant(self, tenant_id) -> Optional[Tenant]:
        if not tenant_id:
            return None
        return self.db.query(Tenant).filter(Tenant.id == str(tenant_id)).first()
    
    def contracts_expiring_before(self, cutoff: datetime) -> List[Contract]:
        """Contracts with a non-null expiry date on or before the cutoff"""
        return self.db.query(Contract).filter(
            Contract.expiry_date.isnot(None),
            Contract.expiry_date <= cutoff
        ).order_by(Contract.expiry_date).all()

