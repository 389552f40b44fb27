"""
Reminder and ReminderTemplate models
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
import enum

from ..base import Base, utcnow


class ReminderStatus(str, enum.Enum):
    """Reminder lifecycle: scheduled -> enqueued -> sent | failed | cancelled"""
    SCHEDULED = "scheduled"
    ENQUEUED = "enqueued"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ReminderChannel(str, enum.Enum):
    """Notification channel"""
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in-app"


class Reminder(Base):
    """
    One reminder per (contract, send time)
    
    Uniqueness of (contract_id, send_at) is checked before insert by the
    scheduler; the index is not unique.
    """
    __tablename__ = "reminders"
    
    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    channel = Column(String(16), nullable=False, default=ReminderChannel.EMAIL.value)
    template_id = Column(Integer, ForeignKey("reminder_templates.id"), nullable=True)
    send_at = Column(DateTime, nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ReminderStatus.SCHEDULED.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    job_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    
    contract = relationship("Contract", back_populates="reminders")
    template = relationship("ReminderTemplate")
    
    __table_args__ = (
        Index('idx_reminders_contract_send_at', 'contract_id', 'send_at'),
        Index('idx_reminders_status_send_at', 'status', 'send_at'),
    )
    
    def __repr__(self):
        return (
            f"<Reminder(id={self.id}, "
            f"contract_id={self.contract_id}, "
            f"send_at={self.send_at}, "
            f"status={self.status})>"
        )


class ReminderTemplate(Base):
    """Renderable reminder content with {{ placeholder }} variables"""
    __tablename__ = "reminder_templates"
    
    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    channel = Column(String(16), nullable=False, default=ReminderChannel.EMAIL.value)
    subject = Column(String(500), nullable=False, default="")
    body_html = Column(Text, nullable=False, default="")
    body_text = Column(Text, nullable=False, default="")
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
