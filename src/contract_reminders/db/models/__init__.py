"""
Database models for the contract reminders service
"""
from .organization import Organization, Tenant
from .contract import Contract
from .reminder import Reminder, ReminderStatus, ReminderChannel, ReminderTemplate

__all__ = [
    "Organization",
    "Tenant",
    "Contract",
    "Reminder",
    "ReminderStatus",
    "ReminderChannel",
    "ReminderTemplate",
]
