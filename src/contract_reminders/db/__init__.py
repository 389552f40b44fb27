"""
Database module for the contract reminders service
"""
from .engine import engine, SessionLocal, get_db
from .base import Base
from .models import (
    Organization,
    Tenant,
    Contract,
    Reminder,
    ReminderStatus,
    ReminderChannel,
    ReminderTemplate,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "Base",
    "Organization",
    "Tenant",
    "Contract",
    "Reminder",
    "ReminderStatus",
    "ReminderChannel",
    "ReminderTemplate",
]
