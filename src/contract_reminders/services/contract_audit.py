"""
Contract audit trail
Append-only {action, by, at, meta} entries stored on the contract
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..db.base import utcnow
from ..db.models import Contract
from ..exceptions import ContractNotFoundError

logger = logging.getLogger(__name__)


class AuditAction:
    """Audit action types (enum-like constants)"""
    REMINDER_SENT = "reminder_sent"


SYSTEM_ACTOR = "system"


def build_audit_entry(
    action: str,
    by: Any = SYSTEM_ACTOR,
    meta: Optional[Dict[str, Any]] = None,
    at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Create a JSON-serializable audit entry"""
    return {
        "action": action,
        "by": by,
        "at": (at or utcnow()).isoformat(),
        "meta": meta or {},
    }


def append_contract_audit(db: Session, contract_id, entry: Dict[str, Any]) -> Contract:
    """
    Append one entry to a contract's audit log
    
    Existing entries are never rewritten; the list is replaced with a copy
    plus the new entry so the JSON column change is persisted.
    
    Args:
        db: Database session
        contract_id: Contract primary key
        entry: Entry from build_audit_entry()
    
    Returns:
        Updated Contract
    
    Raises:
        ContractNotFoundError: If the contract does not exist
    """
    contract = db.query(Contract).filter(Contract.id == contract_id).first()
    if contract is None:
        raise ContractNotFoundError(contract_id)
    
    try:
        contract.audit = [*(contract.audit or []), entry]
        db.commit()
    except Exception:
        db.rollback()
        raise
    
    logger.debug(f"Audit entry {entry.get('action')} appended to contract {contract_id}")
    return contract
