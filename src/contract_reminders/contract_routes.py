"""
Contract reminder routes
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .auth import Principal, require_organization
from .coordination import CoordinationContext
from .db.engine import get_db
from .db.models import ReminderChannel
from .dependencies import get_coordination
from .services.contract_send_service import ContractSendService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Contracts"])


class SendContractRequest(BaseModel):
    """Request to send a contract reminder now"""
    model_config = ConfigDict(populate_by_name=True)
    
    channel: ReminderChannel = ReminderChannel.EMAIL
    template_id: Optional[int] = Field(default=None, alias="templateId")


@router.post("/contracts/{contract_id}/send")
def send_contract_now(
    contract_id: str,
    request: Optional[SendContractRequest] = None,
    principal: Principal = Depends(require_organization),
    db: Session = Depends(get_db),
    coordination: CoordinationContext = Depends(get_coordination),
):
    """
    Trigger a reminder for one contract immediately
    
    Returns the reminder id and queue job id; delivery happens in the worker.
    """
    request = request or SendContractRequest()
    service = ContractSendService(db, coordination.queue)
    result = service.send_now(
        contract_id,
        organization_id=principal.organization_id,
        channel=request.channel.value,
        template_id=request.template_id,
    )
    return {"success": True, **result}
