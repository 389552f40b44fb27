"""
Scheduler admin routes
Manual scheduler runs, scheduler/queue statistics and the per-organization switch
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from sqlalchemy.orm import Session

from .auth import Principal, require_admin
from .coordination import CoordinationContext
from .db.engine import get_db
from .db.models import Organization
from .dependencies import get_coordination
from .services.leader_lock import LockedSchedulerRunner, SchedulerMetrics, create_leader_lock
from .services.reminder_scheduler import ReminderSchedulerService, run_daily_pass

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduler"])


class SchedulerToggleRequest(BaseModel):
    """Enable or disable reminders for an organization"""
    model_config = ConfigDict(populate_by_name=True)
    
    scheduler_enabled: StrictBool = Field(alias="schedulerEnabled")


@router.post("/admin/scheduler/run-reminders")
def run_reminders(
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    coordination: CoordinationContext = Depends(get_coordination),
):
    """
    Run one scheduler pass synchronously
    
    Bypasses the leader lock; use /admin/scheduler/run-locked on
    multi-instance deployments.
    """
    logger.warning(f"Unlocked scheduler run triggered by admin {admin.user_id}")
    created = ReminderSchedulerService(db, coordination.queue).run()
    return {"success": True, "created": len(created)}


@router.post("/admin/scheduler/run-locked")
def run_locked_reminders(
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    coordination: CoordinationContext = Depends(get_coordination),
):
    """Run one scheduler pass through the leader lock"""
    logger.info(f"Locked scheduler run triggered by admin {admin.user_id}")
    runner = LockedSchedulerRunner(coordination)
    result = runner.acquire_and_run(lambda: run_daily_pass(db, coordination.queue))
    return {"success": True, **result}


@router.get("/admin/scheduler/stats")
def get_scheduler_stats(
    admin: Principal = Depends(require_admin),
    coordination: CoordinationContext = Depends(get_coordination),
) -> Dict[str, Any]:
    """Last scheduler run metrics and reminder queue job counts"""
    stats = SchedulerMetrics(coordination.redis).read()
    lock = create_leader_lock(coordination)
    stats["lockKey"] = lock.storage_key
    stats["lockBackend"] = lock.strategy
    
    queue_counts: Dict[str, int] = {}
    try:
        queue_counts = coordination.queue.job_counts()
    except Exception as e:
        logger.warning(f"Failed to retrieve queue stats: {e}")
    
    return {"success": True, **stats, "queue": queue_counts}


@router.put("/api/dashboard/organizations/{org_id}/scheduler")
def set_organization_scheduler(
    org_id: int,
    request: SchedulerToggleRequest,
    admin: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Toggle reminder scheduling for one organization"""
    organization = db.query(Organization).filter(Organization.id == org_id).first()
    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )
    
    organization.scheduler_enabled = request.scheduler_enabled
    db.commit()
    logger.info(
        f"Admin {admin.user_id} set scheduler_enabled={request.scheduler_enabled} "
        f"for organization {org_id}"
    )
    return {
        "success": True,
        "organization": {"id": organization.id, "schedulerEnabled": organization.scheduler_enabled},
    }
