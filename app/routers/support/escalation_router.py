from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.config import ESCALATION_BUFFER_HOURS
from app.core.scheduler import EscalationScheduler, get_escalation_scheduler
from app.schemas.support.complaint_schemas import ComplaintOut
from app.schemas.support.escalation_schemas import (
    ManualEscalationRequest,
    IntervalUpdate,
    SweepResult,
    EscalationPreview,
    AtRiskComplaint,
    SchedulerStatus,
)
from app.services.support.escalation_service import (
    manual_escalate,
    preview_escalations,
    get_at_risk_complaints,
    record_interval_change,
    record_manual_sweep,
)
from app.utils.check_roles import require_role
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/escalations", tags=["Escalations"])
logger = get_logger(__name__)


# =====================================================
# READ-ONLY
# =====================================================
@router.get("/preview", response_model=APIResponse[EscalationPreview])
async def preview_escalations_api(
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await preview_escalations(db)
    return success_response("Escalation preview generated", result)


@router.get("/at-risk", response_model=APIResponse[list[AtRiskComplaint]])
async def at_risk_api(
    buffer_hours: float = Query(ESCALATION_BUFFER_HOURS, gt=0, le=168),
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(["admin", "staff"])),
):
    result = await get_at_risk_complaints(db, buffer_hours)
    return success_response(f"{len(result)} complaints at risk of escalation", result)


# =====================================================
# ACTIONS
# =====================================================
@router.post("/sweep", response_model=APIResponse[SweepResult])
async def run_sweep_api(
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    logger.info("Manual escalation sweep requested", extra={"admin_id": admin.id})

    result = await scheduler.run_manually()
    await record_manual_sweep(db, admin, result)

    return success_response("Escalation sweep completed", result)


@router.post("/{complaint_id}", response_model=APIResponse[ComplaintOut])
async def manual_escalate_api(
    complaint_id: int,
    payload: ManualEscalationRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    logger.info("Manual escalation", extra={"complaint_id": complaint_id})

    complaint = await manual_escalate(db, complaint_id, admin, payload.reason)
    return success_response("Complaint escalated successfully", ComplaintOut.model_validate(complaint))


# =====================================================
# SCHEDULER
# =====================================================
@router.get("/scheduler/status", response_model=APIResponse[SchedulerStatus])
async def scheduler_status_api(
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    return success_response("Scheduler status fetched", scheduler.get_status())


@router.put("/scheduler/interval", response_model=APIResponse[SchedulerStatus])
async def update_interval_api(
    payload: IntervalUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    old_interval = scheduler.interval_minutes
    status = scheduler.update_interval(payload.minutes)
    await record_interval_change(db, admin, old_interval, payload.minutes)

    return success_response(
        f"Escalation interval updated to {payload.minutes} minutes", status
    )


@router.post("/scheduler/restart", response_model=APIResponse[SchedulerStatus])
async def restart_scheduler_api(
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    logger.info("Scheduler restart requested", extra={"admin_id": admin.id})

    status = await scheduler.restart()
    return success_response("Escalation scheduler restarted", status)
