from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.exceptions import AppException
from app.core.scheduler import EscalationScheduler, get_escalation_scheduler
from app.constants.error_codes import ErrorCode
from app.models.enums.user_role import UserRole
from app.schemas.support.assignment_schemas import (
    ManualAssignRequest,
    StaffWorkloadOut,
    RecommendationOut,
    AutoAssignOut,
)
from app.schemas.support.complaint_schemas import ComplaintOut
from app.services.support.workload_service import (
    recommend_staff,
    auto_assign_complaint,
    manual_assign_complaint,
    get_staff_workload,
)
from app.utils.check_roles import require_role
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/assignments", tags=["Assignments"])
logger = get_logger(__name__)


@router.get("/recommendations/{category_id}", response_model=APIResponse[RecommendationOut])
async def recommend_staff_api(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await recommend_staff(db, category_id)
    return success_response("Staff recommendations fetched successfully", result)


@router.post("/{complaint_id}/auto", response_model=APIResponse[AutoAssignOut])
async def auto_assign_api(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    logger.info("Auto-assign complaint", extra={"complaint_id": complaint_id})

    complaint, workload = await auto_assign_complaint(db, complaint_id, admin)
    scheduler.schedule_deadline_check(complaint.id, complaint.deadline)

    return success_response(
        "Complaint auto-assigned successfully",
        {
            "complaint": ComplaintOut.model_validate(complaint),
            "assigned_staff": workload.to_dict(),
        },
    )


@router.post("/{complaint_id}/manual", response_model=APIResponse[ComplaintOut])
async def manual_assign_api(
    complaint_id: int,
    payload: ManualAssignRequest,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
    scheduler: EscalationScheduler = Depends(get_escalation_scheduler),
):
    logger.info(
        "Manual assign complaint",
        extra={"complaint_id": complaint_id, "staff_id": payload.staff_id},
    )

    complaint = await manual_assign_complaint(db, complaint_id, payload.staff_id, admin)
    scheduler.schedule_deadline_check(complaint.id, complaint.deadline)

    return success_response("Complaint assigned successfully", ComplaintOut.model_validate(complaint))


@router.get("/staff/{staff_id}/workload", response_model=APIResponse[StaffWorkloadOut])
async def staff_workload_api(
    staff_id: int,
    db: AsyncSession = Depends(get_db),
    user=Depends(require_role(["admin", "staff"])),
):
    if user.role == UserRole.STAFF and user.id != staff_id:
        raise AppException(403, "Permission denied", ErrorCode.PERMISSION_DENIED)

    workload = await get_staff_workload(db, staff_id)
    return success_response("Staff workload fetched successfully", workload.to_dict())
