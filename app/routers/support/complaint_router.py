from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.models.enums.complaint_status import ComplaintStatus, ComplaintPriority
from app.models.enums.user_role import UserRole
from app.schemas.support.complaint_schemas import (
    ComplaintCreate,
    ComplaintPriorityUpdate,
    ComplaintStatusUpdate,
    ComplaintReopen,
    ComplaintNoteCreate,
    ComplaintOut,
    ComplaintListData,
)
from app.services.support.complaint_service import (
    create_complaint,
    get_complaint,
    list_complaints,
    update_complaint_priority,
    transition_status,
    unassign_complaint,
    reopen_complaint,
    add_internal_note,
)
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user
from app.utils.response import APIResponse, success_response, list_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/complaints", tags=["Complaints"])
logger = get_logger(__name__)


def _out(complaint) -> ComplaintOut:
    return ComplaintOut.model_validate(complaint)


@router.post("/", response_model=APIResponse[ComplaintOut])
async def create_complaint_api(
    payload: ComplaintCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    logger.info(
        "Create complaint",
        extra={"category_id": payload.category_id, "priority": payload.priority.value},
    )

    complaint = await create_complaint(
        db,
        title=payload.title,
        description=payload.description,
        category_id=payload.category_id,
        priority=payload.priority,
        current_user=current_user,
    )
    return success_response("Complaint submitted successfully", _out(complaint))


@router.get("/", response_model=APIResponse[ComplaintListData])
async def list_complaints_api(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),

    status: ComplaintStatus | None = Query(None),
    priority: ComplaintPriority | None = Query(None),
    category_id: int | None = Query(None),
    assigned_to_id: int | None = Query(None),
    is_escalated: bool | None = Query(None),
    search: str | None = Query(None),

    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    # Plain users only ever see what they submitted
    submitted_by_id = current_user.id if current_user.role == UserRole.USER else None

    total, items = await list_complaints(
        db,
        status=status,
        priority=priority,
        category_id=category_id,
        assigned_to_id=assigned_to_id,
        submitted_by_id=submitted_by_id,
        is_escalated=is_escalated,
        search=search,
        page=page,
        page_size=page_size,
    )
    return list_response("Complaints fetched successfully", total, [_out(c) for c in items])


@router.get("/{complaint_id}", response_model=APIResponse[ComplaintOut])
async def get_complaint_api(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    complaint = await get_complaint(db, complaint_id)

    if current_user.role == UserRole.USER and complaint.submitted_by_id != current_user.id:
        raise AppException(403, "Permission denied", ErrorCode.PERMISSION_DENIED)

    return success_response("Complaint fetched successfully", _out(complaint))


@router.patch("/{complaint_id}/priority", response_model=APIResponse[ComplaintOut])
async def update_complaint_priority_api(
    complaint_id: int,
    payload: ComplaintPriorityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role(["admin", "staff"])),
):
    complaint = await update_complaint_priority(db, complaint_id, payload.priority, current_user)
    return success_response("Complaint priority updated successfully", _out(complaint))


@router.patch("/{complaint_id}/status", response_model=APIResponse[ComplaintOut])
async def update_complaint_status_api(
    complaint_id: int,
    payload: ComplaintStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role(["admin", "staff"])),
):
    logger.info(
        "Update complaint status",
        extra={"complaint_id": complaint_id, "new_status": payload.status.value},
    )

    complaint = await transition_status(
        db, complaint_id, payload.status, current_user, payload.remarks
    )
    return success_response("Complaint status updated successfully", _out(complaint))


@router.post("/{complaint_id}/unassign", response_model=APIResponse[ComplaintOut])
async def unassign_complaint_api(
    complaint_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    complaint = await unassign_complaint(db, complaint_id, admin)
    return success_response("Complaint unassigned successfully", _out(complaint))


@router.post("/{complaint_id}/reopen", response_model=APIResponse[ComplaintOut])
async def reopen_complaint_api(
    complaint_id: int,
    payload: ComplaintReopen,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role(["admin", "staff"])),
):
    complaint = await reopen_complaint(db, complaint_id, current_user, payload.remarks)
    return success_response("Complaint reopened successfully", _out(complaint))


@router.post("/{complaint_id}/notes", response_model=APIResponse[ComplaintOut])
async def add_complaint_note_api(
    complaint_id: int,
    payload: ComplaintNoteCreate,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(require_role(["admin", "staff"])),
):
    complaint = await add_internal_note(db, complaint_id, payload.note, current_user)
    return success_response("Note added successfully", _out(complaint))
