from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc
from sqlalchemy.exc import IntegrityError

from app.models.support.category_models import Category
from app.schemas.support.category_schemas import CategoryCreate, CategoryUpdate
from app.core.exceptions import AppException
from app.constants.error_codes import ErrorCode
from app.constants.activity_codes import ActivityCode
from app.utils.activity_helpers import emit_actor_activity
from app.utils.logger import get_logger
from app.services.support.complaint_store import (
    get_category_or_404,
    count_complaints_for_category,
)

logger = get_logger(__name__)


def _name_exists() -> AppException:
    return AppException(409, "Category already exists", ErrorCode.CATEGORY_NAME_EXISTS)


# =========================
# CREATE
# =========================
async def create_category(db: AsyncSession, payload: CategoryCreate, user) -> Category:
    exists = await db.scalar(select(Category.id).where(Category.name == payload.name))
    if exists:
        raise _name_exists()

    category = Category(**payload.model_dump())
    db.add(category)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise _name_exists()

    await emit_actor_activity(
        db,
        user,
        ActivityCode.CREATE_CATEGORY,
        target_name=category.name,
        department=category.department,
    )

    await db.commit()
    await db.refresh(category)
    return category


# =========================
# LIST
# =========================
async def list_categories(
    db: AsyncSession,
    *,
    is_active: bool | None = None,
    department: str | None = None,
) -> tuple[int, list[Category]]:
    query = select(Category)
    if is_active is not None:
        query = query.where(Category.is_active.is_(is_active))
    if department:
        query = query.where(Category.department == department)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.order_by(asc(Category.name)))
    return total or 0, list(result.scalars().all())


# =========================
# UPDATE
# =========================
async def update_category(
    db: AsyncSession,
    category_id: int,
    payload: CategoryUpdate,
    user,
) -> Category:
    """resolution_time_hours only affects complaints submitted afterwards."""
    category = await get_category_or_404(db, category_id)
    data = payload.model_dump(exclude_unset=True)

    changes = []
    for field, value in data.items():
        if getattr(category, field) != value:
            changes.append(f"{field}: {getattr(category, field)} → {value}")
            setattr(category, field, value)

    if not changes:
        raise AppException(400, "No actual changes detected", ErrorCode.VALIDATION_ERROR)

    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise _name_exists()

    await emit_actor_activity(
        db,
        user,
        ActivityCode.UPDATE_CATEGORY,
        target_name=category.name,
        changes=", ".join(changes),
    )

    await db.commit()
    await db.refresh(category)
    return category


# =========================
# DELETE
# =========================
async def delete_category(db: AsyncSession, category_id: int, user) -> None:
    category = await get_category_or_404(db, category_id)

    in_use = await count_complaints_for_category(db, category.id)
    if in_use:
        raise AppException(
            409,
            "Category is referenced by existing complaints; deactivate it instead",
            ErrorCode.CATEGORY_IN_USE,
            details={"complaints": in_use},
        )

    name = category.name
    await db.delete(category)
    await emit_actor_activity(db, user, ActivityCode.DELETE_CATEGORY, target_name=name)
    await db.commit()

    logger.info("Category deleted", extra={"category_id": category_id})
