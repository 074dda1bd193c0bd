from fastapi import APIRouter, Depends, Query
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.schemas.support.category_schemas import (
    CategoryCreate,
    CategoryUpdate,
    CategoryOut,
    CategoryListData,
)
from app.services.support.category_service import (
    create_category,
    list_categories,
    update_category,
    delete_category,
)
from app.utils.check_roles import require_role
from app.utils.get_user import get_current_user
from app.utils.response import APIResponse, success_response, list_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/categories", tags=["Categories"])
logger = get_logger(__name__)


@router.post("/", response_model=APIResponse[CategoryOut])
async def create_category_api(
    payload: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    logger.info(
        "Create category",
        extra={"category_name": payload.name, "department": payload.department},
    )

    category = await create_category(db, payload, admin)
    return success_response("Category created successfully", CategoryOut.model_validate(category))


@router.get("/", response_model=APIResponse[CategoryListData])
async def list_categories_api(
    db: AsyncSession = Depends(get_db),
    user=Depends(get_current_user),

    is_active: Optional[bool] = Query(None),
    department: Optional[str] = Query(None),
):
    total, items = await list_categories(db, is_active=is_active, department=department)
    return list_response(
        "Categories fetched successfully",
        total,
        [CategoryOut.model_validate(c) for c in items],
    )


@router.patch("/{category_id}", response_model=APIResponse[CategoryOut])
async def update_category_api(
    category_id: int,
    payload: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    category = await update_category(db, category_id, payload, admin)
    return success_response("Category updated successfully", CategoryOut.model_validate(category))


@router.delete("/{category_id}", response_model=APIResponse[None])
async def delete_category_api(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    logger.info("Delete category", extra={"category_id": category_id})

    await delete_category(db, category_id, admin)
    return success_response("Category deleted successfully")
