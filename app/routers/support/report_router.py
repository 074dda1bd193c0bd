from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.services.support.report_service import (
    overview_report,
    category_report,
    staff_report,
    trend_report,
    sla_report,
    escalation_report,
    dashboard_report,
)
from app.utils.check_roles import require_role
from app.utils.datetime_utils import utc_now, ensure_utc
from app.utils.pdf_generators.sla_report_pdf import generate_sla_report_pdf
from app.utils.response import APIResponse, success_response
from app.utils.logger import get_logger

router = APIRouter(prefix="/reports", tags=["Reports"])
logger = get_logger(__name__)


class DateRange:
    def __init__(
        self,
        start_date: Optional[datetime] = Query(None),
        end_date: Optional[datetime] = Query(None),
    ):
        self.start = ensure_utc(start_date)
        self.end = ensure_utc(end_date)


@router.get("/overview", response_model=APIResponse)
async def overview_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await overview_report(db, dates.start, dates.end)
    return success_response("Overview report generated", result)


@router.get("/categories", response_model=APIResponse)
async def category_report_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await category_report(db, dates.start, dates.end)
    return success_response("Category report generated", result)


@router.get("/staff", response_model=APIResponse)
async def staff_report_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await staff_report(db, dates.start, dates.end)
    return success_response("Staff report generated", result)


@router.get("/trends", response_model=APIResponse)
async def trend_report_api(
    days: int = Query(30, ge=1, le=365),
    granularity: str = Query("day"),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await trend_report(db, days, granularity)
    return success_response("Trend report generated", result)


@router.get("/sla", response_model=APIResponse)
async def sla_report_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await sla_report(db, dates.start, dates.end)
    return success_response("SLA report generated", result)


@router.get("/sla/pdf")
async def sla_report_pdf_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    now = utc_now()
    overview = await overview_report(db, dates.start, dates.end, now=now)
    sla = await sla_report(db, dates.start, dates.end, now=now)

    logger.info("SLA report PDF requested", extra={"admin_id": admin.id})

    pdf = generate_sla_report_pdf(overview, sla, now)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="SLA_Report_{now:%Y%m%d}.pdf"'},
    )


@router.get("/escalations", response_model=APIResponse)
async def escalation_report_api(
    dates: DateRange = Depends(),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await escalation_report(db, dates.start, dates.end)
    return success_response("Escalation report generated", result)


@router.get("/dashboard", response_model=APIResponse)
async def dashboard_api(
    dates: DateRange = Depends(),
    trend_days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    admin=Depends(require_role(["admin"])),
):
    result = await dashboard_report(db, dates.start, dates.end, trend_days)
    return success_response("Dashboard report generated", result)
