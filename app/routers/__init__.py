# app/routers/__init__.py

from .support.complaint_router import router as complaint_router
from .support.category_router import router as category_router
from .support.assignment_router import router as assignment_router
from .support.escalation_router import router as escalation_router
from .support.report_router import router as report_router
from .support.activity_router import router as activity_router


__all__ = [
"complaint_router",
"category_router",
"assignment_router",
"escalation_router",
"report_router",
"activity_router",
]
