# app/utils/response.py

from typing import TypeVar, Generic, Optional, Dict, Any, Sequence
from pydantic import BaseModel

T = TypeVar("T")


def success_response(message: str, data: Optional[T] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": data,
    }


def list_response(message: str, total: int, items: Sequence) -> Dict[str, Any]:
    return success_response(message, {"total": total, "items": list(items)})


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class ListData(BaseModel, Generic[T]):
    """Paged listing: total matching rows + the current page."""
    total: int
    items: list[T]
