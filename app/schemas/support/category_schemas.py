from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.utils.response import ListData


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    department: str = Field(..., min_length=2, max_length=100)
    resolution_time_hours: Optional[int] = Field(24, ge=1, le=720)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    department: Optional[str] = Field(None, min_length=2, max_length=100)
    resolution_time_hours: Optional[int] = Field(None, ge=1, le=720)
    is_active: Optional[bool] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    department: str
    resolution_time_hours: Optional[int]
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


CategoryListData = ListData[CategoryOut]
