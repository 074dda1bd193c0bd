from pydantic import BaseModel

from app.schemas.support.complaint_schemas import ComplaintOut


class ManualAssignRequest(BaseModel):
    staff_id: int


class StaffWorkloadOut(BaseModel):
    staff_id: int
    username: str
    full_name: str | None
    department: str | None
    role: str
    open_assignments: int
    high_priority_assignments: int
    score: float
    recommended: bool


class RecommendationCategory(BaseModel):
    id: int
    name: str
    department: str


class RecommendationSummary(BaseModel):
    total_staff: int
    recommended_staff: int
    avg_workload: float


class RecommendationOut(BaseModel):
    category: RecommendationCategory
    available_staff: list[StaffWorkloadOut]
    recommended: list[StaffWorkloadOut]
    summary: RecommendationSummary


class AutoAssignOut(BaseModel):
    complaint: ComplaintOut
    assigned_staff: StaffWorkloadOut
