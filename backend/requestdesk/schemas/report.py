"""
Dashboard and report schemas.
"""
from typing import Optional, List, Dict, Literal
from pydantic import BaseModel


class DashboardStats(BaseModel):
    """Request counts for the caller's visible slice."""
    total: int = 0
    pending: int = 0
    approved: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    by_priority: Dict[str, int] = {}
    assigned_to_me: Optional[int] = None


class ReportRow(BaseModel):
    label: str
    count: int
    completed: Optional[int] = None
    completion_rate: Optional[float] = None
    avg_days_to_complete: Optional[float] = None


class ReportResponse(BaseModel):
    type: Literal["monthly", "facility", "status", "completion"]
    organization_id: int
    rows: List[ReportRow] = []
