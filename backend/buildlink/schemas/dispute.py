"""Dispute 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime


class DisputeResolve(BaseModel):
    resolution: str = Field(min_length=1, max_length=4000)
    status: Literal["resolved", "escalated"] = "resolved"


class DisputeOut(BaseModel):
    dispute_id: int
    project_id: int
    milestone_id: Optional[int] = None
    raised_by: int
    source: str
    reason: str
    status: str
    resolution_notes: Optional[str] = None
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
