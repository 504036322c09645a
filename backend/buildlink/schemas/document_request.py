"""DocumentUpdateRequest 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class DocumentUpdateRequestCreate(BaseModel):
    document_type: str = Field(min_length=1, max_length=40)
    extra_document_id: Optional[int] = None
    reason: Optional[str] = Field(default=None, max_length=2000)


class DocumentUpdateRequestOut(BaseModel):
    request_id: int
    project_id: int
    document_type: str
    extra_document_id: Optional[int] = None
    reason: Optional[str] = None
    status: str
    requested_by: int
    resolved_by: Optional[int] = None
    resolved_at: Optional[datetime] = None
    consumed_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
