"""Audit 로그 조회 스키마입니다."""

from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class AuditEventOut(BaseModel):
    event_id: int
    event_type: str
    actor_id: Optional[int] = None
    actor_role: Optional[str] = None
    entity_type: str
    entity_id: int
    project_id: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    created_at: datetime

    model_config = {"from_attributes": True}
