"""Audit 이벤트 모델입니다. 추가만 가능하며 수정/삭제 경로가 없습니다."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, JSON
from sqlalchemy.sql import func
from buildlink.database import Base


class AuditEvent(Base):
    __tablename__ = "audit_event"

    event_id = Column(Integer, primary_key=True, autoincrement=True)
    event_type = Column(String(40), nullable=False)
    actor_id = Column(Integer, ForeignKey("users.user_id"))
    actor_role = Column(String(20))
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Integer, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.project_id"))
    payload = Column(JSON)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_type", "event_type", "created_at"),
    )
