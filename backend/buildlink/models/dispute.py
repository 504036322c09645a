"""Dispute 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base

DISPUTE_STATUSES = ("open", "resolved", "escalated")
DISPUTE_UNRESOLVED = ("open", "escalated")


class Dispute(Base):
    __tablename__ = "dispute"

    dispute_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    milestone_id = Column(Integer, ForeignKey("milestone.milestone_id"))
    raised_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    source = Column(String(20), nullable=False, default="direct")  # rejection/direct
    reason = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="open")
    resolution_notes = Column(Text)
    resolved_by = Column(Integer, ForeignKey("users.user_id"))
    resolved_at = Column(DateTime)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    project = relationship("Project", back_populates="disputes")
    milestone = relationship("Milestone")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_dispute_project", "project_id", "status"),
    )
