"""Milestone/Evidence 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base

MILESTONE_STATUSES = ("pending", "funded", "submitted", "approved", "rejected", "released")


class Milestone(Base):
    __tablename__ = "milestone"

    milestone_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    amount = Column(Numeric(14, 2), nullable=False)
    sequence_order = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    # reject 될 때마다 증가한다. 재제출에는 현재 revision의 증빙이 필요하다.
    revision = Column(Integer, nullable=False, default=1)
    verified_at = Column(DateTime)
    verified_by = Column(Integer, ForeignKey("users.user_id"))
    client_notes = Column(Text)
    company_notes = Column(Text)
    submitted_at = Column(DateTime)
    approved_at = Column(DateTime)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    project = relationship("Project", back_populates="milestones")
    evidence = relationship(
        "MilestoneEvidence", back_populates="milestone", cascade="all, delete-orphan",
        order_by="MilestoneEvidence.evidence_id",
    )
    escrow = relationship("Escrow", back_populates="milestone", uselist=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        UniqueConstraint("project_id", "sequence_order", name="uq_milestone_sequence"),
        Index("idx_milestone_project", "project_id", "status"),
    )

    @property
    def is_verified(self) -> bool:
        return self.verified_at is not None

    def current_evidence(self):
        return [item for item in self.evidence if item.revision == self.revision]


class MilestoneEvidence(Base):
    __tablename__ = "milestone_evidence"

    evidence_id = Column(Integer, primary_key=True, autoincrement=True)
    milestone_id = Column(Integer, ForeignKey("milestone.milestone_id"), nullable=False)
    evidence_type = Column(String(10), nullable=False)  # image/video/text
    file_url = Column(String(500))
    description = Column(Text)
    revision = Column(Integer, nullable=False, default=1)
    uploaded_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    milestone = relationship("Milestone", back_populates="evidence")

    __table_args__ = (
        Index("idx_evidence_milestone", "milestone_id", "revision"),
    )
