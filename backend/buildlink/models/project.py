"""Project 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base

PROJECT_STATUSES = ("draft", "active", "completed", "disputed", "cancelled")

# 고정 문서 슬롯 이름 -> Project 컬럼명
DOCUMENT_SLOTS = {
    "preview_image": "preview_image_url",
    "architectural_drawing": "architectural_drawing_url",
    "structural_drawing": "structural_drawing_url",
    "mechanical_drawing": "mechanical_drawing_url",
    "electrical_drawing": "electrical_drawing_url",
}
EXTRA_DOCUMENT = "extra_document"


class Project(Base):
    __tablename__ = "projects"

    project_id = Column(Integer, primary_key=True, autoincrement=True)
    consultation_id = Column(Integer, ForeignKey("consultation.consultation_id"), unique=True)
    client_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    company_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    location = Column(String(200), nullable=False)
    budget_min = Column(Numeric(14, 2))
    budget_max = Column(Numeric(14, 2))
    status = Column(String(20), nullable=False, default="draft")
    preview_image_url = Column(String(500))
    architectural_drawing_url = Column(String(500))
    structural_drawing_url = Column(String(500))
    mechanical_drawing_url = Column(String(500))
    electrical_drawing_url = Column(String(500))
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    consultation = relationship("Consultation", back_populates="project")
    client = relationship("User", foreign_keys=[client_id])
    company = relationship("User", foreign_keys=[company_id])
    milestones = relationship(
        "Milestone", back_populates="project", cascade="all, delete-orphan",
        order_by="Milestone.sequence_order",
    )
    extra_documents = relationship("ProjectDocument", back_populates="project", cascade="all, delete-orphan")
    document_update_requests = relationship(
        "DocumentUpdateRequest", back_populates="project", cascade="all, delete-orphan",
    )
    disputes = relationship("Dispute", back_populates="project", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_project_client", "client_id"),
        Index("idx_project_company", "company_id"),
    )

    def document_url(self, slot: str):
        return getattr(self, DOCUMENT_SLOTS[slot])


class ProjectDocument(Base):
    """프로젝트에 자유롭게 추가되는 기타 문서 (extra_document)."""

    __tablename__ = "project_document"

    document_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    title = Column(String(200), nullable=False)
    file_url = Column(String(500), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    project = relationship("Project", back_populates="extra_documents")

    __table_args__ = (
        Index("idx_document_project", "project_id"),
    )
