"""DocumentUpdateRequest 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base

REQUEST_STATUSES = ("pending", "granted", "denied")


def build_pending_key(project_id: int, document_type: str, extra_document_id=None) -> str:
    return f"{project_id}:{document_type}:{extra_document_id or 0}"


class DocumentUpdateRequest(Base):
    __tablename__ = "document_update_request"

    request_id = Column(Integer, primary_key=True, autoincrement=True)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    document_type = Column(String(40), nullable=False)
    extra_document_id = Column(Integer, ForeignKey("project_document.document_id"))
    reason = Column(Text)
    status = Column(String(20), nullable=False, default="pending")
    # pending 동안에만 채워진다. NULL은 unique 제약에서 서로 다른 값으로 취급된다.
    pending_key = Column(String(120), unique=True)
    requested_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    resolved_by = Column(Integer, ForeignKey("users.user_id"))
    resolved_at = Column(DateTime)
    consumed_at = Column(DateTime)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="document_update_requests")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_doc_request_project", "project_id", "document_type", "status"),
    )
