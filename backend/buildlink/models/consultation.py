"""Consultation 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base


class Consultation(Base):
    __tablename__ = "consultation"

    consultation_id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    company_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    status = Column(String(20), default="pending")  # pending/scheduled/completed/cancelled
    payment_status = Column(String(20), default="unpaid")  # unpaid/paid
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("User", foreign_keys=[client_id])
    company = relationship("User", foreign_keys=[company_id])
    project = relationship("Project", back_populates="consultation", uselist=False)

    @property
    def is_convertible(self) -> bool:
        return self.status == "completed" and self.payment_status == "paid"
