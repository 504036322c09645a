"""플랫폼 수수료 설정 이력 모델입니다. 값 변경 시 새 버전 행을 추가합니다."""

from sqlalchemy import Column, Integer, DateTime, Numeric, ForeignKey
from sqlalchemy.sql import func
from buildlink.database import Base


class PlatformFeeSetting(Base):
    __tablename__ = "platform_fee_setting"

    version = Column(Integer, primary_key=True, autoincrement=True)
    percentage = Column(Numeric(5, 2), nullable=False)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
