"""Escrow, 결제 의도(PaymentIntent), 거래 내역 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, Numeric, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base

ESCROW_TERMINAL = ("released", "refunded")

INTENT_OPEN = ("initiated", "pending_confirmation")

TRANSACTION_TYPES = ("escrow_deposit", "escrow_release", "escrow_refund", "platform_fee")


class Escrow(Base):
    __tablename__ = "escrow"

    escrow_id = Column(Integer, primary_key=True, autoincrement=True)
    milestone_id = Column(Integer, ForeignKey("milestone.milestone_id"), nullable=False, unique=True)
    amount = Column(Numeric(14, 2), nullable=False)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False)
    # 펀딩 시점에 적용된 PlatformFeeSetting 버전 (기본값 사용 시 None)
    fee_setting_version = Column(Integer, ForeignKey("platform_fee_setting.version"))
    platform_fee = Column(Numeric(14, 2), nullable=False)
    net_amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    status = Column(String(20), nullable=False, default="held")
    payment_reference = Column(String(100), unique=True)
    release_requested_at = Column(DateTime)
    release_requested_by = Column(Integer, ForeignKey("users.user_id"))
    release_account_id = Column(Integer, ForeignKey("payment_account.account_id"))
    refund_reason = Column(Text)
    released_at = Column(DateTime)
    refunded_at = Column(DateTime)
    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    milestone = relationship("Milestone", back_populates="escrow")
    release_account = relationship("PaymentAccount")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_escrow_status", "status"),
    )

    @property
    def is_final(self) -> bool:
        return self.status in ESCROW_TERMINAL


class PaymentIntent(Base):
    """게이트웨이 호출 전후 상태를 보존하는 결제/송금 의도 레코드."""

    __tablename__ = "payment_intent"

    intent_id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(10), nullable=False)  # deposit/release/refund
    milestone_id = Column(Integer, ForeignKey("milestone.milestone_id"), nullable=False)
    escrow_id = Column(Integer, ForeignKey("escrow.escrow_id"))
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="NGN")
    reference = Column(String(100), nullable=False, unique=True)
    gateway_reference = Column(String(100))
    status = Column(String(30), nullable=False, default="initiated")
    payment_url = Column(String(500))
    platform_fee_percentage = Column(Numeric(5, 2))
    fee_setting_version = Column(Integer)
    recipient = Column(JSON)
    is_override = Column(Boolean, default=False)
    reason = Column(Text)
    failure_reason = Column(Text)
    # 진행 중인 의도에만 값이 있다. 같은 키로 동시에 두 건이 진행될 수 없다.
    active_key = Column(String(60), unique=True)
    # 닫힌 입금 의도에 성공 결과가 들어와 수동 환불 대상이 된 시각
    refund_required_at = Column(DateTime)
    version_id = Column(Integer, nullable=False)
    created_by = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())
    confirmed_at = Column(DateTime)

    milestone = relationship("Milestone")
    escrow = relationship("Escrow")

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("idx_intent_status", "status", "kind"),
        Index("idx_intent_milestone", "milestone_id", "kind"),
    )

    @property
    def is_open(self) -> bool:
        return self.status in INTENT_OPEN


class Transaction(Base):
    __tablename__ = "transaction_log"

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(20), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.project_id"), nullable=False)
    milestone_id = Column(Integer, ForeignKey("milestone.milestone_id"), nullable=False)
    escrow_id = Column(Integer, ForeignKey("escrow.escrow_id"))
    amount = Column(Numeric(14, 2), nullable=False)
    platform_fee = Column(Numeric(14, 2))
    currency = Column(String(3), nullable=False, default="NGN")
    reference = Column(String(100))
    description = Column(String(300))
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("idx_transaction_project", "project_id", "created_at"),
    )
