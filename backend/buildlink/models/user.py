"""User 및 지급 계좌 도메인의 SQLAlchemy 모델 정의입니다."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from buildlink.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(150), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(30))
    role = Column(String(20), nullable=False)  # client/company/admin
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    payment_accounts = relationship("PaymentAccount", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user")


class PaymentAccount(Base):
    __tablename__ = "payment_account"

    account_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.user_id"), nullable=False)
    account_name = Column(String(150), nullable=False)
    account_number = Column(String(30), nullable=False)
    bank_code = Column(String(20), nullable=False)
    bank_name = Column(String(100))
    account_type = Column(String(20), default="nuban")  # nuban/mobile_money
    currency = Column(String(3), default="NGN")
    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="payment_accounts")

    __table_args__ = (
        Index("idx_payment_account_user", "user_id"),
    )

    def as_recipient(self) -> dict:
        return {
            "account_name": self.account_name,
            "account_number": self.account_number,
            "bank_code": self.bank_code,
        }
