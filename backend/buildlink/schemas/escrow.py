"""Escrow release/refund, 결제 확인, 거래 내역 스키마입니다."""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Literal, Optional
from datetime import datetime

from buildlink.schemas.milestone import EscrowOut, MilestoneOut


class RecipientAccount(BaseModel):
    account_name: str = Field(min_length=1)
    account_number: str = Field(min_length=6)
    bank_code: str = Field(min_length=1)


class ReleaseRequest(BaseModel):
    # admin: override/recipient_account, company: account_id
    override: bool = False
    recipient_account: Optional[RecipientAccount] = None
    account_id: Optional[int] = None


class RefundRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)
    account_id: Optional[int] = None


class PaymentVerifyRequest(BaseModel):
    reference: str = Field(min_length=1)


class PaymentWebhookPayload(BaseModel):
    reference: str = Field(min_length=1)
    status: Literal["success", "failed"]


class PaymentIntentOut(BaseModel):
    intent_id: int
    kind: str
    milestone_id: int
    escrow_id: Optional[int] = None
    amount: Decimal
    currency: str
    reference: str
    status: str
    payment_url: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EscrowActionOut(BaseModel):
    milestone: MilestoneOut
    escrow: Optional[EscrowOut] = None
    intent: Optional[PaymentIntentOut] = None


class TransactionOut(BaseModel):
    transaction_id: int
    transaction_type: str
    project_id: int
    milestone_id: int
    escrow_id: Optional[int] = None
    amount: Decimal
    platform_fee: Optional[Decimal] = None
    currency: str
    reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
