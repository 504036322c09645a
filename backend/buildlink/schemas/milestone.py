"""Milestone/Evidence/Escrow 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from decimal import Decimal
from pydantic import BaseModel, Field, model_validator
from typing import List, Literal, Optional
from datetime import datetime


class MilestoneCreateItem(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    sequence_order: int


class MilestoneBatchCreate(BaseModel):
    milestones: List[MilestoneCreateItem] = Field(min_length=1)


class EvidenceCreate(BaseModel):
    evidence_type: Literal["image", "video", "text"]
    file_url: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def check_payload(self):
        if self.evidence_type == "text" and not (self.description or "").strip():
            raise ValueError("text evidence requires a description")
        if self.evidence_type in ("image", "video") and not (self.file_url or "").strip():
            raise ValueError(f"{self.evidence_type} evidence requires a file_url")
        return self


class SubmitRequest(BaseModel):
    evidence: List[EvidenceCreate] = []
    company_notes: Optional[str] = None


class ApproveRequest(BaseModel):
    client_notes: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class EvidenceOut(BaseModel):
    evidence_id: int
    milestone_id: int
    evidence_type: str
    file_url: Optional[str] = None
    description: Optional[str] = None
    revision: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EscrowOut(BaseModel):
    escrow_id: int
    milestone_id: int
    amount: Decimal
    currency: str
    status: str
    payment_reference: Optional[str] = None
    # 역할별 응답 가공 단계에서 client에게는 비워진다.
    platform_fee_percentage: Optional[Decimal] = None
    platform_fee: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    release_requested_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MilestoneOut(BaseModel):
    milestone_id: int
    project_id: int
    title: str
    description: Optional[str] = None
    amount: Decimal
    sequence_order: int
    status: str
    revision: int
    verified_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    client_notes: Optional[str] = None
    company_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    escrow: Optional[EscrowOut] = None
    evidence: List[EvidenceOut] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FundResponse(BaseModel):
    payment_url: str
    reference: str
    milestone: MilestoneOut
