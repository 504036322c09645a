"""Milestones 기능 API 라우터입니다. 마일스톤 상태 전이 요청을 서비스 레이어로 위임합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.dispute import DisputeOut
from buildlink.schemas.milestone import (
    ApproveRequest, EvidenceCreate, EvidenceOut, FundResponse, MilestoneOut, ReasonRequest, SubmitRequest,
)
from buildlink.services import escrow_service, milestone_service
from buildlink.services.payment_gateway import PaymentGateway, get_payment_gateway
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User
from buildlink.utils.projections import milestone_view

router = APIRouter(prefix="/api/milestones", tags=["milestones"])


@router.get("/{milestone_id}", response_model=ApiResponse[MilestoneOut], response_model_exclude_none=True)
def get_milestone(milestone_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    milestone = milestone_service.get_milestone(db, milestone_id, current_user)
    return envelope(milestone_view(milestone, current_user.role))


@router.post("/{milestone_id}/verify", response_model=ApiResponse[MilestoneOut], response_model_exclude_none=True)
def verify_milestone(milestone_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    milestone = milestone_service.verify_milestone(db, milestone_id, current_user)
    return envelope(milestone_view(milestone, current_user.role), "Milestone verified.")


@router.post("/{milestone_id}/fund", response_model=ApiResponse[FundResponse], response_model_exclude_none=True)
def fund_milestone(
    milestone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    intent, milestone = escrow_service.fund_milestone(db, milestone_id, current_user, gateway)
    return envelope(
        FundResponse(
            payment_url=intent.payment_url,
            reference=intent.reference,
            milestone=milestone_view(milestone, current_user.role),
        ),
        "Complete the payment to fund the milestone.",
    )


@router.post("/{milestone_id}/evidence", response_model=ApiResponse[EvidenceOut], response_model_exclude_none=True)
def add_evidence(
    milestone_id: int,
    data: EvidenceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    evidence = milestone_service.add_evidence(db, milestone_id, data, current_user)
    return envelope(EvidenceOut.model_validate(evidence), "Evidence added.")


@router.post("/{milestone_id}/submit", response_model=ApiResponse[MilestoneOut], response_model_exclude_none=True)
def submit_milestone(
    milestone_id: int,
    data: Optional[SubmitRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    milestone = milestone_service.submit_milestone(db, milestone_id, data or SubmitRequest(), current_user)
    return envelope(milestone_view(milestone, current_user.role), "Milestone submitted for review.")


@router.post("/{milestone_id}/approve", response_model=ApiResponse[MilestoneOut], response_model_exclude_none=True)
def approve_milestone(
    milestone_id: int,
    data: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    milestone = milestone_service.approve_milestone(db, milestone_id, data, current_user)
    return envelope(milestone_view(milestone, current_user.role), "Milestone approved.")


@router.post("/{milestone_id}/reject", response_model=ApiResponse[MilestoneOut], response_model_exclude_none=True)
def reject_milestone(
    milestone_id: int,
    data: ReasonRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    milestone = milestone_service.reject_milestone(db, milestone_id, data.reason, current_user)
    return envelope(milestone_view(milestone, current_user.role), "Milestone rejected and a dispute was opened.")


@router.post("/{milestone_id}/dispute", response_model=ApiResponse[DisputeOut], response_model_exclude_none=True)
def dispute_milestone(
    milestone_id: int,
    data: ReasonRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    dispute = milestone_service.dispute_milestone(db, milestone_id, data.reason, current_user)
    return envelope(DisputeOut.model_validate(dispute), "Dispute opened.")
