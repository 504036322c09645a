"""Escrow 기능 API 라우터입니다. 정산(release)과 환불(refund) 요청을 서비스 레이어로 위임합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.escrow import EscrowActionOut, PaymentIntentOut, RefundRequest, ReleaseRequest
from buildlink.services import escrow_service, milestone_service
from buildlink.services.payment_gateway import PaymentGateway, get_payment_gateway
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User
from buildlink.utils.permissions import COMPANY
from buildlink.utils.projections import escrow_view, milestone_view

router = APIRouter(prefix="/api/escrow", tags=["escrow"])


def _action_out(milestone, intent, role: str) -> EscrowActionOut:
    return EscrowActionOut(
        milestone=milestone_view(milestone, role),
        escrow=escrow_view(milestone.escrow, role),
        intent=PaymentIntentOut.model_validate(intent) if intent is not None else None,
    )


def _payout_message(intent, done: str) -> str:
    if intent.status == "pending_confirmation":
        return "The transfer was sent but not yet confirmed by the gateway; it will be reconciled."
    return done


@router.post(
    "/milestones/{milestone_id}/release",
    response_model=ApiResponse[EscrowActionOut],
    response_model_exclude_none=True,
)
def release_escrow(
    milestone_id: int,
    data: Optional[ReleaseRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    data = data or ReleaseRequest()
    # 회사는 정산 요청만 남기고, 실제 송금은 관리자가 실행한다.
    if current_user.role == COMPANY:
        milestone = escrow_service.request_release(db, milestone_id, data, current_user)
        return envelope(_action_out(milestone, None, current_user.role), "Release requested; an admin will review it.")

    intent = escrow_service.release_escrow(db, milestone_id, data, current_user, gateway)
    milestone = milestone_service.get_milestone_or_404(db, milestone_id)
    return envelope(_action_out(milestone, intent, current_user.role), _payout_message(intent, "Escrow released."))


@router.post(
    "/milestones/{milestone_id}/refund",
    response_model=ApiResponse[EscrowActionOut],
    response_model_exclude_none=True,
)
def refund_escrow(
    milestone_id: int,
    data: RefundRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    intent = escrow_service.refund_escrow(db, milestone_id, data, current_user, gateway)
    milestone = milestone_service.get_milestone_or_404(db, milestone_id)
    return envelope(_action_out(milestone, intent, current_user.role), _payout_message(intent, "Escrow refunded."))
