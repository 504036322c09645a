"""Payments 기능 API 라우터입니다. 게이트웨이 결제 확인(verify/webhook)을 처리합니다."""

import hmac

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from typing import Optional
from buildlink.config import settings
from buildlink.database import get_db
from buildlink.errors import Forbidden
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.escrow import PaymentIntentOut, PaymentVerifyRequest, PaymentWebhookPayload
from buildlink.services import escrow_service
from buildlink.services.payment_gateway import PaymentGateway, get_payment_gateway
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/verify", response_model=ApiResponse[PaymentIntentOut], response_model_exclude_none=True)
def verify_payment(
    data: PaymentVerifyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    intent = escrow_service.verify_payment(db, data.reference, current_user, gateway)
    return envelope(PaymentIntentOut.model_validate(intent), f"Payment is {intent.status}.")


@router.post("/webhook", response_model=ApiResponse[PaymentIntentOut], response_model_exclude_none=True)
def payment_webhook(
    data: PaymentWebhookPayload,
    x_webhook_secret: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
):
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, settings.PAYMENT_WEBHOOK_SECRET):
        raise Forbidden("Invalid webhook signature.")
    intent = escrow_service.confirm_payment(db, data.reference, data.status)
    return envelope(PaymentIntentOut.model_validate(intent), f"Payment is {intent.status}.")
