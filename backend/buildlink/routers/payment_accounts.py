"""Payment Accounts 기능 API 라우터입니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.user import PaymentAccountCreate, PaymentAccountOut
from buildlink.services import payment_account_service
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User

router = APIRouter(prefix="/api/payment-accounts", tags=["payment-accounts"])


@router.get("", response_model=ApiResponse[List[PaymentAccountOut]], response_model_exclude_none=True)
def list_accounts(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    accounts = payment_account_service.list_accounts(db, current_user)
    return envelope([PaymentAccountOut.model_validate(a) for a in accounts])


@router.post("", response_model=ApiResponse[PaymentAccountOut], response_model_exclude_none=True)
def create_account(data: PaymentAccountCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    account = payment_account_service.create_account(db, data, current_user)
    return envelope(PaymentAccountOut.model_validate(account), "Payment account added.")


@router.post("/{account_id}/set-default", response_model=ApiResponse[PaymentAccountOut], response_model_exclude_none=True)
def set_default(account_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    account = payment_account_service.set_default(db, account_id, current_user)
    return envelope(PaymentAccountOut.model_validate(account), "Default payment account updated.")
