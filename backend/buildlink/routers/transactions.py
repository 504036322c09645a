"""Transactions 기능 API 라우터입니다. 역할별로 범위가 제한된 거래 내역을 제공합니다."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope, pagination_meta
from buildlink.schemas.escrow import TransactionOut
from buildlink.services import escrow_service
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User
from buildlink.utils.projections import transaction_view

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=ApiResponse[List[TransactionOut]], response_model_exclude_none=True)
def list_transactions(
    transaction_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = escrow_service.list_transactions(
        db, current_user, transaction_type=transaction_type, page=page, per_page=per_page,
    )
    return envelope(
        [transaction_view(t, current_user.role) for t in items],
        meta=pagination_meta(page, per_page, total),
    )
