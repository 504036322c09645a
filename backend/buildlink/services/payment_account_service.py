"""Payment Account Service 도메인 서비스 레이어입니다. 정산/환불 수취 계좌를 관리합니다."""

from typing import List

from sqlalchemy.orm import Session

from buildlink.errors import NotFound
from buildlink.models.user import PaymentAccount, User
from buildlink.schemas.user import PaymentAccountCreate
from buildlink.utils.helpers import atomic


def list_accounts(db: Session, current_user: User) -> List[PaymentAccount]:
    return (
        db.query(PaymentAccount)
        .filter(PaymentAccount.user_id == current_user.user_id)
        .order_by(PaymentAccount.is_default.desc(), PaymentAccount.account_id)
        .all()
    )


def _clear_default(db: Session, user_id: int):
    db.query(PaymentAccount).filter(
        PaymentAccount.user_id == user_id,
        PaymentAccount.is_default == True,
    ).update({"is_default": False})


def create_account(db: Session, data: PaymentAccountCreate, current_user: User) -> PaymentAccount:
    has_accounts = db.query(PaymentAccount).filter(PaymentAccount.user_id == current_user.user_id).count() > 0
    # 첫 계좌는 항상 기본 계좌가 된다.
    make_default = data.is_default or not has_accounts
    with atomic(db):
        if make_default:
            _clear_default(db, current_user.user_id)
        account = PaymentAccount(
            user_id=current_user.user_id,
            **data.model_dump(exclude={"is_default"}),
            is_default=make_default,
        )
        db.add(account)
    db.refresh(account)
    return account


def set_default(db: Session, account_id: int, current_user: User) -> PaymentAccount:
    account = db.query(PaymentAccount).filter(
        PaymentAccount.account_id == account_id,
        PaymentAccount.user_id == current_user.user_id,
    ).first()
    if not account:
        raise NotFound("Payment account not found.")
    with atomic(db):
        _clear_default(db, current_user.user_id)
        account.is_default = True
    db.refresh(account)
    return account
