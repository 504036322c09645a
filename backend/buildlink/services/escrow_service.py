"""Escrow Service 도메인 서비스 레이어입니다. 펀딩/정산/환불 등 자금이 움직이는 전이를 담당합니다.

게이트웨이 호출은 항상 다음 순서를 따릅니다.

1. PaymentIntent를 ``initiated`` 로 커밋한다 (의도 기록).
2. 게이트웨이를 한 번 호출한다.
3. 성공이면 ``confirmed`` 와 함께 전이를 적용하고, 오류면 ``failed`` 로 남기고
   엔티티는 전이 이전 상태를 유지한다. 시간 초과면 ``pending_confirmation`` 으로
   남겨 reconcile_pending_intents()가 나중에 확인한다.

같은 reference의 확인 결과는 여러 번 들어와도 한 번만 반영됩니다.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildlink.config import settings
from buildlink.errors import (
    AlreadyFinalized,
    Conflict,
    Forbidden,
    GatewayUnavailable,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from buildlink.models.escrow import Escrow, PaymentIntent, Transaction, INTENT_OPEN, TRANSACTION_TYPES
from buildlink.models.milestone import MILESTONE_STATUSES, Milestone
from buildlink.models.project import Project
from buildlink.models.user import PaymentAccount, User
from buildlink.schemas.escrow import RefundRequest, ReleaseRequest
from buildlink.services import audit_service, notification_service, platform_service, project_service
from buildlink.services.milestone_service import load_for_action, next_status
from buildlink.services.payment_gateway import (
    FAILED,
    SUCCESS,
    GatewayError,
    GatewayTimeout,
    PaymentGateway,
)
from buildlink.utils.helpers import atomic, new_reference
from buildlink.utils.money import compute_fee
from buildlink.utils.permissions import ADMIN, CLIENT, COMPANY, authorize

logger = logging.getLogger(__name__)

ESCROW_CONFLICT = "The escrow was modified by another request. Reload it and retry."
PAYOUT_IN_PROGRESS = "Another release or refund is already in progress for this escrow."
PAYMENT_BEING_INITIATED = "A payment for this milestone is already being initiated. Wait a moment and retry."
PAYMENT_SESSION_CLOSED = "The payment session was closed while it was being created. Start the payment again."


def _actor_for(db: Session, intent: PaymentIntent) -> Optional[User]:
    return db.query(User).filter(User.user_id == intent.created_by).first()


def _record_transaction(db: Session, transaction_type: str, intent: PaymentIntent, escrow: Escrow, amount, platform_fee=None, description=None):
    db.add(Transaction(
        transaction_type=transaction_type,
        project_id=intent.milestone.project_id,
        milestone_id=intent.milestone_id,
        escrow_id=escrow.escrow_id,
        amount=amount,
        platform_fee=platform_fee,
        currency=escrow.currency,
        reference=intent.reference,
        description=description,
    ))


def _find_open_intent(db: Session, milestone_id: int, kind: str) -> Optional[PaymentIntent]:
    return (
        db.query(PaymentIntent)
        .filter(
            PaymentIntent.milestone_id == milestone_id,
            PaymentIntent.kind == kind,
            PaymentIntent.status.in_(INTENT_OPEN),
        )
        .order_by(PaymentIntent.intent_id.desc())
        .first()
    )


def get_intent_by_reference(db: Session, reference: str) -> PaymentIntent:
    intent = (
        db.query(PaymentIntent)
        .filter((PaymentIntent.reference == reference) | (PaymentIntent.gateway_reference == reference))
        .first()
    )
    if not intent:
        raise NotFound("Payment reference not found.")
    return intent


# ---------------------------------------------------------------------------
# fund (deposit)
# ---------------------------------------------------------------------------

def fund_milestone(db: Session, milestone_id: int, current_user: User, gateway: PaymentGateway) -> Tuple[PaymentIntent, Milestone]:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.fund")
    if milestone.escrow is not None:
        raise AlreadyFinalized("Milestone escrow has already been funded.")
    next_status(milestone, "fund")
    if not milestone.is_verified:
        raise InvalidTransition("Milestone must be verified by the client before it can be funded.")

    existing = _find_open_intent(db, milestone_id, "deposit")
    if existing is not None and existing.payment_url:
        # 결제 페이지를 떠났다가 다시 시도하는 경우 같은 세션을 돌려준다.
        return existing, milestone
    if existing is not None:
        # 다른 요청이 아직 게이트웨이 응답을 기다리는 중이다. 멈춘 의도는 reconcile이 정리한다.
        raise Conflict(PAYMENT_BEING_INITIATED)

    # 수수료는 이 시점에 한 번만 읽어 의도에 고정한다.
    fee = platform_service.get_current_fee(db)
    intent = PaymentIntent(
        kind="deposit",
        milestone_id=milestone.milestone_id,
        amount=milestone.amount,
        currency=settings.CURRENCY,
        reference=new_reference("DEP"),
        status="initiated",
        platform_fee_percentage=fee.percentage,
        fee_setting_version=fee.version,
        active_key=f"deposit:{milestone.milestone_id}",
        created_by=current_user.user_id,
    )
    try:
        with atomic(db):
            db.add(intent)
            db.flush()
            audit_service.record_event(
                db,
                "fund_initiated",
                actor=current_user,
                entity_type="milestone",
                entity_id=milestone.milestone_id,
                project_id=project.project_id,
                payload={"reference": intent.reference, "amount": intent.amount, "fee_percentage": fee.percentage},
            )
    except IntegrityError:
        raise Conflict(PAYMENT_BEING_INITIATED)

    try:
        result = gateway.initiate(intent.amount, intent.currency, {
            "reference": intent.reference,
            "kind": "deposit",
            "milestone_id": milestone.milestone_id,
            "project_id": project.project_id,
        })
    except GatewayError as exc:
        with atomic(db):
            intent.status = "failed"
            intent.failure_reason = str(exc)
            intent.active_key = None
            audit_service.record_event(
                db,
                "fund_failed",
                actor=current_user,
                entity_type="milestone",
                entity_id=milestone.milestone_id,
                project_id=project.project_id,
                payload={"reference": intent.reference, "error": str(exc)},
            )
        logger.warning("[payment] deposit initiate failed for milestone %s: %s", milestone.milestone_id, exc)
        raise GatewayUnavailable("The payment gateway is unavailable; the milestone was not funded. Please retry.")

    with atomic(db, PAYMENT_SESSION_CLOSED):
        intent.payment_url = result.payment_url
        intent.gateway_reference = result.reference
    db.refresh(intent)
    db.refresh(milestone)
    logger.info("[payment] deposit %s initiated for milestone %s", intent.reference, milestone.milestone_id)
    return intent, milestone


def _flag_manual_refund(db: Session, intent: PaymentIntent, reason: str):
    """돈은 받았지만 에스크로로 옮길 수 없는 입금. 관리자가 직접 환불해야 한다."""
    if intent.refund_required_at is not None:
        return
    intent.refund_required_at = datetime.utcnow()
    audit_service.record_event(
        db,
        "manual_refund_required",
        actor=None,
        entity_type="payment_intent",
        entity_id=intent.intent_id,
        project_id=intent.milestone.project_id,
        payload={"reference": intent.reference, "amount": intent.amount, "reason": reason},
    )
    for admin in db.query(User).filter(User.role == ADMIN, User.is_active == True).all():
        notification_service.notify(
            db,
            admin.user_id,
            "manual_refund_required",
            "Manual refund required",
            f"Payment {intent.reference} ({intent.amount} {intent.currency}) succeeded but could not be held in escrow: {reason}",
            f"/admin/escrow?milestone={intent.milestone_id}",
        )
    logger.warning("[payment] %s needs a manual refund: %s", intent.reference, reason)


def _apply_deposit_result(db: Session, intent: PaymentIntent, status: str):
    milestone = intent.milestone
    actor = _actor_for(db, intent)
    if status != SUCCESS:
        intent.status = "failed"
        intent.failure_reason = "payment was not completed"
        intent.active_key = None
        audit_service.record_event(
            db,
            "fund_failed",
            actor=actor,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=milestone.project_id,
            payload={"reference": intent.reference},
        )
        return

    if milestone.escrow is not None or milestone.status != "pending":
        # 다른 결제로 이미 펀딩된 경우. 자금은 수동 환불 대상으로 남긴다.
        intent.status = "failed"
        intent.failure_reason = "milestone was already funded by another payment; manual refund required"
        intent.active_key = None
        _flag_manual_refund(db, intent, "milestone was already funded by another payment")
        return

    breakdown = compute_fee(intent.amount, intent.platform_fee_percentage)
    escrow = Escrow(
        milestone_id=milestone.milestone_id,
        amount=breakdown.amount,
        platform_fee_percentage=breakdown.percentage,
        fee_setting_version=intent.fee_setting_version,
        platform_fee=breakdown.platform_fee,
        net_amount=breakdown.net_amount,
        currency=intent.currency,
        status="held",
        payment_reference=intent.reference,
    )
    db.add(escrow)
    milestone.status = next_status(milestone, "fund")
    db.flush()

    intent.escrow_id = escrow.escrow_id
    intent.status = "confirmed"
    intent.confirmed_at = datetime.utcnow()
    intent.active_key = None
    _record_transaction(db, "escrow_deposit", intent, escrow, escrow.amount, description=f"Escrow deposit for '{milestone.title}'")
    audit_service.record_event(
        db,
        "fund_confirmed",
        actor=actor,
        entity_type="escrow",
        entity_id=escrow.escrow_id,
        project_id=milestone.project_id,
        payload={
            "reference": intent.reference,
            "amount": escrow.amount,
            "platform_fee": escrow.platform_fee,
            "fee_percentage": escrow.platform_fee_percentage,
            "fee_setting_version": escrow.fee_setting_version,
        },
    )
    notification_service.notify(
        db,
        milestone.project.company_id,
        "milestone_funded",
        "Milestone funded",
        f"'{milestone.title}' is funded and held in escrow. You can start work and upload evidence.",
        f"/milestones/{milestone.milestone_id}",
    )


# ---------------------------------------------------------------------------
# release / refund (payouts)
# ---------------------------------------------------------------------------

def _require_escrow(milestone: Milestone, action: str) -> Escrow:
    escrow = milestone.escrow
    if escrow is None:
        raise InvalidTransition(f"Milestone has no funded escrow to {action}.")
    if escrow.is_final:
        raise AlreadyFinalized(f"Escrow has already been {escrow.status}; no further changes are allowed.")
    return escrow


def _owned_account(db: Session, account_id: int, owner_id: int, field: str) -> PaymentAccount:
    account = db.query(PaymentAccount).filter(PaymentAccount.account_id == account_id).first()
    if not account or account.user_id != owner_id:
        raise ValidationFailed.field(field, "Payment account not found for the recipient.")
    return account


def _default_account(db: Session, owner_id: int) -> Optional[PaymentAccount]:
    return (
        db.query(PaymentAccount)
        .filter(PaymentAccount.user_id == owner_id)
        .order_by(PaymentAccount.is_default.desc(), PaymentAccount.account_id)
        .first()
    )


def _release_recipient(db: Session, escrow: Escrow, project: Project, data: ReleaseRequest) -> Dict[str, str]:
    if data.recipient_account is not None:
        return data.recipient_account.model_dump()
    if data.account_id is not None:
        return _owned_account(db, data.account_id, project.company_id, "account_id").as_recipient()
    if escrow.release_account is not None:
        return escrow.release_account.as_recipient()
    account = _default_account(db, project.company_id)
    if account is None:
        raise ValidationFailed.field(
            "recipient_account", "No recipient account was provided and the company has no payment account."
        )
    return account.as_recipient()


def _start_payout(
    db: Session,
    kind: str,
    escrow: Escrow,
    milestone: Milestone,
    amount,
    recipient: Dict[str, str],
    current_user: User,
    *,
    override: bool = False,
    reason: Optional[str] = None,
) -> PaymentIntent:
    intent = PaymentIntent(
        kind=kind,
        milestone_id=milestone.milestone_id,
        escrow_id=escrow.escrow_id,
        amount=amount,
        currency=escrow.currency,
        reference=new_reference("REL" if kind == "release" else "RFD"),
        status="initiated",
        recipient=recipient,
        is_override=override,
        reason=reason,
        # release와 refund가 같은 키를 쓰므로 한 에스크로에 동시에 진행될 수 없다.
        active_key=f"escrow:{escrow.escrow_id}",
        created_by=current_user.user_id,
    )
    try:
        with atomic(db, ESCROW_CONFLICT):
            db.add(intent)
            db.flush()
            audit_service.record_event(
                db,
                f"{kind}_initiated",
                actor=current_user,
                entity_type="escrow",
                entity_id=escrow.escrow_id,
                project_id=milestone.project_id,
                payload={"reference": intent.reference, "amount": amount, "override": override},
            )
    except IntegrityError:
        raise Conflict(PAYOUT_IN_PROGRESS)
    return intent


def _fail_payout(db: Session, intent: PaymentIntent, reason: str):
    intent.status = "failed"
    intent.failure_reason = reason
    intent.active_key = None
    audit_service.record_event(
        db,
        f"{intent.kind}_failed",
        actor=_actor_for(db, intent),
        entity_type="escrow",
        entity_id=intent.escrow_id,
        project_id=intent.milestone.project_id,
        payload={"reference": intent.reference, "error": reason},
    )


def _mark_pending_confirmation(db: Session, intent: PaymentIntent):
    intent.status = "pending_confirmation"
    audit_service.record_event(
        db,
        "payment_pending_confirmation",
        actor=_actor_for(db, intent),
        entity_type="escrow" if intent.escrow_id else "milestone",
        entity_id=intent.escrow_id or intent.milestone_id,
        project_id=intent.milestone.project_id,
        payload={"reference": intent.reference, "kind": intent.kind},
    )


def _finalize_payout(db: Session, intent: PaymentIntent):
    escrow = intent.escrow
    milestone = intent.milestone
    project = milestone.project
    actor = _actor_for(db, intent)

    if intent.kind == "release":
        previous = milestone.status
        escrow.status = "released"
        escrow.released_at = datetime.utcnow()
        milestone.status = "released"
        _record_transaction(
            db, "escrow_release", intent, escrow, escrow.net_amount,
            platform_fee=escrow.platform_fee, description=f"Escrow release for '{milestone.title}'",
        )
        _record_transaction(
            db, "platform_fee", intent, escrow, escrow.platform_fee,
            description=f"Platform fee ({escrow.platform_fee_percentage}%) for '{milestone.title}'",
        )
        audit_service.record_event(
            db,
            "admin_override_release" if intent.is_override else "escrow_released",
            actor=actor,
            entity_type="escrow",
            entity_id=escrow.escrow_id,
            project_id=project.project_id,
            payload={
                "reference": intent.reference,
                "milestone_status_before": previous,
                "net_amount": escrow.net_amount,
                "platform_fee": escrow.platform_fee,
            },
        )
        notification_service.notify(
            db,
            project.company_id,
            "escrow_released",
            "Escrow released",
            f"{escrow.net_amount} {escrow.currency} for '{milestone.title}' was released to your account.",
            f"/milestones/{milestone.milestone_id}",
        )
    else:
        escrow.status = "refunded"
        escrow.refunded_at = datetime.utcnow()
        escrow.refund_reason = intent.reason
        _record_transaction(
            db, "escrow_refund", intent, escrow, escrow.amount,
            description=f"Escrow refund for '{milestone.title}'",
        )
        audit_service.record_event(
            db,
            "escrow_refunded",
            actor=actor,
            entity_type="escrow",
            entity_id=escrow.escrow_id,
            project_id=project.project_id,
            payload={"reference": intent.reference, "amount": escrow.amount, "reason": intent.reason},
        )
        for user_id in (project.client_id, project.company_id):
            notification_service.notify(
                db,
                user_id,
                "escrow_refunded",
                "Escrow refunded",
                f"{escrow.amount} {escrow.currency} for '{milestone.title}' was refunded to the client.",
                f"/milestones/{milestone.milestone_id}",
            )

    intent.status = "confirmed"
    intent.confirmed_at = datetime.utcnow()
    intent.active_key = None
    project_service.apply_derived_status(db, project, actor)


def _execute_payout(db: Session, intent: PaymentIntent, gateway: PaymentGateway) -> PaymentIntent:
    try:
        result = gateway.transfer(intent.amount, intent.currency, intent.recipient, {
            "reference": intent.reference,
            "kind": intent.kind,
            "milestone_id": intent.milestone_id,
            "escrow_id": intent.escrow_id,
            "reason": intent.reason,
        })
    except GatewayTimeout:
        # 송금이 실제로 나갔는지 알 수 없으므로 키를 유지한 채 나중에 확인한다.
        with atomic(db, ESCROW_CONFLICT):
            _mark_pending_confirmation(db, intent)
        logger.warning("[payment] %s %s timed out; awaiting confirmation", intent.kind, intent.reference)
        db.refresh(intent)
        return intent
    except GatewayError as exc:
        with atomic(db, ESCROW_CONFLICT):
            _fail_payout(db, intent, str(exc))
        logger.warning("[payment] %s %s failed: %s", intent.kind, intent.reference, exc)
        raise GatewayUnavailable(
            f"The payment gateway is unavailable; the escrow remains held and was not {intent.kind}d. Please retry."
        )

    with atomic(db, ESCROW_CONFLICT):
        intent.gateway_reference = result.reference
        if result.status == SUCCESS:
            _finalize_payout(db, intent)
        elif result.status == FAILED:
            _fail_payout(db, intent, "transfer was rejected by the gateway")
        else:
            _mark_pending_confirmation(db, intent)
    db.refresh(intent)
    if intent.status == "failed":
        raise GatewayUnavailable(f"The gateway rejected the transfer; the escrow remains held and was not {intent.kind}d.")
    logger.info("[payment] %s %s -> %s", intent.kind, intent.reference, intent.status)
    return intent


def release_escrow(db: Session, milestone_id: int, data: ReleaseRequest, current_user: User, gateway: PaymentGateway) -> PaymentIntent:
    milestone, project = load_for_action(db, milestone_id, current_user, "escrow.release")
    escrow = _require_escrow(milestone, "release")
    if milestone.status != "approved" and not data.override:
        raise InvalidTransition(
            f"Milestone not yet approved (status: {milestone.status}); use override to release anyway."
        )
    recipient = _release_recipient(db, escrow, project, data)
    intent = _start_payout(
        db, "release", escrow, milestone, escrow.net_amount, recipient, current_user, override=data.override,
    )
    return _execute_payout(db, intent, gateway)


def refund_escrow(db: Session, milestone_id: int, data: RefundRequest, current_user: User, gateway: PaymentGateway) -> PaymentIntent:
    milestone, project = load_for_action(db, milestone_id, current_user, "escrow.refund")
    escrow = _require_escrow(milestone, "refund")
    if data.account_id is not None:
        account = _owned_account(db, data.account_id, project.client_id, "account_id")
    else:
        account = _default_account(db, project.client_id)
        if account is None:
            raise ValidationFailed.field("account_id", "The client has no payment account to receive the refund.")
    intent = _start_payout(
        db, "refund", escrow, milestone, escrow.amount, account.as_recipient(), current_user, reason=data.reason,
    )
    return _execute_payout(db, intent, gateway)


def request_release(db: Session, milestone_id: int, data: ReleaseRequest, current_user: User) -> Milestone:
    """회사가 정산을 요청한다. 관리자 대기열에 올라갈 뿐 자금은 움직이지 않는다."""
    milestone, project = load_for_action(db, milestone_id, current_user, "escrow.request_release")
    escrow = _require_escrow(milestone, "release")
    if milestone.status != "approved":
        raise InvalidTransition(
            f"Milestone not yet approved (status: {milestone.status}); the client must approve it before release can be requested."
        )
    if data.account_id is not None:
        account = _owned_account(db, data.account_id, current_user.user_id, "account_id")
    else:
        account = _default_account(db, current_user.user_id)
        if account is None:
            raise ValidationFailed.field("account_id", "Add a payment account before requesting a release.")

    with atomic(db, ESCROW_CONFLICT):
        escrow.release_requested_at = datetime.utcnow()
        escrow.release_requested_by = current_user.user_id
        escrow.release_account_id = account.account_id
        audit_service.record_event(
            db,
            "release_requested",
            actor=current_user,
            entity_type="escrow",
            entity_id=escrow.escrow_id,
            project_id=project.project_id,
            payload={"account_id": account.account_id},
        )
        for admin in db.query(User).filter(User.role == ADMIN, User.is_active == True).all():
            notification_service.notify(
                db,
                admin.user_id,
                "release_requested",
                "Escrow release requested",
                f"Release requested for '{milestone.title}' ({escrow.net_amount} {escrow.currency}).",
                f"/admin/escrow?milestone={milestone.milestone_id}",
            )
    db.refresh(milestone)
    return milestone


# ---------------------------------------------------------------------------
# confirmation (webhook / verify / reconciliation)
# ---------------------------------------------------------------------------

def confirm_payment(db: Session, reference: str, status: str) -> PaymentIntent:
    """게이트웨이 확인 결과를 반영한다. 이미 끝난 reference는 다시 반영하지 않는다."""
    intent = get_intent_by_reference(db, reference)
    if not intent.is_open:
        if intent.kind == "deposit" and intent.status == "failed" and status == SUCCESS:
            with atomic(db, ESCROW_CONFLICT):
                _flag_manual_refund(db, intent, f"payment succeeded after the intent was closed ({intent.failure_reason})")
            db.refresh(intent)
        else:
            logger.info("[payment] %s already %s; ignoring %s", intent.reference, intent.status, status)
        return intent

    with atomic(db, ESCROW_CONFLICT):
        if intent.kind == "deposit":
            if status in (SUCCESS, FAILED):
                _apply_deposit_result(db, intent, status)
            else:
                _mark_pending_confirmation(db, intent)
        elif status == SUCCESS:
            _finalize_payout(db, intent)
        elif status == FAILED:
            _fail_payout(db, intent, "transfer failed at the gateway")
        else:
            _mark_pending_confirmation(db, intent)
    db.refresh(intent)
    logger.info("[payment] %s %s confirmed as %s", intent.kind, intent.reference, intent.status)
    return intent


def _gateway_status(gateway: PaymentGateway, intent: PaymentIntent) -> str:
    # 입금은 결제 조회, 정산/환불은 송금 조회 API로 확인한다.
    reference = intent.gateway_reference or intent.reference
    if intent.kind == "deposit":
        return gateway.verify(reference)
    return gateway.verify_transfer(reference)


def verify_payment(db: Session, reference: str, current_user: User, gateway: PaymentGateway) -> PaymentIntent:
    intent = get_intent_by_reference(db, reference)
    project = intent.milestone.project
    if current_user.role != ADMIN and current_user.user_id not in (project.client_id, project.company_id):
        raise Forbidden("You do not have access to this payment.")
    if not intent.is_open:
        return intent
    try:
        status = _gateway_status(gateway, intent)
    except GatewayTimeout:
        with atomic(db):
            _mark_pending_confirmation(db, intent)
        db.refresh(intent)
        return intent
    except GatewayError as exc:
        logger.warning("[payment] verify %s failed: %s", intent.reference, exc)
        raise GatewayUnavailable("The payment gateway is unavailable; payment status could not be verified.")
    return confirm_payment(db, intent.reference, status)


def reconcile_pending_intents(db: Session, gateway: PaymentGateway, older_than_minutes: Optional[int] = None) -> Dict[str, int]:
    """확인되지 않은 결제 의도를 게이트웨이에 다시 조회해 마무리한다."""
    minutes = settings.RECONCILE_AFTER_MINUTES if older_than_minutes is None else older_than_minutes
    cutoff = datetime.utcnow() - timedelta(minutes=minutes)
    intents: List[PaymentIntent] = (
        db.query(PaymentIntent)
        .filter(PaymentIntent.status.in_(INTENT_OPEN), PaymentIntent.created_at <= cutoff)
        .order_by(PaymentIntent.intent_id)
        .all()
    )
    summary = {"checked": 0, "confirmed": 0, "failed": 0, "pending": 0, "errors": 0}
    for intent in intents:
        summary["checked"] += 1
        if intent.kind == "deposit" and not intent.payment_url:
            # 게이트웨이 응답 전에 중단된 결제 세션. 사용자는 결제 페이지를 받지 못했다.
            with atomic(db):
                intent.status = "failed"
                intent.failure_reason = "gateway session was never created"
                intent.active_key = None
            summary["failed"] += 1
            continue
        try:
            status = _gateway_status(gateway, intent)
        except GatewayError as exc:
            logger.warning("[payment] reconcile %s skipped: %s", intent.reference, exc)
            summary["errors"] += 1
            continue
        intent = confirm_payment(db, intent.reference, status)
        if intent.status == "confirmed":
            summary["confirmed"] += 1
        elif intent.status == "failed":
            summary["failed"] += 1
        else:
            summary["pending"] += 1
    logger.info("[payment] reconciliation finished: %s", summary)
    return summary


# ---------------------------------------------------------------------------
# queries
# ---------------------------------------------------------------------------

def list_release_queue(
    db: Session,
    *,
    milestone_status: Optional[str] = None,
    requested_only: bool = False,
    page: int = 1,
    per_page: int = 15,
):
    if milestone_status and milestone_status not in MILESTONE_STATUSES:
        raise ValidationFailed.field("status", f"Unknown milestone status '{milestone_status}'.")
    q = db.query(Milestone).join(Escrow, Escrow.milestone_id == Milestone.milestone_id).filter(Escrow.status == "held")
    if milestone_status:
        q = q.filter(Milestone.status == milestone_status)
    if requested_only:
        q = q.filter(Escrow.release_requested_at.isnot(None))
    total = q.count()
    items = (
        q.order_by(Escrow.release_requested_at.is_(None), Escrow.release_requested_at, Milestone.milestone_id)
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def list_transactions(
    db: Session,
    current_user: User,
    *,
    transaction_type: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
):
    if transaction_type and transaction_type not in TRANSACTION_TYPES:
        raise ValidationFailed.field("transaction_type", f"Unknown transaction type '{transaction_type}'.")
    q = db.query(Transaction).join(Project, Project.project_id == Transaction.project_id)
    if current_user.role == CLIENT:
        q = q.filter(Project.client_id == current_user.user_id, Transaction.transaction_type != "platform_fee")
    elif current_user.role == COMPANY:
        q = q.filter(Project.company_id == current_user.user_id, Transaction.transaction_type != "platform_fee")
    else:
        authorize(current_user, "audit.view")
    if transaction_type:
        q = q.filter(Transaction.transaction_type == transaction_type)
    total = q.count()
    items = (
        q.order_by(Transaction.transaction_id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total
