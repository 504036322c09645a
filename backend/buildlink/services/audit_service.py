"""Audit Service 도메인 서비스 레이어입니다. 모든 상태 전이를 추가 전용 이벤트로 남깁니다.

이벤트는 전이와 같은 트랜잭션에 추가되므로 커밋은 호출한 서비스가 담당합니다.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from buildlink.models.audit import AuditEvent
from buildlink.models.user import User

logger = logging.getLogger(__name__)

EVENT_TYPES = {
    "project_created",
    "project_activated",
    "project_status_changed",
    "milestones_created",
    "milestone_verified",
    "fund_initiated",
    "fund_confirmed",
    "fund_failed",
    "evidence_added",
    "milestone_submitted",
    "milestone_approved",
    "milestone_rejected",
    "dispute_opened",
    "dispute_resolved",
    "release_requested",
    "release_initiated",
    "escrow_released",
    "admin_override_release",
    "release_failed",
    "refund_initiated",
    "escrow_refunded",
    "refund_failed",
    "payment_pending_confirmation",
    "manual_refund_required",
    "document_set",
    "document_update_requested",
    "document_update_granted",
    "document_update_denied",
    "platform_fee_updated",
}


def _jsonable(payload: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if payload is None:
        return None
    result = {}
    for key, value in payload.items():
        # Decimal/datetime 값은 JSON 컬럼에 문자열로 저장한다.
        if value is None or isinstance(value, (bool, int, str, list, dict)):
            result[key] = value
        else:
            result[key] = str(value)
    return result


def record_event(
    db: Session,
    event_type: str,
    *,
    actor: Optional[User],
    entity_type: str,
    entity_id: int,
    project_id: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> AuditEvent:
    if event_type not in EVENT_TYPES:
        raise ValueError(f"unknown audit event type: {event_type}")
    event = AuditEvent(
        event_type=event_type,
        actor_id=actor.user_id if actor else None,
        actor_role=actor.role if actor else None,
        entity_type=entity_type,
        entity_id=entity_id,
        project_id=project_id,
        payload=_jsonable(payload),
    )
    db.add(event)
    logger.info("[audit] %s %s#%s actor=%s", event_type, entity_type, entity_id, event.actor_id)
    return event


def list_events(
    db: Session,
    *,
    event_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    project_id: Optional[int] = None,
    page: int = 1,
    per_page: int = 50,
):
    q = db.query(AuditEvent)
    if event_type:
        q = q.filter(AuditEvent.event_type == event_type)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if project_id is not None:
        q = q.filter(AuditEvent.project_id == project_id)
    total = q.count()
    items: List[AuditEvent] = (
        q.order_by(AuditEvent.event_id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total
