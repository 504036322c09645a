"""Dispute Service 도메인 서비스 레이어입니다. 관리자 분쟁 조회와 해결을 담당합니다."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from buildlink.errors import AlreadyFinalized, NotFound, ValidationFailed
from buildlink.models.dispute import DISPUTE_STATUSES, Dispute
from buildlink.models.user import User
from buildlink.schemas.dispute import DisputeResolve
from buildlink.services import audit_service, notification_service, project_service
from buildlink.utils.helpers import atomic
from buildlink.utils.permissions import authorize

logger = logging.getLogger(__name__)


def list_disputes(
    db: Session,
    current_user: User,
    *,
    status: Optional[str] = None,
    project_id: Optional[int] = None,
    page: int = 1,
    per_page: int = 15,
):
    authorize(current_user, "dispute.view")
    if status and status not in DISPUTE_STATUSES:
        raise ValidationFailed.field("status", f"Unknown dispute status '{status}'.")
    q = db.query(Dispute)
    if status:
        q = q.filter(Dispute.status == status)
    if project_id is not None:
        q = q.filter(Dispute.project_id == project_id)
    total = q.count()
    items = (
        q.order_by(Dispute.dispute_id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def get_dispute(db: Session, dispute_id: int, current_user: User) -> Dispute:
    authorize(current_user, "dispute.view")
    dispute = db.query(Dispute).filter(Dispute.dispute_id == dispute_id).first()
    if not dispute:
        raise NotFound("Dispute not found.")
    return dispute


def resolve_dispute(db: Session, dispute_id: int, data: DisputeResolve, current_user: User) -> Dispute:
    dispute = get_dispute(db, dispute_id, current_user)
    authorize(current_user, "dispute.resolve")
    if dispute.status == "resolved":
        raise AlreadyFinalized("Dispute has already been resolved.")

    project = dispute.project
    with atomic(db, "The dispute was modified by another request. Reload it and retry."):
        dispute.status = data.status
        dispute.resolution_notes = data.resolution
        if data.status == "resolved":
            dispute.resolved_by = current_user.user_id
            dispute.resolved_at = datetime.utcnow()
        audit_service.record_event(
            db,
            "dispute_resolved",
            actor=current_user,
            entity_type="dispute",
            entity_id=dispute.dispute_id,
            project_id=project.project_id,
            payload={"status": data.status, "resolution": data.resolution},
        )
        project_service.apply_derived_status(db, project, current_user)
        for user_id in (project.client_id, project.company_id):
            notification_service.notify(
                db,
                user_id,
                "dispute_resolved",
                f"Dispute {data.status}",
                f"The dispute on '{project.title}' was {data.status}: {data.resolution}",
                f"/projects/{project.project_id}",
            )
    db.refresh(dispute)
    logger.info("[escrow] dispute %s -> %s", dispute.dispute_id, dispute.status)
    return dispute
