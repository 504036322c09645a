"""Milestone Service 도메인 서비스 레이어입니다. 마일스톤 상태 전이 규칙을 한 곳에서 관리합니다.

전이 표 (이벤트, 현재 상태) -> 다음 상태:

    pending   --fund-->    funded      (client, verified 필요, 게이트웨이 확인 후)
    funded    --submit-->  submitted   (company, 현재 revision 증빙 1개 이상)
    rejected  --submit-->  submitted   (company, 새 revision 증빙 필요)
    submitted --approve--> approved    (client)
    submitted --reject-->  rejected    (client, Dispute 자동 생성)
    approved  --release--> released    (admin, override 시 상태 무관)

자금 이동이 있는 fund/release/refund는 escrow_service가 담당합니다.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildlink.errors import AlreadyFinalized, Conflict, InvalidTransition, NotFound, ValidationFailed
from buildlink.models.dispute import Dispute
from buildlink.models.milestone import Milestone, MilestoneEvidence
from buildlink.models.project import Project
from buildlink.models.user import User
from buildlink.schemas.milestone import ApproveRequest, EvidenceCreate, MilestoneBatchCreate, SubmitRequest
from buildlink.services import audit_service, notification_service, project_service
from buildlink.utils.helpers import atomic
from buildlink.utils.permissions import authorize

logger = logging.getLogger(__name__)

TRANSITIONS = {
    ("pending", "fund"): "funded",
    ("funded", "submit"): "submitted",
    ("rejected", "submit"): "submitted",
    ("submitted", "approve"): "approved",
    ("submitted", "reject"): "rejected",
    ("approved", "release"): "released",
}
EVENT_TARGETS = {event: target for (_, event), target in TRANSITIONS.items()}

CONFLICT_MESSAGE = "The milestone was modified by another request. Reload it and retry."


def next_status(milestone: Milestone, event: str) -> str:
    """전이 표를 확인해 다음 상태를 돌려준다.

    이미 목표 상태라면 AlreadyFinalized, 그 외 허용되지 않은 전이는 InvalidTransition.
    """
    target = TRANSITIONS.get((milestone.status, event))
    if target is not None:
        return target
    if milestone.status == EVENT_TARGETS.get(event):
        raise AlreadyFinalized(f"Milestone is already {milestone.status}.")
    allowed_from = sorted(state for (state, name) in TRANSITIONS if name == event)
    raise InvalidTransition(
        f"Cannot {event} a milestone that is {milestone.status}; "
        f"{event} is only allowed from: {', '.join(allowed_from)}."
    )


def get_milestone_or_404(db: Session, milestone_id: int) -> Milestone:
    milestone = db.query(Milestone).filter(Milestone.milestone_id == milestone_id).first()
    if not milestone:
        raise NotFound("Milestone not found.")
    return milestone


def load_for_action(db: Session, milestone_id: int, current_user: User, action: str) -> Tuple[Milestone, Project]:
    milestone = get_milestone_or_404(db, milestone_id)
    project = milestone.project
    authorize(current_user, action, project)
    return milestone, project


def get_milestone(db: Session, milestone_id: int, current_user: User) -> Milestone:
    milestone, _ = load_for_action(db, milestone_id, current_user, "milestone.view")
    return milestone


def _validate_batch(data: MilestoneBatchCreate):
    errors = {}
    counts = Counter(item.sequence_order for item in data.milestones)
    for index, item in enumerate(data.milestones):
        key = f"milestones.{index}.sequence_order"
        if item.sequence_order < 1:
            errors.setdefault(key, []).append("sequence_order must be at least 1.")
        if counts[item.sequence_order] > 1:
            errors.setdefault(key, []).append(f"Duplicate sequence_order {item.sequence_order} in batch.")
    if errors:
        raise ValidationFailed("The milestone batch was rejected; no milestones were created.", errors)


def create_milestones(db: Session, project_id: int, data: MilestoneBatchCreate, current_user: User):
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "milestone.create", project)
    if project.status != "draft":
        raise InvalidTransition("Milestones can only be created while the project is draft.")
    if db.query(Milestone).filter(Milestone.project_id == project_id).count():
        raise InvalidTransition("Milestones have already been created for this project.")
    _validate_batch(data)

    try:
        with atomic(db, CONFLICT_MESSAGE):
            created = []
            for item in sorted(data.milestones, key=lambda m: m.sequence_order):
                milestone = Milestone(
                    project_id=project_id,
                    title=item.title,
                    description=item.description,
                    amount=item.amount,
                    sequence_order=item.sequence_order,
                    status="pending",
                )
                db.add(milestone)
                created.append(milestone)
            db.flush()
            audit_service.record_event(
                db,
                "milestones_created",
                actor=current_user,
                entity_type="project",
                entity_id=project_id,
                project_id=project_id,
                payload={"milestone_ids": [m.milestone_id for m in created]},
            )
            notification_service.notify(
                db,
                project.client_id,
                "milestones_created",
                "Milestones ready for review",
                f"{len(created)} milestone(s) were proposed for '{project.title}'. Verify each one to activate the project.",
                f"/projects/{project_id}",
            )
    except IntegrityError:
        raise Conflict("Milestones were created concurrently for this project. Reload and retry.")
    for milestone in created:
        db.refresh(milestone)
    logger.info("[escrow] project %s: %s milestones created", project_id, len(created))
    return created


def verify_milestone(db: Session, milestone_id: int, current_user: User) -> Milestone:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.verify")
    if project.status not in ("draft", "active"):
        raise InvalidTransition(f"Milestones cannot be verified while the project is {project.status}.")
    if milestone.is_verified:
        raise AlreadyFinalized("Milestone has already been verified.")

    with atomic(db, CONFLICT_MESSAGE):
        milestone.verified_at = datetime.utcnow()
        milestone.verified_by = current_user.user_id
        # 검증마다 프로젝트 버전을 올린다. 같은 프로젝트의 동시 검증은 하나만 커밋된다.
        project.updated_at = datetime.utcnow()
        audit_service.record_event(
            db,
            "milestone_verified",
            actor=current_user,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=project.project_id,
        )
        project_service.apply_derived_status(db, project, current_user)
    db.refresh(milestone)
    return milestone


def _append_evidence(milestone: Milestone, item: EvidenceCreate, current_user: User) -> MilestoneEvidence:
    evidence = MilestoneEvidence(
        evidence_type=item.evidence_type,
        file_url=item.file_url,
        description=item.description,
        revision=milestone.revision,
        uploaded_by=current_user.user_id,
    )
    milestone.evidence.append(evidence)
    return evidence


def add_evidence(db: Session, milestone_id: int, data: EvidenceCreate, current_user: User) -> MilestoneEvidence:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.add_evidence")
    if milestone.status not in ("funded", "rejected"):
        raise InvalidTransition(
            f"Evidence can only be added while the milestone is funded or rejected (current: {milestone.status})."
        )
    with atomic(db, CONFLICT_MESSAGE):
        evidence = _append_evidence(milestone, data, current_user)
        db.flush()
        audit_service.record_event(
            db,
            "evidence_added",
            actor=current_user,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=project.project_id,
            payload={"evidence_id": evidence.evidence_id, "type": evidence.evidence_type},
        )
    db.refresh(evidence)
    return evidence


def submit_milestone(db: Session, milestone_id: int, data: SubmitRequest, current_user: User) -> Milestone:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.submit")
    previous = milestone.status
    target = next_status(milestone, "submit")

    with atomic(db, CONFLICT_MESSAGE):
        for item in data.evidence:
            _append_evidence(milestone, item, current_user)
        if not milestone.current_evidence():
            if previous == "rejected":
                raise InvalidTransition("Resubmitting a rejected milestone requires new evidence.")
            raise InvalidTransition("At least one evidence item is required before submitting the milestone.")
        milestone.status = target
        milestone.submitted_at = datetime.utcnow()
        if data.company_notes is not None:
            milestone.company_notes = data.company_notes
        audit_service.record_event(
            db,
            "milestone_submitted",
            actor=current_user,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=project.project_id,
            payload={"from": previous, "revision": milestone.revision},
        )
        notification_service.notify(
            db,
            project.client_id,
            "milestone_submitted",
            "Milestone submitted for review",
            f"'{milestone.title}' was submitted. Review the evidence and approve or reject it.",
            f"/milestones/{milestone.milestone_id}",
        )
    db.refresh(milestone)
    logger.info("[escrow] milestone %s %s -> submitted", milestone.milestone_id, previous)
    return milestone


def approve_milestone(db: Session, milestone_id: int, data: Optional[ApproveRequest], current_user: User) -> Milestone:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.approve")
    target = next_status(milestone, "approve")

    with atomic(db, CONFLICT_MESSAGE):
        milestone.status = target
        milestone.approved_at = datetime.utcnow()
        if data is not None and data.client_notes is not None:
            milestone.client_notes = data.client_notes
        audit_service.record_event(
            db,
            "milestone_approved",
            actor=current_user,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=project.project_id,
        )
        notification_service.notify(
            db,
            project.company_id,
            "milestone_approved",
            "Milestone approved",
            f"'{milestone.title}' was approved. You can now request escrow release.",
            f"/milestones/{milestone.milestone_id}",
        )
    db.refresh(milestone)
    logger.info("[escrow] milestone %s approved", milestone.milestone_id)
    return milestone


def _open_dispute(db: Session, project: Project, milestone: Milestone, reason: str, source: str, current_user: User) -> Dispute:
    dispute = Dispute(
        milestone_id=milestone.milestone_id,
        raised_by=current_user.user_id,
        source=source,
        reason=reason,
        status="open",
    )
    project.disputes.append(dispute)
    db.flush()
    audit_service.record_event(
        db,
        "dispute_opened",
        actor=current_user,
        entity_type="dispute",
        entity_id=dispute.dispute_id,
        project_id=project.project_id,
        payload={"milestone_id": milestone.milestone_id, "source": source},
    )
    return dispute


def reject_milestone(db: Session, milestone_id: int, reason: str, current_user: User) -> Milestone:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.reject")
    target = next_status(milestone, "reject")

    with atomic(db, CONFLICT_MESSAGE):
        milestone.status = target
        milestone.client_notes = reason
        # 재제출 시 새 증빙을 요구하기 위해 revision을 올린다.
        milestone.revision = milestone.revision + 1
        audit_service.record_event(
            db,
            "milestone_rejected",
            actor=current_user,
            entity_type="milestone",
            entity_id=milestone.milestone_id,
            project_id=project.project_id,
            payload={"reason": reason},
        )
        _open_dispute(db, project, milestone, reason, "rejection", current_user)
        project_service.apply_derived_status(db, project, current_user)
        notification_service.notify(
            db,
            project.company_id,
            "milestone_rejected",
            "Milestone rejected",
            f"'{milestone.title}' was rejected: {reason}",
            f"/milestones/{milestone.milestone_id}",
        )
    db.refresh(milestone)
    logger.info("[escrow] milestone %s rejected", milestone.milestone_id)
    return milestone


def dispute_milestone(db: Session, milestone_id: int, reason: str, current_user: User) -> Dispute:
    milestone, project = load_for_action(db, milestone_id, current_user, "milestone.dispute")
    if milestone.status != "submitted":
        raise InvalidTransition(
            f"A dispute can only be opened on a submitted milestone (current: {milestone.status})."
        )

    with atomic(db, CONFLICT_MESSAGE):
        dispute = _open_dispute(db, project, milestone, reason, "direct", current_user)
        project_service.apply_derived_status(db, project, current_user)
        notification_service.notify(
            db,
            project.company_id,
            "dispute_opened",
            "Dispute opened",
            f"The client opened a dispute on '{milestone.title}': {reason}",
            f"/milestones/{milestone.milestone_id}",
        )
    db.refresh(dispute)
    return dispute
