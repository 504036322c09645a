"""Project Service 도메인 서비스 레이어입니다. 프로젝트 생성/조회와 파생 상태 계산을 담당합니다."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildlink.errors import Conflict, InvalidTransition, NotFound, Forbidden, ValidationFailed
from buildlink.models.consultation import Consultation
from buildlink.models.dispute import Dispute, DISPUTE_UNRESOLVED
from buildlink.models.milestone import Milestone
from buildlink.models.project import PROJECT_STATUSES, Project
from buildlink.models.user import User
from buildlink.schemas.project import ProjectCreate
from buildlink.services import audit_service, notification_service
from buildlink.utils.helpers import atomic
from buildlink.utils.permissions import ADMIN, CLIENT, COMPANY, authorize

logger = logging.getLogger(__name__)


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.project_id == project_id).first()
    if not project:
        raise NotFound("Project not found.")
    return project


def get_project(db: Session, project_id: int, current_user: User) -> Project:
    project = get_project_or_404(db, project_id)
    authorize(current_user, "project.view", project)
    return project


def list_projects(
    db: Session,
    current_user: User,
    *,
    status: Optional[str] = None,
    page: int = 1,
    per_page: int = 15,
) -> Tuple[List[Project], int]:
    if status and status not in PROJECT_STATUSES:
        raise ValidationFailed.field("status", f"Unknown project status '{status}'.")
    q = db.query(Project)
    if current_user.role == CLIENT:
        q = q.filter(Project.client_id == current_user.user_id)
    elif current_user.role == COMPANY:
        q = q.filter(Project.company_id == current_user.user_id)
    elif current_user.role != ADMIN:
        raise Forbidden("Unknown role.")
    if status:
        q = q.filter(Project.status == status)
    total = q.count()
    items = (
        q.order_by(Project.created_at.desc(), Project.project_id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return items, total


def create_project(db: Session, data: ProjectCreate, current_user: User) -> Project:
    authorize(current_user, "project.create")
    consultation = (
        db.query(Consultation)
        .filter(Consultation.consultation_id == data.consultation_id)
        .first()
    )
    if not consultation:
        raise NotFound("Consultation not found.")
    if consultation.client_id != current_user.user_id:
        raise Forbidden("You can only create projects from your own consultations.")
    if not consultation.is_convertible:
        raise InvalidTransition("Only a completed and paid consultation can be converted into a project.")
    if consultation.project is not None:
        raise InvalidTransition("A project already exists for this consultation.")

    project = Project(
        consultation_id=consultation.consultation_id,
        client_id=consultation.client_id,
        company_id=consultation.company_id,
        title=data.title,
        description=data.description,
        location=data.location,
        budget_min=data.budget_min,
        budget_max=data.budget_max,
        status="draft",
    )
    try:
        with atomic(db):
            db.add(project)
            db.flush()
            audit_service.record_event(
                db,
                "project_created",
                actor=current_user,
                entity_type="project",
                entity_id=project.project_id,
                project_id=project.project_id,
                payload={"consultation_id": consultation.consultation_id},
            )
            notification_service.notify(
                db,
                project.company_id,
                "project_created",
                "New project",
                f"'{project.title}' was created from your consultation. Add milestones to continue.",
                f"/projects/{project.project_id}",
            )
    except IntegrityError:
        raise Conflict("A project already exists for this consultation.")
    db.refresh(project)
    return project


def apply_derived_status(db: Session, project: Project, actor: Optional[User]) -> str:
    """Project 상태를 마일스톤/분쟁 상태로부터 다시 계산한다.

    - draft: 마일스톤이 1개 이상이고 모두 verified면 active가 된다. 되돌아가지 않는다.
    - active/disputed: 미해결 분쟁이 있으면 disputed, 모든 마일스톤이 released면 completed.
    커밋은 호출한 쪽의 트랜잭션이 담당한다.
    """
    db.flush()
    milestones = db.query(Milestone).filter(Milestone.project_id == project.project_id).all()
    before = project.status
    after = before

    if before == "draft":
        if milestones and all(m.is_verified for m in milestones):
            after = "active"
    elif before in ("active", "disputed"):
        unresolved = (
            db.query(Dispute)
            .filter(Dispute.project_id == project.project_id, Dispute.status.in_(DISPUTE_UNRESOLVED))
            .count()
        )
        if unresolved:
            after = "disputed"
        elif milestones and all(m.status == "released" for m in milestones):
            after = "completed"
        else:
            after = "active"

    if after != before:
        project.status = after
        event_type = "project_activated" if before == "draft" else "project_status_changed"
        audit_service.record_event(
            db,
            event_type,
            actor=actor,
            entity_type="project",
            entity_id=project.project_id,
            project_id=project.project_id,
            payload={"from": before, "to": after},
        )
        logger.info("[escrow] project %s status %s -> %s", project.project_id, before, after)
    return after
