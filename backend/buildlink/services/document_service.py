"""Document Service 도메인 서비스 레이어입니다. 프로젝트 문서 슬롯과 문서 수정 요청 흐름을 담당합니다.

회사는 비어 있는 슬롯만 자유롭게 채울 수 있고, 이미 값이 있는 슬롯은
승인(granted)되었지만 아직 사용되지 않은 요청이 있을 때 한 번만 덮어쓸 수 있습니다.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildlink.errors import AlreadyFinalized, DuplicatePendingRequest, Forbidden, InvalidTransition, NotFound, ValidationFailed
from buildlink.models.document_request import REQUEST_STATUSES, DocumentUpdateRequest, build_pending_key
from buildlink.models.project import DOCUMENT_SLOTS, EXTRA_DOCUMENT, Project, ProjectDocument
from buildlink.models.user import User
from buildlink.schemas.document_request import DocumentUpdateRequestCreate
from buildlink.schemas.project import ProjectDocumentCreate, ProjectDocumentUpdate
from buildlink.services import audit_service, notification_service, project_service
from buildlink.utils.helpers import atomic
from buildlink.utils.permissions import COMPANY, authorize

logger = logging.getLogger(__name__)

DOCUMENT_CONFLICT = "The document was modified by another request. Reload it and retry."


def _find_grant(db: Session, project_id: int, document_type: str, extra_document_id: Optional[int] = None):
    q = db.query(DocumentUpdateRequest).filter(
        DocumentUpdateRequest.project_id == project_id,
        DocumentUpdateRequest.document_type == document_type,
        DocumentUpdateRequest.status == "granted",
        DocumentUpdateRequest.consumed_at.is_(None),
    )
    if extra_document_id is None:
        q = q.filter(DocumentUpdateRequest.extra_document_id.is_(None))
    else:
        q = q.filter(DocumentUpdateRequest.extra_document_id == extra_document_id)
    return q.order_by(DocumentUpdateRequest.request_id).first()


def _consume_grant_or_forbid(db: Session, project: Project, document_type: str, extra_document_id: Optional[int] = None):
    grant = _find_grant(db, project.project_id, document_type, extra_document_id)
    if grant is None:
        raise Forbidden(
            f"'{document_type}' is already set; request an update and wait for the client to grant it."
        )
    grant.consumed_at = datetime.utcnow()
    return grant


def _get_extra_document(db: Session, project: Project, document_id: int) -> ProjectDocument:
    document = (
        db.query(ProjectDocument)
        .filter(ProjectDocument.document_id == document_id, ProjectDocument.project_id == project.project_id)
        .first()
    )
    if not document:
        raise NotFound("Document not found.")
    return document


def set_document_slot(db: Session, project_id: int, slot: str, url: str, current_user: User) -> Project:
    if slot not in DOCUMENT_SLOTS:
        raise ValidationFailed.field("slot", f"Unknown document slot '{slot}'.")
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "document.write", project)

    previous = project.document_url(slot)
    with atomic(db, DOCUMENT_CONFLICT):
        grant = None
        if current_user.role == COMPANY and previous:
            grant = _consume_grant_or_forbid(db, project, slot)
        setattr(project, DOCUMENT_SLOTS[slot], url)
        audit_service.record_event(
            db,
            "document_set",
            actor=current_user,
            entity_type="project",
            entity_id=project.project_id,
            project_id=project.project_id,
            payload={
                "document_type": slot,
                "previous": previous,
                "url": url,
                "request_id": grant.request_id if grant else None,
            },
        )
    db.refresh(project)
    logger.info("[document] project %s slot %s set by %s", project_id, slot, current_user.user_id)
    return project


def add_extra_document(db: Session, project_id: int, data: ProjectDocumentCreate, current_user: User) -> ProjectDocument:
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "document.write", project)
    document = ProjectDocument(
        project_id=project.project_id,
        title=data.title,
        file_url=data.file_url,
        uploaded_by=current_user.user_id,
    )
    with atomic(db):
        db.add(document)
        db.flush()
        audit_service.record_event(
            db,
            "document_set",
            actor=current_user,
            entity_type="project_document",
            entity_id=document.document_id,
            project_id=project.project_id,
            payload={"document_type": EXTRA_DOCUMENT, "url": data.file_url},
        )
    db.refresh(document)
    return document


def update_extra_document(
    db: Session, project_id: int, document_id: int, data: ProjectDocumentUpdate, current_user: User
) -> ProjectDocument:
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "document.write", project)
    document = _get_extra_document(db, project, document_id)

    previous = document.file_url
    with atomic(db, DOCUMENT_CONFLICT):
        grant = None
        if current_user.role == COMPANY:
            grant = _consume_grant_or_forbid(db, project, EXTRA_DOCUMENT, document.document_id)
        document.file_url = data.file_url
        if data.title:
            document.title = data.title
        audit_service.record_event(
            db,
            "document_set",
            actor=current_user,
            entity_type="project_document",
            entity_id=document.document_id,
            project_id=project.project_id,
            payload={
                "document_type": EXTRA_DOCUMENT,
                "previous": previous,
                "url": data.file_url,
                "request_id": grant.request_id if grant else None,
            },
        )
    db.refresh(document)
    return document


def create_update_request(
    db: Session, project_id: int, data: DocumentUpdateRequestCreate, current_user: User
) -> DocumentUpdateRequest:
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "document.request_update", project)

    extra_document_id = None
    if data.document_type == EXTRA_DOCUMENT:
        if data.extra_document_id is None:
            raise ValidationFailed.field("extra_document_id", "extra_document_id is required for extra documents.")
        extra_document_id = _get_extra_document(db, project, data.extra_document_id).document_id
    elif data.document_type in DOCUMENT_SLOTS:
        if not project.document_url(data.document_type):
            raise InvalidTransition(f"'{data.document_type}' is empty; set it directly instead of requesting an update.")
    else:
        raise ValidationFailed.field("document_type", f"Unknown document type '{data.document_type}'.")

    if _find_grant(db, project.project_id, data.document_type, extra_document_id) is not None:
        raise InvalidTransition("An unused grant already exists for this document; apply the update instead.")

    request = DocumentUpdateRequest(
        project_id=project.project_id,
        document_type=data.document_type,
        extra_document_id=extra_document_id,
        reason=data.reason,
        status="pending",
        pending_key=build_pending_key(project.project_id, data.document_type, extra_document_id),
        requested_by=current_user.user_id,
    )
    try:
        with atomic(db, DOCUMENT_CONFLICT):
            db.add(request)
            db.flush()
            audit_service.record_event(
                db,
                "document_update_requested",
                actor=current_user,
                entity_type="document_update_request",
                entity_id=request.request_id,
                project_id=project.project_id,
                payload={"document_type": data.document_type, "extra_document_id": extra_document_id},
            )
            notification_service.notify(
                db,
                project.client_id,
                "document_update_requested",
                "Document update requested",
                f"The company asked to update '{data.document_type}' on '{project.title}'.",
                f"/projects/{project.project_id}/documents",
            )
    except IntegrityError:
        raise DuplicatePendingRequest("A pending update request already exists for this document.")
    db.refresh(request)
    logger.info("[document] update request %s created for project %s", request.request_id, project_id)
    return request


def list_update_requests(
    db: Session, project_id: int, current_user: User, status: Optional[str] = None
) -> List[DocumentUpdateRequest]:
    project = project_service.get_project_or_404(db, project_id)
    authorize(current_user, "document.view_requests", project)
    if status and status not in REQUEST_STATUSES:
        raise ValidationFailed.field("status", f"Unknown request status '{status}'.")
    q = db.query(DocumentUpdateRequest).filter(DocumentUpdateRequest.project_id == project_id)
    if status:
        q = q.filter(DocumentUpdateRequest.status == status)
    return q.order_by(DocumentUpdateRequest.request_id.desc()).all()


def _resolve_request(db: Session, request_id: int, decision: str, current_user: User) -> DocumentUpdateRequest:
    request = db.query(DocumentUpdateRequest).filter(DocumentUpdateRequest.request_id == request_id).first()
    if not request:
        raise NotFound("Document update request not found.")
    project = request.project
    authorize(current_user, "document.resolve_request", project)
    if request.status != "pending":
        raise AlreadyFinalized(f"Document update request has already been {request.status}.")

    with atomic(db, DOCUMENT_CONFLICT):
        request.status = decision
        request.pending_key = None
        request.resolved_by = current_user.user_id
        request.resolved_at = datetime.utcnow()
        audit_service.record_event(
            db,
            f"document_update_{decision}",
            actor=current_user,
            entity_type="document_update_request",
            entity_id=request.request_id,
            project_id=project.project_id,
            payload={"document_type": request.document_type, "extra_document_id": request.extra_document_id},
        )
        notification_service.notify(
            db,
            request.requested_by,
            f"document_update_{decision}",
            f"Document update {decision}",
            f"Your request to update '{request.document_type}' on '{project.title}' was {decision}.",
            f"/projects/{project.project_id}/documents",
        )
    db.refresh(request)
    logger.info("[document] update request %s %s", request.request_id, decision)
    return request


def grant_request(db: Session, request_id: int, current_user: User) -> DocumentUpdateRequest:
    return _resolve_request(db, request_id, "granted", current_user)


def deny_request(db: Session, request_id: int, current_user: User) -> DocumentUpdateRequest:
    return _resolve_request(db, request_id, "denied", current_user)
