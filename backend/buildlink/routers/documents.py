"""Documents 기능 API 라우터입니다. 문서 슬롯, 추가 문서, 문서 수정 요청을 서비스 레이어로 위임합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.document_request import DocumentUpdateRequestCreate, DocumentUpdateRequestOut
from buildlink.schemas.project import DocumentSlotUpdate, ProjectDocumentCreate, ProjectDocumentOut, ProjectDocumentUpdate, ProjectOut
from buildlink.services import document_service
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User
from buildlink.utils.projections import project_view

router = APIRouter(tags=["documents"])


@router.put(
    "/api/projects/{project_id}/documents/{slot}",
    response_model=ApiResponse[ProjectOut],
    response_model_exclude_none=True,
)
def set_document_slot(
    project_id: int,
    slot: str,
    data: DocumentSlotUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    project = document_service.set_document_slot(db, project_id, slot, data.url, current_user)
    return envelope(project_view(project, current_user.role), "Document saved.")


@router.post(
    "/api/projects/{project_id}/extra-documents",
    response_model=ApiResponse[ProjectDocumentOut],
    response_model_exclude_none=True,
)
def add_extra_document(
    project_id: int,
    data: ProjectDocumentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = document_service.add_extra_document(db, project_id, data, current_user)
    return envelope(ProjectDocumentOut.model_validate(document), "Document added.")


@router.put(
    "/api/projects/{project_id}/extra-documents/{document_id}",
    response_model=ApiResponse[ProjectDocumentOut],
    response_model_exclude_none=True,
)
def update_extra_document(
    project_id: int,
    document_id: int,
    data: ProjectDocumentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    document = document_service.update_extra_document(db, project_id, document_id, data, current_user)
    return envelope(ProjectDocumentOut.model_validate(document), "Document updated.")


@router.post(
    "/api/projects/{project_id}/document-update-requests",
    response_model=ApiResponse[DocumentUpdateRequestOut],
    response_model_exclude_none=True,
)
def create_update_request(
    project_id: int,
    data: DocumentUpdateRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    request = document_service.create_update_request(db, project_id, data, current_user)
    return envelope(DocumentUpdateRequestOut.model_validate(request), "Update request sent to the client.")


@router.get(
    "/api/projects/{project_id}/document-update-requests",
    response_model=ApiResponse[List[DocumentUpdateRequestOut]],
    response_model_exclude_none=True,
)
def list_update_requests(
    project_id: int,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    requests = document_service.list_update_requests(db, project_id, current_user, status)
    return envelope([DocumentUpdateRequestOut.model_validate(r) for r in requests])


@router.post(
    "/api/document-update-requests/{request_id}/grant",
    response_model=ApiResponse[DocumentUpdateRequestOut],
    response_model_exclude_none=True,
)
def grant_request(request_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    request = document_service.grant_request(db, request_id, current_user)
    return envelope(DocumentUpdateRequestOut.model_validate(request), "Update request granted.")


@router.post(
    "/api/document-update-requests/{request_id}/deny",
    response_model=ApiResponse[DocumentUpdateRequestOut],
    response_model_exclude_none=True,
)
def deny_request(request_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    request = document_service.deny_request(db, request_id, current_user)
    return envelope(DocumentUpdateRequestOut.model_validate(request), "Update request denied.")
