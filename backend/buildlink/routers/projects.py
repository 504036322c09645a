"""Projects 기능 API 라우터입니다. 프로젝트 생성/조회와 마일스톤 일괄 등록을 서비스 레이어로 위임합니다."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope, pagination_meta
from buildlink.schemas.milestone import MilestoneBatchCreate, MilestoneOut
from buildlink.schemas.project import ProjectCreate, ProjectListItem, ProjectOut
from buildlink.services import milestone_service, project_service
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User
from buildlink.utils.projections import milestone_view, project_view

router = APIRouter(tags=["projects"])


@router.post("/api/projects", response_model=ApiResponse[ProjectOut], response_model_exclude_none=True)
def create_project(data: ProjectCreate, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project = project_service.create_project(db, data, current_user)
    return envelope(project_view(project, current_user.role), "Project created.")


@router.get("/api/projects", response_model=ApiResponse[List[ProjectListItem]], response_model_exclude_none=True)
def list_projects(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = project_service.list_projects(db, current_user, status=status, page=page, per_page=per_page)
    return envelope(
        [ProjectListItem.model_validate(p) for p in items],
        meta=pagination_meta(page, per_page, total),
    )


@router.get("/api/projects/{project_id}", response_model=ApiResponse[ProjectOut], response_model_exclude_none=True)
def get_project(project_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    project = project_service.get_project(db, project_id, current_user)
    return envelope(project_view(project, current_user.role))


@router.post(
    "/api/projects/{project_id}/milestones",
    response_model=ApiResponse[List[MilestoneOut]],
    response_model_exclude_none=True,
)
def create_milestones(
    project_id: int,
    data: MilestoneBatchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    created = milestone_service.create_milestones(db, project_id, data, current_user)
    return envelope([milestone_view(m, current_user.role) for m in created], f"{len(created)} milestone(s) created.")
