"""관리자 전용 API 라우터입니다. 플랫폼 수수료, 정산 대기열, 분쟁, 감사 로그를 다룹니다."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from buildlink.database import get_db
from buildlink.schemas.audit import AuditEventOut
from buildlink.schemas.common import ApiResponse, envelope, pagination_meta
from buildlink.schemas.dispute import DisputeOut, DisputeResolve
from buildlink.schemas.milestone import MilestoneOut
from buildlink.schemas.platform import PlatformFeeOut, PlatformFeeUpdate
from buildlink.services import audit_service, dispute_service, escrow_service, platform_service
from buildlink.middleware.auth_middleware import require_roles
from buildlink.models.user import User
from buildlink.utils.projections import milestone_view

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _fee_out(snapshot) -> PlatformFeeOut:
    return PlatformFeeOut(percentage=snapshot.percentage, version=snapshot.version, updated_at=snapshot.updated_at)


@router.get("/platform-fee", response_model=ApiResponse[PlatformFeeOut], response_model_exclude_none=True)
def get_platform_fee(db: Session = Depends(get_db), current_user: User = Depends(require_roles("admin"))):
    return envelope(_fee_out(platform_service.get_current_fee(db)))


@router.put("/platform-fee", response_model=ApiResponse[PlatformFeeOut], response_model_exclude_none=True)
def update_platform_fee(
    data: PlatformFeeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    snapshot = platform_service.update_fee(db, data.percentage, current_user)
    return envelope(_fee_out(snapshot), "Platform fee updated; it applies to milestones funded from now on.")


@router.get("/escrow/milestones", response_model=ApiResponse[List[MilestoneOut]], response_model_exclude_none=True)
def release_queue(
    status: Optional[str] = None,
    requested_only: bool = False,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    items, total = escrow_service.list_release_queue(
        db, milestone_status=status, requested_only=requested_only, page=page, per_page=per_page,
    )
    return envelope(
        [milestone_view(m, current_user.role) for m in items],
        meta=pagination_meta(page, per_page, total),
    )


@router.get("/disputes", response_model=ApiResponse[List[DisputeOut]], response_model_exclude_none=True)
def list_disputes(
    status: Optional[str] = None,
    project_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(15, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    items, total = dispute_service.list_disputes(
        db, current_user, status=status, project_id=project_id, page=page, per_page=per_page,
    )
    return envelope([DisputeOut.model_validate(d) for d in items], meta=pagination_meta(page, per_page, total))


@router.post("/disputes/{dispute_id}/resolve", response_model=ApiResponse[DisputeOut], response_model_exclude_none=True)
def resolve_dispute(
    dispute_id: int,
    data: DisputeResolve,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    dispute = dispute_service.resolve_dispute(db, dispute_id, data, current_user)
    return envelope(DisputeOut.model_validate(dispute), f"Dispute {dispute.status}.")


@router.get("/audit-logs", response_model=ApiResponse[List[AuditEventOut]], response_model_exclude_none=True)
def list_audit_logs(
    event_type: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    project_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("admin")),
):
    items, total = audit_service.list_events(
        db,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        project_id=project_id,
        page=page,
        per_page=per_page,
    )
    return envelope([AuditEventOut.model_validate(e) for e in items], meta=pagination_meta(page, per_page, total))
