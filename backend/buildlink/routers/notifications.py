"""Notifications 기능 API 라우터입니다. 요청을 검증하고 서비스 레이어로 비즈니스 로직을 위임합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from buildlink.database import get_db
from buildlink.errors import NotFound
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.notification import NotificationOut
from buildlink.services import notification_service
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse[List[NotificationOut]], response_model_exclude_none=True)
def list_notifications(
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notifications = notification_service.get_notifications(db, current_user.user_id, unread_only)
    return envelope([NotificationOut.model_validate(n) for n in notifications])


@router.post("/{noti_id}/read", response_model=ApiResponse[NotificationOut], response_model_exclude_none=True)
def mark_read(noti_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    noti = notification_service.mark_read(db, noti_id, current_user.user_id)
    if noti is None:
        raise NotFound("Notification not found.")
    return envelope(NotificationOut.model_validate(noti))


@router.post("/read-all", response_model=ApiResponse, response_model_exclude_none=True)
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    notification_service.mark_all_read(db, current_user.user_id)
    return envelope(message="All notifications marked as read.")
