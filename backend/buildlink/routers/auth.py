"""Auth 기능 API 라우터입니다. 요청을 검증하고 서비스 레이어로 비즈니스 로직을 위임합니다."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from buildlink.database import get_db
from buildlink.schemas.common import ApiResponse, envelope
from buildlink.schemas.user import LoginRequest, TokenResponse, UserOut
from buildlink.config import settings
from buildlink.services.auth_service import mock_sso_login
from buildlink.middleware.auth_middleware import get_current_user
from buildlink.models.user import User

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=ApiResponse[TokenResponse], response_model_exclude_none=True)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    user, token = mock_sso_login(db, request.email)
    data = TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserOut.model_validate(user),
    )
    return envelope(data, "Logged in.")


@router.get("/me", response_model=ApiResponse[UserOut], response_model_exclude_none=True)
def me(current_user: User = Depends(get_current_user)):
    return envelope(UserOut.model_validate(current_user))
