"""Auth Service 도메인 서비스 레이어입니다. 토큰 발급과 개발용 SSO 로그인을 담당합니다."""

import logging
from datetime import datetime, timedelta
from typing import Tuple

from jose import jwt
from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from buildlink.models.user import User
from buildlink.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def create_access_token(user: User) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    # role은 표시용이며 권한 판정은 항상 DB의 사용자 행을 기준으로 한다.
    payload = {"sub": str(user.user_id), "role": user.role, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=ALGORITHM)


def find_active_user(db: Session, email: str) -> User:
    normalized = email.strip().lower()
    user = db.query(User).filter(User.email == normalized, User.is_active == True).first()
    if not user:
        logger.warning("[auth] login rejected for %s", normalized)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"No active user found for '{email}'.",
        )
    return user


def mock_sso_login(db: Session, email: str) -> Tuple[User, str]:
    """개발/테스트용 SSO. 이메일로 활성 사용자를 찾아 액세스 토큰을 함께 돌려준다."""
    user = find_active_user(db, email)
    logger.info("[auth] user %s (%s) logged in", user.user_id, user.role)
    return user, create_access_token(user)
