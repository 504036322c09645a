"""서비스 레이어 공용 트랜잭션/식별자 헬퍼입니다."""

import uuid
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from buildlink.errors import Conflict

# 잠금 대기 실패로 보는 드라이버 메시지 (SQLite, PostgreSQL, MySQL)
LOCK_ERROR_MARKERS = ("database is locked", "deadlock", "lock wait timeout", "could not serialize", "lock timeout")


def is_lock_error(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in LOCK_ERROR_MARKERS)


@contextmanager
def atomic(db: Session, conflict_message: str = "The record was modified by another request. Reload and retry."):
    """블록 안의 변경을 한 번에 커밋한다. version_id 충돌과 잠금 대기 실패는 Conflict로 바꾼다."""
    try:
        yield
        db.commit()
    except StaleDataError:
        db.rollback()
        raise Conflict(conflict_message)
    except OperationalError as exc:
        db.rollback()
        if is_lock_error(exc):
            raise Conflict(conflict_message)
        raise
    except Exception:
        db.rollback()
        raise


def new_reference(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:20].upper()}"
