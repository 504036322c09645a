"""서비스 레이어가 발생시키는 도메인 오류 정의입니다.

모든 오류는 ``ServiceError`` 하위 타입이며 main.py의 예외 핸들러가
``{success, message, errors, meta}`` 응답 봉투로 변환합니다.
``meta.error_code`` 값으로 호출자가 오류 종류를 구분합니다.
"""

from typing import Dict, List, Optional


class ServiceError(Exception):
    status_code = 400
    error_code = "service_error"

    def __init__(self, message: str, errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class Forbidden(ServiceError):
    """소유권 또는 역할이 맞지 않는 요청."""

    status_code = 403
    error_code = "forbidden"


class NotFound(ServiceError):
    status_code = 404
    error_code = "not_found"


class InvalidTransition(ServiceError):
    """현재 상태에서 허용되지 않는 동작."""

    status_code = 409
    error_code = "invalid_transition"


class AlreadyFinalized(ServiceError):
    """이미 목표 상태이거나 종료 상태인 엔티티에 동작을 다시 적용한 경우."""

    status_code = 409
    error_code = "already_finalized"


class Conflict(ServiceError):
    """동시 쓰기 경쟁에서 진 요청. 호출자가 다시 조회 후 재시도해야 합니다."""

    status_code = 409
    error_code = "conflict"


class DuplicatePendingRequest(ServiceError):
    status_code = 409
    error_code = "duplicate_pending_request"


class ValidationFailed(ServiceError):
    status_code = 422
    error_code = "validation_failed"

    @classmethod
    def field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, errors={field: [message]})


class GatewayUnavailable(ServiceError):
    status_code = 502
    error_code = "gateway_unavailable"
