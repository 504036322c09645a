"""서비스 레이어 패키지 초기화 모듈입니다."""

from buildlink.services import (
    audit_service,
    auth_service,
    notification_service,
    platform_service,
    project_service,
    milestone_service,
    escrow_service,
    document_service,
    dispute_service,
    payment_account_service,
)
