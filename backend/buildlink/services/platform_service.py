"""Platform Service 도메인 서비스 레이어입니다. 버전이 붙은 플랫폼 수수료 설정을 관리합니다.

수수료는 값이 바뀔 때마다 새 버전 행으로 기록하며, 펀딩 시점에 읽은 스냅샷이
해당 에스크로에 그대로 저장됩니다.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from buildlink.config import settings
from buildlink.models.platform_setting import PlatformFeeSetting
from buildlink.models.user import User
from buildlink.services import audit_service
from buildlink.utils.helpers import atomic
from buildlink.utils.permissions import authorize

logger = logging.getLogger(__name__)


class FeeSnapshot(NamedTuple):
    percentage: Decimal
    version: Optional[int]
    updated_at: Optional[datetime]


def get_current_fee(db: Session) -> FeeSnapshot:
    row = db.query(PlatformFeeSetting).order_by(PlatformFeeSetting.version.desc()).first()
    if row is None:
        return FeeSnapshot(Decimal(settings.DEFAULT_PLATFORM_FEE_PERCENTAGE), None, None)
    return FeeSnapshot(Decimal(row.percentage), row.version, row.created_at)


def update_fee(db: Session, percentage: Decimal, current_user: User) -> FeeSnapshot:
    authorize(current_user, "platform_fee.update")
    previous = get_current_fee(db)
    with atomic(db):
        row = PlatformFeeSetting(percentage=percentage, created_by=current_user.user_id)
        db.add(row)
        db.flush()
        audit_service.record_event(
            db,
            "platform_fee_updated",
            actor=current_user,
            entity_type="platform_fee_setting",
            entity_id=row.version,
            payload={"previous": previous.percentage, "percentage": percentage},
        )
    db.refresh(row)
    logger.info("[escrow] platform fee changed %s%% -> %s%% (version %s)", previous.percentage, percentage, row.version)
    return FeeSnapshot(Decimal(row.percentage), row.version, row.created_at)
