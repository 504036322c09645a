"""플랫폼 수수료 설정 스키마입니다."""

from decimal import Decimal
from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime

from buildlink.config import settings


class PlatformFeeOut(BaseModel):
    percentage: Decimal
    version: Optional[int] = None
    updated_at: Optional[datetime] = None


class PlatformFeeUpdate(BaseModel):
    percentage: Decimal

    @field_validator("percentage")
    @classmethod
    def check_range(cls, value: Decimal) -> Decimal:
        # 범위를 벗어난 값은 보정하지 않고 거부한다.
        if value < settings.PLATFORM_FEE_MIN or value > settings.PLATFORM_FEE_MAX:
            raise ValueError(
                f"Platform fee must be between {settings.PLATFORM_FEE_MIN}% and {settings.PLATFORM_FEE_MAX}%"
            )
        if value.as_tuple().exponent < -2:
            raise ValueError("Platform fee supports at most 2 decimal places")
        return value
