"""환경 변수 기반 애플리케이션 설정을 중앙에서 관리합니다."""

from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./buildlink.db"
    SECRET_KEY: str = "change-me-to-a-random-secret-key"
    DEBUG: bool = True
    ALLOWED_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:8000"]
    LOG_LEVEL: str = "INFO"

    # JWT
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480

    # Platform fee (admin 설정값이 없을 때의 기본값과 허용 범위)
    DEFAULT_PLATFORM_FEE_PERCENTAGE: Decimal = Decimal("6.5")
    PLATFORM_FEE_MIN: Decimal = Decimal("5")
    PLATFORM_FEE_MAX: Decimal = Decimal("8")
    CURRENCY: str = "NGN"

    # Payment gateway
    PAYMENT_GATEWAY_BASE_URL: str = "https://api.paystack.co"
    PAYMENT_GATEWAY_SECRET_KEY: str = "your_gateway_secret_key"
    PAYMENT_GATEWAY_TIMEOUT_SECONDS: float = 10.0
    PAYMENT_CALLBACK_URL: str = "http://localhost:5173/payment/callback"
    PAYMENT_WEBHOOK_SECRET: str = "change-me-webhook-secret"
    # pending_confirmation 상태를 재확인하기까지 대기하는 시간
    RECONCILE_AFTER_MINUTES: int = 15

    class Config:
        # 실행 cwd와 무관하게 backend/.env를 로드한다.
        env_file = str(Path(__file__).resolve().parents[1] / ".env")


settings = Settings()
