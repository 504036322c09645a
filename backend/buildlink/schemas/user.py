"""User/PaymentAccount 요청/응답 계약을 위한 Pydantic 스키마입니다."""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class UserOut(BaseModel):
    user_id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    email: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class PaymentAccountCreate(BaseModel):
    account_name: str = Field(min_length=1, max_length=150)
    account_number: str = Field(min_length=6, max_length=30)
    bank_code: str = Field(min_length=1, max_length=20)
    bank_name: Optional[str] = None
    account_type: str = "nuban"
    currency: str = "NGN"
    is_default: bool = False


class PaymentAccountOut(BaseModel):
    account_id: int
    user_id: int
    account_name: str
    account_number: str
    bank_code: str
    bank_name: Optional[str] = None
    account_type: str
    currency: str
    is_default: bool
    created_at: datetime

    model_config = {"from_attributes": True}
