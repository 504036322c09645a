"""Payment Gateway 어댑터입니다. 호스팅 결제 세션 생성, 결제 확인, 송금을 외부 게이트웨이에 위임합니다.

게이트웨이는 2단계 프로토콜로 다룹니다. initiate는 리다이렉트 대상만 돌려주고
실제 완료는 webhook 또는 verify 호출로 따로 확인합니다.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from buildlink.config import settings

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILED = "failed"
PENDING = "pending"


class GatewayError(Exception):
    """게이트웨이가 요청을 거절했거나 연결할 수 없는 경우."""


class GatewayTimeout(GatewayError):
    """제한 시간 안에 결과를 받지 못한 경우. 결과는 나중에 재확인해야 한다."""


@dataclass
class InitiateResult:
    payment_url: str
    reference: str


@dataclass
class TransferResult:
    reference: str
    status: str  # success/pending/failed


class PaymentGateway:
    """엔진이 의존하는 게이트웨이 계약."""

    def initiate(self, amount: Decimal, currency: str, metadata: Dict[str, Any]) -> InitiateResult:
        raise NotImplementedError

    def verify(self, reference: str) -> str:
        raise NotImplementedError

    def transfer(
        self,
        amount: Decimal,
        currency: str,
        recipient: Dict[str, str],
        metadata: Dict[str, Any],
    ) -> TransferResult:
        raise NotImplementedError

    def verify_transfer(self, reference: str) -> str:
        raise NotImplementedError


def _map_transfer_status(value: Any) -> str:
    status = str(value or "").lower()
    if status == "success":
        return SUCCESS
    if status in ("failed", "reversed"):
        return FAILED
    return PENDING


def _minor_units(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


class HttpPaymentGateway(PaymentGateway):
    """Paystack 호환 REST API 클라이언트."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_BASE_URL).rstrip("/")
        self.secret_key = secret_key or settings.PAYMENT_GATEWAY_SECRET_KEY
        self.timeout = float(timeout or settings.PAYMENT_GATEWAY_TIMEOUT_SECONDS)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = httpx.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("[payment] gateway timeout on %s %s: %s", method, path, exc)
            raise GatewayTimeout(f"payment gateway timed out on {path}") from exc
        except httpx.HTTPError as exc:
            logger.warning("[payment] gateway error on %s %s: %s", method, path, exc)
            raise GatewayError(f"payment gateway request failed on {path}") from exc
        body = response.json()
        if not body.get("status"):
            raise GatewayError(body.get("message") or f"payment gateway rejected {path}")
        return body.get("data") or {}

    def initiate(self, amount: Decimal, currency: str, metadata: Dict[str, Any]) -> InitiateResult:
        data = self._request("POST", "/transaction/initialize", {
            "amount": _minor_units(amount),
            "currency": currency,
            "reference": metadata.get("reference"),
            "callback_url": settings.PAYMENT_CALLBACK_URL,
            "metadata": metadata,
        })
        return InitiateResult(payment_url=data["authorization_url"], reference=data["reference"])

    def verify(self, reference: str) -> str:
        data = self._request("GET", f"/transaction/verify/{reference}")
        status = str(data.get("status") or "").lower()
        if status == "success":
            return SUCCESS
        if status in ("failed", "abandoned", "reversed"):
            return FAILED
        return PENDING

    def transfer(
        self,
        amount: Decimal,
        currency: str,
        recipient: Dict[str, str],
        metadata: Dict[str, Any],
    ) -> TransferResult:
        recipient_data = self._request("POST", "/transferrecipient", {
            "type": "nuban",
            "name": recipient["account_name"],
            "account_number": recipient["account_number"],
            "bank_code": recipient["bank_code"],
            "currency": currency,
        })
        data = self._request("POST", "/transfer", {
            "source": "balance",
            "amount": _minor_units(amount),
            "recipient": recipient_data["recipient_code"],
            "reference": metadata.get("reference"),
            "reason": metadata.get("reason") or "Escrow settlement",
        })
        return TransferResult(
            reference=data.get("reference") or metadata.get("reference"),
            status=_map_transfer_status(data.get("status")),
        )

    def verify_transfer(self, reference: str) -> str:
        data = self._request("GET", f"/transfer/verify/{reference}")
        return _map_transfer_status(data.get("status"))


def get_payment_gateway() -> PaymentGateway:
    return HttpPaymentGateway()
