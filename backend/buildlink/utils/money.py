"""금액 계산 공용 헬퍼입니다. 모든 금액은 Decimal 소수점 2자리로 다룹니다."""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


class FeeBreakdown(NamedTuple):
    amount: Decimal
    percentage: Decimal
    platform_fee: Decimal
    net_amount: Decimal


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # float는 문자열을 거쳐야 이진 표현 오차가 섞이지 않는다.
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_fee(amount: Number, percentage: Number) -> FeeBreakdown:
    """platform_fee = round(amount * pct / 100, 2), net_amount = amount - platform_fee.

    net_amount는 반올림된 fee를 빼서 구하므로 net_amount + platform_fee == amount가 항상 성립한다.
    """
    amount = round_money(amount)
    percentage = to_decimal(percentage)
    platform_fee = round_money(amount * percentage / Decimal(100))
    return FeeBreakdown(amount, percentage, platform_fee, amount - platform_fee)
