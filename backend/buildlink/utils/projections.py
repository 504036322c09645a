"""역할별 응답 가공 단계입니다. 엔진이 돌려준 엔티티를 요청자 역할에 맞게 줄입니다.

비즈니스 로직은 이 단계의 결과에 의존하지 않습니다.
"""

from typing import Optional

from buildlink.schemas.escrow import TransactionOut
from buildlink.schemas.milestone import EscrowOut, MilestoneOut
from buildlink.schemas.project import ProjectOut
from buildlink.utils.permissions import can_view_fee_breakdown


def _hide_fee_breakdown(escrow: Optional[EscrowOut], role: str) -> Optional[EscrowOut]:
    if escrow is None or can_view_fee_breakdown(role):
        return escrow
    escrow.platform_fee_percentage = None
    escrow.platform_fee = None
    escrow.net_amount = None
    return escrow


def escrow_view(escrow, role: str) -> Optional[EscrowOut]:
    if escrow is None:
        return None
    return _hide_fee_breakdown(EscrowOut.model_validate(escrow), role)


def milestone_view(milestone, role: str) -> MilestoneOut:
    out = MilestoneOut.model_validate(milestone)
    _hide_fee_breakdown(out.escrow, role)
    return out


def project_view(project, role: str) -> ProjectOut:
    out = ProjectOut.model_validate(project)
    for milestone in out.milestones:
        _hide_fee_breakdown(milestone.escrow, role)
    return out


def transaction_view(transaction, role: str) -> TransactionOut:
    out = TransactionOut.model_validate(transaction)
    if not can_view_fee_breakdown(role):
        out.platform_fee = None
    return out
