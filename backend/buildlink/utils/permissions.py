"""Permissions 관련 공용 유틸리티 헬퍼입니다.

역할(role)과 엔티티 소유 관계만으로 허용 여부를 판단하는 순수 함수 모음입니다.
상태 전이 가능 여부는 서비스 레이어가 InvalidTransition으로 판단합니다.
"""

from dataclasses import dataclass
from typing import Optional

from buildlink.errors import Forbidden
from buildlink.models.user import User


ADMIN = "admin"
CLIENT = "client"
COMPANY = "company"
ALL_ROLES = (ADMIN, CLIENT, COMPANY)

ACTION_ROLES = {
    "project.create": (CLIENT,),
    "project.view": ALL_ROLES,
    "milestone.create": (COMPANY,),
    "milestone.view": ALL_ROLES,
    "milestone.verify": (CLIENT,),
    "milestone.fund": (CLIENT,),
    "milestone.add_evidence": (COMPANY,),
    "milestone.submit": (COMPANY,),
    "milestone.approve": (CLIENT,),
    "milestone.reject": (CLIENT,),
    "milestone.dispute": (CLIENT,),
    "escrow.release": (ADMIN,),
    "escrow.request_release": (COMPANY,),
    "escrow.refund": (CLIENT, ADMIN),
    "document.write": (CLIENT, COMPANY),
    "document.request_update": (COMPANY,),
    "document.resolve_request": (CLIENT,),
    "document.view_requests": ALL_ROLES,
    "dispute.view": (ADMIN,),
    "dispute.resolve": (ADMIN,),
    "platform_fee.update": (ADMIN,),
    "audit.view": (ADMIN,),
}


@dataclass(frozen=True)
class Ownership:
    client_id: int
    company_id: int

    @classmethod
    def of(cls, project) -> "Ownership":
        return cls(client_id=project.client_id, company_id=project.company_id)


def owns(role: str, user_id: int, ownership: Ownership) -> bool:
    if role == ADMIN:
        return True
    if role == CLIENT:
        return ownership.client_id == user_id
    if role == COMPANY:
        return ownership.company_id == user_id
    return False


def role_can(role: str, action: str) -> bool:
    return role in ACTION_ROLES.get(action, ())


def allowed(role: str, action: str, ownership: Optional[Ownership], user_id: int) -> bool:
    if ownership is not None and not owns(role, user_id, ownership):
        return False
    return role_can(role, action)


def authorize(user: User, action: str, project=None) -> None:
    # 소유권 검사가 역할 검사보다 먼저다.
    if project is not None and not owns(user.role, user.user_id, Ownership.of(project)):
        raise Forbidden("You do not have access to this project.")
    if not role_can(user.role, action):
        raise Forbidden(f"Role '{user.role}' is not allowed to perform '{action}'.")


def can_view_fee_breakdown(role: str) -> bool:
    return role in (ADMIN, COMPANY)
