"""Test Permissions 순수 판정 함수와 역할별 응답 가공을 검증하는 자동화 테스트입니다."""

import pytest

from buildlink.errors import Forbidden
from buildlink.models.user import User
from buildlink.utils.permissions import (
    ADMIN, CLIENT, COMPANY, Ownership, allowed, authorize, can_view_fee_breakdown,
)

OWNERSHIP = Ownership(client_id=1, company_id=2)


@pytest.mark.parametrize("role,user_id,action,expected", [
    (CLIENT, 1, "milestone.approve", True),
    (CLIENT, 3, "milestone.approve", False),
    (COMPANY, 2, "milestone.approve", False),
    (COMPANY, 2, "milestone.submit", True),
    (COMPANY, 4, "milestone.submit", False),
    (ADMIN, 99, "escrow.release", True),
    (COMPANY, 2, "escrow.release", False),
    (COMPANY, 2, "escrow.request_release", True),
    (CLIENT, 1, "escrow.refund", True),
    (ADMIN, 99, "escrow.refund", True),
    (COMPANY, 2, "escrow.refund", False),
    (CLIENT, 1, "document.resolve_request", True),
    (COMPANY, 2, "document.request_update", True),
    (ADMIN, 99, "milestone.approve", False),
])
def test_allowed(role, user_id, action, expected):
    assert allowed(role, action, OWNERSHIP, user_id) is expected


def test_unknown_action_is_denied():
    assert allowed(ADMIN, "project.delete", None, 1) is False


def test_authorize_checks_ownership_first():
    class FakeProject:
        client_id = 1
        company_id = 2

    stranger = User(user_id=5, role=CLIENT)
    with pytest.raises(Forbidden) as exc:
        authorize(stranger, "milestone.approve", FakeProject())
    assert "access to this project" in exc.value.message

    owner = User(user_id=1, role=CLIENT)
    authorize(owner, "milestone.approve", FakeProject())


def test_fee_breakdown_visibility():
    assert can_view_fee_breakdown(ADMIN)
    assert can_view_fee_breakdown(COMPANY)
    assert not can_view_fee_breakdown(CLIENT)
