"""Test 플랫폼 수수료 설정 조회/변경과 범위 검증을 확인합니다."""

from decimal import Decimal

from buildlink.models.audit import AuditEvent
from buildlink.models.platform_setting import PlatformFeeSetting
from tests.conftest import ADMIN_EMAIL, CLIENT_EMAIL, COMPANY_EMAIL, auth_headers


def test_default_fee(client, seed_users):
    resp = client.get("/api/admin/platform-fee", headers=auth_headers(client, ADMIN_EMAIL))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert Decimal(data["percentage"]) == Decimal("6.5")
    assert "version" not in data


def test_update_creates_new_version(client, db, seed_users):
    headers = auth_headers(client, ADMIN_EMAIL)
    first = client.put("/api/admin/platform-fee", json={"percentage": "7"}, headers=headers).json()["data"]
    second = client.put("/api/admin/platform-fee", json={"percentage": "5.25"}, headers=headers).json()["data"]
    assert second["version"] == first["version"] + 1
    assert db.query(PlatformFeeSetting).count() == 2

    current = client.get("/api/admin/platform-fee", headers=headers).json()["data"]
    assert Decimal(current["percentage"]) == Decimal("5.25")
    assert db.query(AuditEvent).filter(AuditEvent.event_type == "platform_fee_updated").count() == 2


def test_out_of_range_fee_is_rejected(client, db, seed_users):
    headers = auth_headers(client, ADMIN_EMAIL)
    for value in ("4.99", "8.01", "12"):
        resp = client.put("/api/admin/platform-fee", json={"percentage": value}, headers=headers)
        assert resp.status_code == 422
        body = resp.json()
        assert "percentage" in body["errors"]
        assert "between" in body["errors"]["percentage"][0]
    assert db.query(PlatformFeeSetting).count() == 0


def test_bounds_are_inclusive(client, seed_users):
    headers = auth_headers(client, ADMIN_EMAIL)
    assert client.put("/api/admin/platform-fee", json={"percentage": "5"}, headers=headers).status_code == 200
    assert client.put("/api/admin/platform-fee", json={"percentage": "8"}, headers=headers).status_code == 200


def test_non_admin_cannot_manage_fee(client, seed_users):
    for email in (CLIENT_EMAIL, COMPANY_EMAIL):
        headers = auth_headers(client, email)
        assert client.get("/api/admin/platform-fee", headers=headers).status_code == 403
        resp = client.put("/api/admin/platform-fee", json={"percentage": "6"}, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["meta"]["error_code"] == "forbidden"
