"""Test 지급 계좌 관리, 알림, 감사 로그 조회를 검증하는 자동화 테스트입니다."""

from tests.conftest import ADMIN_EMAIL, CLIENT_EMAIL, COMPANY_EMAIL, OTHER_CLIENT_EMAIL, auth_headers


def _account(number, default=False):
    return {"account_name": "Tunde", "account_number": number, "bank_code": "058", "is_default": default}


def test_first_account_becomes_default(client, seed_users):
    headers = auth_headers(client, OTHER_CLIENT_EMAIL)
    resp = client.post("/api/payment-accounts", json=_account("1111111111"), headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["is_default"] is True

    resp = client.post("/api/payment-accounts", json=_account("2222222222"), headers=headers)
    assert resp.json()["data"]["is_default"] is False


def test_set_default_switches_accounts(client, seed_users):
    headers = auth_headers(client, OTHER_CLIENT_EMAIL)
    client.post("/api/payment-accounts", json=_account("1111111111"), headers=headers)
    second = client.post("/api/payment-accounts", json=_account("2222222222"), headers=headers).json()["data"]

    resp = client.post(f"/api/payment-accounts/{second['account_id']}/set-default", headers=headers)
    assert resp.status_code == 200

    accounts = client.get("/api/payment-accounts", headers=headers).json()["data"]
    assert [a["is_default"] for a in accounts] == [True, False]
    assert accounts[0]["account_id"] == second["account_id"]


def test_cannot_touch_other_users_account(client, seed_users):
    own = client.get("/api/payment-accounts", headers=auth_headers(client, CLIENT_EMAIL)).json()["data"][0]
    resp = client.post(
        f"/api/payment-accounts/{own['account_id']}/set-default",
        headers=auth_headers(client, OTHER_CLIENT_EMAIL),
    )
    assert resp.status_code == 404


def test_transitions_notify_counterparty(client, funded_milestone):
    resp = client.get("/api/notifications", headers=auth_headers(client, COMPANY_EMAIL))
    types = [n["noti_type"] for n in resp.json()["data"]]
    assert "milestone_funded" in types
    assert "project_created" in types

    noti_id = resp.json()["data"][0]["noti_id"]
    resp = client.post(f"/api/notifications/{noti_id}/read", headers=auth_headers(client, COMPANY_EMAIL))
    assert resp.json()["data"]["is_read"] is True

    resp = client.post(f"/api/notifications/{noti_id}/read", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 404


def test_audit_log_records_transitions(client, funded_milestone):
    resp = client.get(
        f"/api/admin/audit-logs?entity_type=milestone&entity_id={funded_milestone}",
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    assert resp.status_code == 200
    types = {e["event_type"] for e in resp.json()["data"]}
    assert {"milestone_verified", "fund_initiated"} <= types

    resp = client.get("/api/admin/audit-logs?event_type=fund_confirmed", headers=auth_headers(client, ADMIN_EMAIL))
    event = resp.json()["data"][0]
    assert event["actor_role"] == "client"
    assert event["payload"]["fee_percentage"] in ("6.5", "6.50")


def test_audit_log_is_admin_only(client, seed_users):
    resp = client.get("/api/admin/audit-logs", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 403


def test_read_all_clears_unread(client, funded_milestone):
    headers = auth_headers(client, COMPANY_EMAIL)
    assert client.get("/api/notifications?unread_only=true", headers=headers).json()["data"]

    resp = client.post("/api/notifications/read-all", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert client.get("/api/notifications?unread_only=true", headers=headers).json()["data"] == []
