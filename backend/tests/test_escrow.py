"""Test Escrow 예치/정산/환불 흐름과 수수료 계산을 검증하는 자동화 테스트입니다."""

from decimal import Decimal

from buildlink.models.audit import AuditEvent
from buildlink.models.escrow import Escrow, PaymentIntent, Transaction
from buildlink.models.milestone import Milestone
from buildlink.models.notification import Notification
from buildlink.models.project import Project
from buildlink.utils.money import compute_fee
from tests.conftest import (
    ADMIN_EMAIL, CLIENT_EMAIL, COMPANY_EMAIL,
    approve, auth_headers, fund_milestone, submit_with_evidence, webhook_headers,
)


def _escrow(db, milestone_id):
    db.expire_all()
    return db.query(Escrow).filter(Escrow.milestone_id == milestone_id).first()


def test_fund_returns_payment_url_and_waits_for_confirmation(client, db, gateway, active_project):
    milestone_id = active_project["milestone_ids"][0]
    resp = client.post(f"/api/milestones/{milestone_id}/fund", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["payment_url"].startswith("https://pay.test/checkout/")
    assert data["milestone"]["status"] == "pending"
    assert len(gateway.initiated) == 1
    assert _escrow(db, milestone_id) is None

    hook = client.post(
        "/api/payments/webhook",
        json={"reference": data["reference"], "status": "success"},
        headers=webhook_headers(),
    )
    assert hook.status_code == 200
    assert hook.json()["data"]["status"] == "confirmed"

    escrow = _escrow(db, milestone_id)
    assert escrow.status == "held"
    assert db.get(Milestone, milestone_id).status == "funded"
    assert db.query(Transaction).filter(Transaction.transaction_type == "escrow_deposit").count() == 1


def test_fee_snapshot_survives_fee_change(client, db, active_project):
    milestone_id = active_project["milestone_ids"][0]
    # 결제 세션 생성 시점의 6.5%가 확인 이후에도 유지되어야 한다.
    reference = fund_milestone(client, milestone_id, confirm=False)
    resp = client.put(
        "/api/admin/platform-fee",
        json={"percentage": "7"},
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    assert resp.status_code == 200
    client.post("/api/payments/webhook", json={"reference": reference, "status": "success"}, headers=webhook_headers())

    escrow = _escrow(db, milestone_id)
    assert escrow.amount == Decimal("100000.00")
    assert escrow.platform_fee_percentage == Decimal("6.5")
    assert escrow.platform_fee == Decimal("6500.00")
    assert escrow.net_amount == Decimal("93500.00")

    # 변경된 수수료는 이후 펀딩에만 적용된다.
    second = active_project["milestone_ids"][1]
    fund_milestone(client, second)
    later = _escrow(db, second)
    assert later.platform_fee_percentage == Decimal("7")
    assert later.platform_fee == Decimal("3500.00")
    assert later.fee_setting_version is not None
    assert escrow.platform_fee_percentage == Decimal("6.5")


def test_compute_fee_rounding():
    breakdown = compute_fee(Decimal("333.33"), Decimal("6.5"))
    assert breakdown.platform_fee == Decimal("21.67")
    assert breakdown.net_amount + breakdown.platform_fee == Decimal("333.33")

    breakdown = compute_fee("100000", "6.5")
    assert (breakdown.platform_fee, breakdown.net_amount) == (Decimal("6500.00"), Decimal("93500.00"))


def test_webhook_is_idempotent(client, db, active_project):
    milestone_id = active_project["milestone_ids"][0]
    reference = fund_milestone(client, milestone_id)
    again = client.post(
        "/api/payments/webhook",
        json={"reference": reference, "status": "success"},
        headers=webhook_headers(),
    )
    assert again.status_code == 200
    assert db.query(Escrow).count() == 1
    assert db.query(Transaction).filter(Transaction.transaction_type == "escrow_deposit").count() == 1


def test_webhook_requires_secret(client, active_project):
    reference = fund_milestone(client, active_project["milestone_ids"][0], confirm=False)
    resp = client.post(
        "/api/payments/webhook",
        json={"reference": reference, "status": "success"},
        headers={"X-Webhook-Secret": "wrong"},
    )
    assert resp.status_code == 403


def test_failed_payment_leaves_milestone_pending(client, db, active_project):
    milestone_id = active_project["milestone_ids"][0]
    reference = fund_milestone(client, milestone_id, confirm=False)
    resp = client.post(
        "/api/payments/webhook",
        json={"reference": reference, "status": "failed"},
        headers=webhook_headers(),
    )
    assert resp.json()["data"]["status"] == "failed"
    assert _escrow(db, milestone_id) is None
    assert db.get(Milestone, milestone_id).status == "pending"

    # 실패한 결제 뒤에는 새 결제를 시작할 수 있다.
    fund_milestone(client, milestone_id)
    db.expire_all()
    assert db.get(Milestone, milestone_id).status == "funded"


def test_repeat_fund_reuses_open_payment_session(client, gateway, active_project):
    milestone_id = active_project["milestone_ids"][0]
    first = fund_milestone(client, milestone_id, confirm=False)
    second = fund_milestone(client, milestone_id, confirm=False)
    assert first == second
    assert len(gateway.initiated) == 1


def test_fund_twice_after_confirmation(client, funded_milestone):
    resp = client.post(f"/api/milestones/{funded_milestone}/fund", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 409
    assert resp.json()["meta"]["error_code"] == "already_finalized"


def test_gateway_error_on_fund(client, db, gateway, active_project):
    milestone_id = active_project["milestone_ids"][0]
    gateway.initiate_mode = "error"
    resp = client.post(f"/api/milestones/{milestone_id}/fund", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 502
    assert resp.json()["meta"]["error_code"] == "gateway_unavailable"
    assert db.get(Milestone, milestone_id).status == "pending"
    intent = db.query(PaymentIntent).one()
    assert intent.status == "failed"
    assert intent.active_key is None

    gateway.initiate_mode = "success"
    fund_milestone(client, milestone_id)


def test_verify_endpoint_confirms_deposit(client, db, gateway, active_project):
    milestone_id = active_project["milestone_ids"][0]
    reference = fund_milestone(client, milestone_id, confirm=False)
    resp = client.post("/api/payments/verify", json={"reference": reference}, headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "confirmed"
    assert gateway.verified == [reference]
    assert _escrow(db, milestone_id).status == "held"


def test_client_does_not_see_fee_breakdown(client, funded_milestone):
    resp = client.get(f"/api/milestones/{funded_milestone}", headers=auth_headers(client, CLIENT_EMAIL))
    escrow = resp.json()["data"]["escrow"]
    assert Decimal(escrow["amount"]) == Decimal("100000")
    assert "platform_fee" not in escrow
    assert "net_amount" not in escrow

    resp = client.get(f"/api/milestones/{funded_milestone}", headers=auth_headers(client, COMPANY_EMAIL))
    escrow = resp.json()["data"]["escrow"]
    assert Decimal(escrow["platform_fee"]) == Decimal("6500")
    assert Decimal(escrow["net_amount"]) == Decimal("93500")


def test_release_approved_milestone(client, db, gateway, approved_milestone):
    resp = client.post(
        f"/api/escrow/milestones/{approved_milestone}/release",
        json={},
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["milestone"]["status"] == "released"
    assert data["escrow"]["status"] == "released"
    assert data["intent"]["status"] == "confirmed"

    assert len(gateway.transfers) == 1
    transfer = gateway.transfers[0]
    assert transfer["amount"] == Decimal("93500.00")
    assert transfer["recipient"]["account_number"] == "1234509876"

    escrow = _escrow(db, approved_milestone)
    assert escrow.net_amount + escrow.platform_fee == escrow.amount
    types = sorted(t.transaction_type for t in db.query(Transaction).all())
    assert types == ["escrow_deposit", "escrow_release", "platform_fee"]
    assert db.query(AuditEvent).filter(AuditEvent.event_type == "escrow_released").count() == 1


def test_release_twice_transfers_once(client, gateway, approved_milestone):
    headers = auth_headers(client, ADMIN_EMAIL)
    first = client.post(f"/api/escrow/milestones/{approved_milestone}/release", headers=headers)
    assert first.status_code == 200
    for _ in range(2):
        resp = client.post(f"/api/escrow/milestones/{approved_milestone}/release", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["meta"]["error_code"] == "already_finalized"
    assert len(gateway.transfers) == 1


def test_release_unapproved_requires_override(client, db, funded_milestone):
    headers = auth_headers(client, ADMIN_EMAIL)
    resp = client.post(f"/api/escrow/milestones/{funded_milestone}/release", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["meta"]["error_code"] == "invalid_transition"

    resp = client.post(
        f"/api/escrow/milestones/{funded_milestone}/release",
        json={"override": True, "recipient_account": {
            "account_name": "Solid Build Ltd", "account_number": "9999999999", "bank_code": "044",
        }},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["milestone"]["status"] == "released"
    event = db.query(AuditEvent).filter(AuditEvent.event_type == "admin_override_release").one()
    assert event.payload["milestone_status_before"] == "funded"


def test_release_without_escrow(client, active_project):
    resp = client.post(
        f"/api/escrow/milestones/{active_project['milestone_ids'][0]}/release",
        json={"override": True},
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    assert resp.status_code == 409
    assert resp.json()["meta"]["error_code"] == "invalid_transition"


def test_client_cannot_release(client, approved_milestone):
    resp = client.post(
        f"/api/escrow/milestones/{approved_milestone}/release",
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    assert resp.status_code == 403


def test_company_requests_release(client, db, gateway, approved_milestone):
    resp = client.post(
        f"/api/escrow/milestones/{approved_milestone}/release",
        json={},
        headers=auth_headers(client, COMPANY_EMAIL),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["escrow"]["status"] == "held"
    assert gateway.transfers == []

    queue = client.get("/api/admin/escrow/milestones?requested_only=true", headers=auth_headers(client, ADMIN_EMAIL))
    assert [m["milestone_id"] for m in queue.json()["data"]] == [approved_milestone]
    assert _escrow(db, approved_milestone).release_requested_at is not None


def test_gateway_error_keeps_escrow_held(client, db, gateway, approved_milestone):
    gateway.transfer_mode = "error"
    resp = client.post(f"/api/escrow/milestones/{approved_milestone}/release", headers=auth_headers(client, ADMIN_EMAIL))
    assert resp.status_code == 502
    assert _escrow(db, approved_milestone).status == "held"
    assert db.get(Milestone, approved_milestone).status == "approved"

    gateway.transfer_mode = "success"
    resp = client.post(f"/api/escrow/milestones/{approved_milestone}/release", headers=auth_headers(client, ADMIN_EMAIL))
    assert resp.status_code == 200


def test_refund_held_escrow(client, db, gateway, funded_milestone):
    resp = client.post(
        f"/api/escrow/milestones/{funded_milestone}/refund",
        json={"reason": "Company abandoned the site"},
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["escrow"]["status"] == "refunded"
    assert gateway.transfers[0]["amount"] == Decimal("100000.00")
    assert gateway.transfers[0]["recipient"]["account_number"] == "0123456789"

    escrow = _escrow(db, funded_milestone)
    assert escrow.refund_reason == "Company abandoned the site"
    assert db.query(Transaction).filter(Transaction.transaction_type == "escrow_refund").count() == 1

    resp = client.post(
        f"/api/escrow/milestones/{funded_milestone}/release",
        json={"override": True},
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    assert resp.status_code == 409
    assert resp.json()["meta"]["error_code"] == "already_finalized"


def test_company_cannot_refund(client, funded_milestone):
    resp = client.post(
        f"/api/escrow/milestones/{funded_milestone}/refund",
        json={"reason": "nope"},
        headers=auth_headers(client, COMPANY_EMAIL),
    )
    assert resp.status_code == 403


def test_project_completes_when_all_released(client, db, active_project):
    headers = auth_headers(client, ADMIN_EMAIL)
    for milestone_id in active_project["milestone_ids"]:
        fund_milestone(client, milestone_id)
        submit_with_evidence(client, milestone_id)
        approve(client, milestone_id)
        resp = client.post(f"/api/escrow/milestones/{milestone_id}/release", headers=headers)
        assert resp.status_code == 200
    db.expire_all()
    assert db.get(Project, active_project["project_id"]).status == "completed"


def test_transactions_are_role_scoped(client, approved_milestone):
    client.post(f"/api/escrow/milestones/{approved_milestone}/release", headers=auth_headers(client, ADMIN_EMAIL))

    resp = client.get("/api/transactions", headers=auth_headers(client, CLIENT_EMAIL))
    types = {t["transaction_type"] for t in resp.json()["data"]}
    assert types == {"escrow_deposit", "escrow_release"}
    assert all("platform_fee" not in t for t in resp.json()["data"])

    resp = client.get("/api/transactions", headers=auth_headers(client, ADMIN_EMAIL))
    assert resp.json()["meta"]["total"] == 3


def test_verify_endpoint_checks_timed_out_release_as_transfer(client, db, gateway, funded_milestone):
    gateway.transfer_mode = "timeout"
    resp = client.post(
        f"/api/escrow/milestones/{funded_milestone}/release",
        json={"override": True},
        headers=auth_headers(client, ADMIN_EMAIL),
    )
    reference = resp.json()["data"]["intent"]["reference"]
    assert resp.json()["data"]["intent"]["status"] == "pending_confirmation"

    resp = client.post("/api/payments/verify", json={"reference": reference}, headers=auth_headers(client, ADMIN_EMAIL))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "confirmed"
    assert gateway.transfer_verified == [reference]
    assert reference not in gateway.verified
    assert _escrow(db, funded_milestone).status == "released"


def test_late_success_on_failed_deposit_flags_manual_refund(client, db, active_project):
    milestone_id = active_project["milestone_ids"][0]
    reference = fund_milestone(client, milestone_id, confirm=False)
    client.post("/api/payments/webhook", json={"reference": reference, "status": "failed"}, headers=webhook_headers())

    # 게이트웨이가 뒤늦게 성공을 알린다. 재전송되어도 한 번만 기록된다.
    for _ in range(2):
        resp = client.post(
            "/api/payments/webhook",
            json={"reference": reference, "status": "success"},
            headers=webhook_headers(),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "failed"

    db.expire_all()
    assert _escrow(db, milestone_id) is None
    assert db.get(Milestone, milestone_id).status == "pending"
    events = db.query(AuditEvent).filter(AuditEvent.event_type == "manual_refund_required").all()
    assert len(events) == 1
    assert events[0].payload["reference"] == reference
    assert db.query(Notification).filter(Notification.noti_type == "manual_refund_required").count() == 1
