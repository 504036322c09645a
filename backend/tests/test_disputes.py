"""Test 분쟁 생성/해결과 프로젝트 disputed 상태 전이를 검증합니다."""

from buildlink.models.dispute import Dispute
from buildlink.models.project import Project
from tests.conftest import ADMIN_EMAIL, CLIENT_EMAIL, COMPANY_EMAIL, auth_headers, submit_with_evidence


def _project_status(db, project_id):
    db.expire_all()
    return db.get(Project, project_id).status


def test_reject_opens_dispute_and_marks_project_disputed(client, db, active_project, funded_milestone):
    submit_with_evidence(client, funded_milestone)
    client.post(
        f"/api/milestones/{funded_milestone}/reject",
        json={"reason": "Wrong cement grade"},
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    dispute = db.query(Dispute).one()
    assert dispute.source == "rejection"
    assert dispute.milestone_id == funded_milestone
    assert dispute.status == "open"
    assert _project_status(db, active_project["project_id"]) == "disputed"


def test_direct_dispute_keeps_milestone_submitted(client, db, active_project, funded_milestone):
    submit_with_evidence(client, funded_milestone)
    resp = client.post(
        f"/api/milestones/{funded_milestone}/dispute",
        json={"reason": "Work quality concerns"},
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["source"] == "direct"

    resp = client.get(f"/api/milestones/{funded_milestone}", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.json()["data"]["status"] == "submitted"
    assert _project_status(db, active_project["project_id"]) == "disputed"


def test_dispute_only_on_submitted_milestone(client, funded_milestone):
    resp = client.post(
        f"/api/milestones/{funded_milestone}/dispute",
        json={"reason": "Too early"},
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    assert resp.status_code == 409


def test_admin_resolves_dispute(client, db, active_project, funded_milestone):
    submit_with_evidence(client, funded_milestone)
    dispute = client.post(
        f"/api/milestones/{funded_milestone}/dispute",
        json={"reason": "Work quality concerns"},
        headers=auth_headers(client, CLIENT_EMAIL),
    ).json()["data"]

    admin = auth_headers(client, ADMIN_EMAIL)
    resp = client.get("/api/admin/disputes?status=open", headers=admin)
    assert [d["dispute_id"] for d in resp.json()["data"]] == [dispute["dispute_id"]]

    resp = client.post(
        f"/api/admin/disputes/{dispute['dispute_id']}/resolve",
        json={"resolution": "Escalated to site inspection", "status": "escalated"},
        headers=admin,
    )
    assert resp.json()["data"]["status"] == "escalated"
    assert _project_status(db, active_project["project_id"]) == "disputed"

    resp = client.post(
        f"/api/admin/disputes/{dispute['dispute_id']}/resolve",
        json={"resolution": "Inspection passed"},
        headers=admin,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "resolved"
    assert _project_status(db, active_project["project_id"]) == "active"

    resp = client.post(
        f"/api/admin/disputes/{dispute['dispute_id']}/resolve",
        json={"resolution": "again"},
        headers=admin,
    )
    assert resp.status_code == 409
    assert resp.json()["meta"]["error_code"] == "already_finalized"


def test_only_admin_resolves_disputes(client, funded_milestone):
    submit_with_evidence(client, funded_milestone)
    dispute = client.post(
        f"/api/milestones/{funded_milestone}/dispute",
        json={"reason": "Concerns"},
        headers=auth_headers(client, CLIENT_EMAIL),
    ).json()["data"]
    for email in (CLIENT_EMAIL, COMPANY_EMAIL):
        resp = client.post(
            f"/api/admin/disputes/{dispute['dispute_id']}/resolve",
            json={"resolution": "mine"},
            headers=auth_headers(client, email),
        )
        assert resp.status_code == 403
