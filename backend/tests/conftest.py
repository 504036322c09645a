import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from buildlink.config import settings
from buildlink.database import Base, get_db
from buildlink.main import app
from buildlink.models.consultation import Consultation
from buildlink.models.user import PaymentAccount, User
from buildlink.services.payment_gateway import (
    FAILED, PENDING, SUCCESS, GatewayError, GatewayTimeout, InitiateResult, PaymentGateway, TransferResult,
    get_payment_gateway,
)

TEST_DB_URL = "sqlite:///./test_buildlink.db"

engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

CLIENT_EMAIL = "client@buildlink.test"
OTHER_CLIENT_EMAIL = "client2@buildlink.test"
COMPANY_EMAIL = "company@buildlink.test"
OTHER_COMPANY_EMAIL = "company2@buildlink.test"
ADMIN_EMAIL = "admin@buildlink.test"


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


class FakePaymentGateway(PaymentGateway):
    """호출 기록을 남기는 메모리 게이트웨이. 모드 값으로 실패/지연을 흉내 낸다."""

    def __init__(self):
        self.initiate_mode = SUCCESS  # success/error
        self.transfer_mode = SUCCESS  # success/pending/failed/timeout/error
        self.verify_status = SUCCESS
        self.initiated = []
        self.transfers = []
        self.verified = []
        self.transfer_verified = []
        # 게이트웨이 호출 도중 다른 요청을 끼워 넣기 위한 콜백
        self.on_initiate = None
        self.on_transfer = None

    def initiate(self, amount, currency, metadata):
        self.initiated.append({"amount": amount, "currency": currency, "metadata": metadata})
        if self.on_initiate:
            self.on_initiate(metadata)
        if self.initiate_mode == "error":
            raise GatewayError("gateway down")
        reference = metadata["reference"]
        return InitiateResult(payment_url=f"https://pay.test/checkout/{reference}", reference=reference)

    def verify(self, reference):
        self.verified.append(reference)
        return self.verify_status

    def transfer(self, amount, currency, recipient, metadata):
        self.transfers.append({"amount": amount, "currency": currency, "recipient": recipient, "metadata": metadata})
        if self.on_transfer:
            self.on_transfer(metadata)
        if self.transfer_mode == "timeout":
            raise GatewayTimeout("transfer timed out")
        if self.transfer_mode == "error":
            raise GatewayError("transfer rejected")
        status = {"pending": PENDING, "failed": FAILED}.get(self.transfer_mode, SUCCESS)
        return TransferResult(reference=metadata["reference"], status=status)

    def verify_transfer(self, reference):
        self.transfer_verified.append(reference)
        return self.verify_status


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def gateway():
    fake = FakePaymentGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_payment_gateway, None)


@pytest.fixture
def db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seed_users(db):
    users = {
        "client": User(email=CLIENT_EMAIL, name="Ada Client", role="client"),
        "other_client": User(email=OTHER_CLIENT_EMAIL, name="Tunde Client", role="client"),
        "company": User(email=COMPANY_EMAIL, name="Solid Build Ltd", role="company"),
        "other_company": User(email=OTHER_COMPANY_EMAIL, name="Prime Works Ltd", role="company"),
        "admin": User(email=ADMIN_EMAIL, name="Platform Admin", role="admin"),
    }
    for u in users.values():
        db.add(u)
    db.commit()
    db.add_all([
        PaymentAccount(user_id=users["client"].user_id, account_name="Ada Client",
                       account_number="0123456789", bank_code="058", is_default=True),
        PaymentAccount(user_id=users["company"].user_id, account_name="Solid Build Ltd",
                       account_number="1234509876", bank_code="044", is_default=True),
    ])
    db.commit()
    for u in users.values():
        db.refresh(u)
    return users


@pytest.fixture
def consultation(db, seed_users):
    item = Consultation(
        client_id=seed_users["client"].user_id,
        company_id=seed_users["company"].user_id,
        status="completed",
        payment_status="paid",
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_token(client, email: str) -> str:
    resp = client.post("/api/auth/login", json={"email": email})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["access_token"]


def auth_headers(client, email: str) -> dict:
    return {"Authorization": f"Bearer {get_token(client, email)}"}


def webhook_headers() -> dict:
    return {"X-Webhook-Secret": settings.PAYMENT_WEBHOOK_SECRET}


def create_project(client, consultation_id: int) -> dict:
    resp = client.post(
        "/api/projects",
        json={"consultation_id": consultation_id, "title": "Lekki Duplex", "location": "Lagos"},
        headers=auth_headers(client, CLIENT_EMAIL),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def create_milestones(client, project_id: int, amounts) -> list:
    items = [
        {"title": f"Phase {i + 1}", "amount": str(amount), "sequence_order": i + 1}
        for i, amount in enumerate(amounts)
    ]
    resp = client.post(
        f"/api/projects/{project_id}/milestones",
        json={"milestones": items},
        headers=auth_headers(client, COMPANY_EMAIL),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def verify_milestone(client, milestone_id: int):
    resp = client.post(f"/api/milestones/{milestone_id}/verify", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def fund_milestone(client, milestone_id: int, confirm: bool = True) -> str:
    resp = client.post(f"/api/milestones/{milestone_id}/fund", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 200, resp.text
    reference = resp.json()["data"]["reference"]
    if confirm:
        hook = client.post(
            "/api/payments/webhook",
            json={"reference": reference, "status": "success"},
            headers=webhook_headers(),
        )
        assert hook.status_code == 200, hook.text
    return reference


def submit_with_evidence(client, milestone_id: int, note: str = "Work completed"):
    resp = client.post(
        f"/api/milestones/{milestone_id}/submit",
        json={"evidence": [{"evidence_type": "text", "description": note}]},
        headers=auth_headers(client, COMPANY_EMAIL),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def approve(client, milestone_id: int):
    resp = client.post(f"/api/milestones/{milestone_id}/approve", headers=auth_headers(client, CLIENT_EMAIL))
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


@pytest.fixture
def active_project(client, consultation):
    """마일스톤 2개가 모두 검증되어 active 상태인 프로젝트."""
    project = create_project(client, consultation.consultation_id)
    milestones = create_milestones(client, project["project_id"], [Decimal("100000.00"), Decimal("50000.00")])
    for m in milestones:
        verify_milestone(client, m["milestone_id"])
    return {"project_id": project["project_id"], "milestone_ids": [m["milestone_id"] for m in milestones]}


@pytest.fixture
def funded_milestone(client, active_project):
    milestone_id = active_project["milestone_ids"][0]
    fund_milestone(client, milestone_id)
    return milestone_id


@pytest.fixture
def approved_milestone(client, funded_milestone):
    submit_with_evidence(client, funded_milestone)
    approve(client, funded_milestone)
    return funded_milestone
