"""
Integration tests for the payment, webhook and refund endpoints.
"""
import hashlib
import hmac
import json
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.db.models import User, UserRole, Payment, Subscription, Invoice
from app.core.security import create_access_token
from app.services.payment_gateway import StripeGateway, get_gateway
from app.services.plan_catalog import initialize_default_plans


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

WEBHOOK_SECRET = "whsec_test"


class FakeGateway(StripeGateway):
    """Real signature checks, no network calls."""

    def __init__(self):
        super().__init__(api_key="sk_test", webhook_secret=WEBHOOK_SECRET)
        self.refunds = []

    def create_order(self, amount, currency, receipt):
        return {"id": f"pi_{receipt}", "amount": amount, "currency": currency, "client_secret": "secret"}

    def construct_event(self, payload, sig_header):
        if sig_header != "valid":
            raise ValueError("Invalid signature")
        return json.loads(payload)

    def refund(self, payment_id, amount):
        self.refunds.append(payment_id)
        return {"id": "re_test_1"}


def sign(order_id, payment_id):
    return hmac.new(WEBHOOK_SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture(scope="function", autouse=True)
def setup_db(gateway):
    """Create and drop tables for each test."""
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def plans(db_session):
    return {plan.name: plan for plan in initialize_default_plans(db_session)}


def make_user(db_session, email, role=UserRole.RECRUITER.value):
    user = User(full_name=email.split("@")[0], email=email, role=role)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def recruiter(db_session):
    return make_user(db_session, "recruiter@example.com")


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(app)


def create_order(client, recruiter, plan, billing_cycle="annual"):
    response = client.post(
        "/payments/create-order",
        json={"plan_id": plan.id, "billing_cycle": billing_cycle},
        headers=auth(recruiter),
    )
    assert response.status_code == 201
    return response.json()["order"]


def verify(client, recruiter, order, payment_id="pay_1", signature=None):
    return client.post(
        "/payments/verify",
        json={
            "gateway_order_id": order["id"],
            "gateway_payment_id": payment_id,
            "signature": signature or sign(order["id"], payment_id),
        },
        headers=auth(recruiter),
    )


def test_create_order(client, recruiter, plans):
    order = create_order(client, recruiter, plans["Basic"])

    assert order["amount"] == 490.0
    assert order["order_id"].startswith("ORD-")
    assert order["id"] == f"pi_{order['order_id']}"


def test_create_order_for_free_plan(client, recruiter, plans):
    response = client.post(
        "/payments/create-order",
        json={"plan_id": plans["Free"].id, "billing_cycle": "monthly"},
        headers=auth(recruiter),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot create order for free plan"


def test_create_order_rejects_unknown_cycle(client, recruiter, plans):
    response = client.post(
        "/payments/create-order",
        json={"plan_id": plans["Basic"].id, "billing_cycle": "weekly"},
        headers=auth(recruiter),
    )

    assert response.status_code == 422


def test_verify_activates_subscription(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])

    response = verify(client, recruiter, order)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Payment successful"
    assert data["subscription"]["status"] == "active"
    assert data["subscription"]["billing_cycle"] == "annual"
    assert data["invoice"]["subtotal"] == 490.0
    assert data["invoice"]["tax_amount"] == 88.2
    assert data["invoice"]["total"] == 578.2
    assert data["invoice"]["invoice_number"].startswith("INV-")

    usage = client.get("/me/usage", headers=auth(recruiter)).json()
    assert usage["plan"] == "Basic"


def test_verify_replay_is_idempotent(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])

    first = verify(client, recruiter, order).json()
    second = verify(client, recruiter, order).json()

    assert second["already_processed"] is True
    assert second["message"] == "Payment already processed"
    assert second["subscription"]["id"] == first["subscription"]["id"]
    assert second["invoice"]["invoice_number"] == first["invoice"]["invoice_number"]
    assert db_session.query(Subscription).count() == 1
    assert db_session.query(Invoice).count() == 1


def test_verify_rejects_bad_signature(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])

    response = verify(client, recruiter, order, signature="forged")

    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Invalid payment signature"
    assert db_session.query(Payment).one().status == "pending"
    assert db_session.query(Subscription).count() == 0


def test_verify_other_users_order(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])
    intruder = make_user(db_session, "intruder@example.com")

    response = verify(client, intruder, order)

    assert response.status_code == 403
    assert db_session.query(Subscription).count() == 0


def test_webhook_activates_payment(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Premium"], billing_cycle="monthly")
    event = {"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": order["id"]}}}

    response = client.post("/payments/webhook", content=json.dumps(event), headers={"stripe-signature": "valid"})
    replay = client.post("/payments/webhook", content=json.dumps(event), headers={"stripe-signature": "valid"})

    assert response.status_code == 200
    assert replay.json() == {"received": True}
    assert db_session.query(Subscription).count() == 1


def test_webhook_unknown_order_is_acknowledged(client):
    event = {"id": "evt_2", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_unknown"}}}

    response = client.post("/payments/webhook", content=json.dumps(event), headers={"stripe-signature": "valid"})

    assert response.status_code == 200


def test_webhook_for_refunded_payment_is_acknowledged(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])
    payment = db_session.query(Payment).one()
    payment.status = "refunded"
    db_session.commit()
    event = {"id": "evt_3", "type": "payment_intent.succeeded", "data": {"object": {"id": order["id"]}}}

    response = client.post("/payments/webhook", content=json.dumps(event), headers={"stripe-signature": "valid"})

    assert response.status_code == 200
    assert response.json() == {"received": True}
    assert db_session.query(Subscription).count() == 0


def test_webhook_rejects_bad_signature(client):
    response = client.post("/payments/webhook", content="{}", headers={"stripe-signature": "forged"})

    assert response.status_code == 400


def test_payment_history(client, recruiter, plans):
    create_order(client, recruiter, plans["Basic"])
    create_order(client, recruiter, plans["Premium"])

    response = client.get("/payments/history", headers=auth(recruiter))

    assert response.status_code == 200
    assert response.json()["total"] == 2
    assert response.json()["current_page"] == 1


def test_invoice_listing_and_lookup(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])
    invoice_number = verify(client, recruiter, order).json()["invoice"]["invoice_number"]

    listing = client.get("/payments/invoices", headers=auth(recruiter))

    assert listing.status_code == 200
    data = listing.json()
    assert data["total"] == 1
    assert data["current_page"] == 1
    invoice = data["invoices"][0]
    assert invoice["invoice_number"] == invoice_number
    assert invoice["payment"]["order_id"] == order["order_id"]
    assert invoice["payment"]["status"] == "success"

    detail = client.get(f"/payments/invoices/{invoice['id']}", headers=auth(recruiter))
    assert detail.status_code == 200
    assert detail.json()["invoice"]["total"] == 578.2


def test_invoice_lookup_is_owner_only(client, recruiter, plans, db_session):
    order = create_order(client, recruiter, plans["Basic"])
    invoice_id = verify(client, recruiter, order).json()["invoice"]["id"]
    intruder = make_user(db_session, "intruder@example.com")

    forbidden = client.get(f"/payments/invoices/{invoice_id}", headers=auth(intruder))
    missing = client.get("/payments/invoices/999", headers=auth(recruiter))

    assert forbidden.status_code == 403
    assert forbidden.json() == {"success": False, "message": "Unauthorized"}
    assert missing.status_code == 404
    assert missing.json()["message"] == "Invoice not found"
    assert client.get("/payments/invoices", headers=auth(intruder)).json()["total"] == 0


def test_refund_flow(client, recruiter, plans, db_session, gateway):
    order = create_order(client, recruiter, plans["Basic"])
    verify(client, recruiter, order)
    payment = db_session.query(Payment).one()
    admin = make_user(db_session, "admin@example.com", role=UserRole.ADMIN.value)

    requested = client.post(
        "/payments/refunds",
        json={"payment_id": payment.id, "reason": "duplicate-payment"},
        headers=auth(recruiter),
    )
    assert requested.status_code == 201
    refund_id = requested.json()["refund"]["id"]

    forbidden = client.post(
        "/payments/refunds/process",
        json={"refund_id": refund_id, "action": "approve"},
        headers=auth(recruiter),
    )
    assert forbidden.status_code == 403

    processed = client.post(
        "/payments/refunds/process",
        json={"refund_id": refund_id, "action": "approve"},
        headers=auth(admin),
    )
    assert processed.status_code == 200
    assert processed.json()["refund"]["status"] == "processed"
    assert gateway.refunds == ["pay_1"]
    db_session.refresh(payment)
    assert payment.status == "refunded"

    listing = client.get("/payments/refunds", headers=auth(admin))
    assert listing.status_code == 200
    assert listing.json()["total"] == 1
    assert client.get("/payments/refunds", headers=auth(recruiter)).status_code == 403
