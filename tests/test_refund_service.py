"""
Unit tests for refund requests and admin processing.
"""
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models import User, UserRole, Payment, Refund
from app.core.errors import (
    EntitlementError,
    ForbiddenError,
    GatewayError,
    InvalidRefundActionError,
    PaymentNotFoundError,
    PaymentNotRefundableError,
    RefundNotFoundError,
)
from app.services.refund_service import list_refunds, process_refund, request_refund


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeGateway:
    def __init__(self, fail=False):
        self.fail = fail
        self.refunds = []

    def refund(self, payment_id, amount):
        if self.fail:
            raise GatewayError("Refund failed: charge_already_refunded")
        self.refunds.append((payment_id, amount))
        return {"id": f"re_{len(self.refunds)}"}


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def recruiter(db):
    user = User(full_name="Test Recruiter", email="recruiter@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    user = User(full_name="Admin", email="admin@example.com", role=UserRole.ADMIN.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def paid_payment(db, recruiter):
    payment = Payment(
        order_id="ORD-1-abcd",
        user_id=recruiter.id,
        amount=490,
        currency="INR",
        status="success",
        billing_cycle="annual",
        gateway_order_id="pi_123",
        gateway_payment_id="pi_123",
        created_at=datetime.utcnow(),
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def test_request_refund(db, recruiter, paid_payment):
    refund = request_refund(db, recruiter.id, paid_payment.id, "service-not-delivered", "Never used it")

    assert refund.status == "pending"
    assert refund.amount == paid_payment.amount
    assert refund.user_id == recruiter.id


def test_request_refund_validation(db, recruiter, paid_payment):
    with pytest.raises(EntitlementError):
        request_refund(db, recruiter.id, paid_payment.id, "bored")
    with pytest.raises(PaymentNotFoundError):
        request_refund(db, recruiter.id, 999, "other")
    with pytest.raises(ForbiddenError):
        request_refund(db, recruiter.id + 1, paid_payment.id, "other")


def test_only_one_refund_per_payment(db, recruiter, paid_payment):
    request_refund(db, recruiter.id, paid_payment.id, "other")

    with pytest.raises(PaymentNotRefundableError):
        request_refund(db, recruiter.id, paid_payment.id, "other")


def test_pending_payment_not_refundable(db, recruiter, paid_payment):
    paid_payment.status = "pending"
    db.commit()

    with pytest.raises(PaymentNotRefundableError):
        request_refund(db, recruiter.id, paid_payment.id, "other")


def test_approve_refund(db, recruiter, admin, paid_payment):
    gateway = FakeGateway()
    refund = request_refund(db, recruiter.id, paid_payment.id, "duplicate-payment")

    processed = process_refund(db, refund.id, admin.id, "approve", gateway, admin_notes="ok")

    assert gateway.refunds == [("pi_123", paid_payment.amount)]
    assert processed.status == "processed"
    assert processed.gateway_refund_id == "re_1"
    assert processed.processed_by == admin.id
    db.refresh(paid_payment)
    assert paid_payment.status == "refunded"
    assert paid_payment.refund_id == "re_1"
    assert paid_payment.refunded_at is not None


def test_gateway_failure_leaves_state_untouched(db, recruiter, admin, paid_payment):
    refund = request_refund(db, recruiter.id, paid_payment.id, "technical-issue")

    with pytest.raises(GatewayError):
        process_refund(db, refund.id, admin.id, "approve", FakeGateway(fail=True))

    db.refresh(refund)
    db.refresh(paid_payment)
    assert refund.status == "pending"
    assert refund.gateway_refund_id is None
    assert paid_payment.status == "success"


def test_reject_refund(db, recruiter, admin, paid_payment):
    gateway = FakeGateway()
    refund = request_refund(db, recruiter.id, paid_payment.id, "change-of-mind")

    rejected = process_refund(db, refund.id, admin.id, "reject", gateway, admin_notes="Outside refund window")

    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Outside refund window"
    assert gateway.refunds == []
    db.refresh(paid_payment)
    assert paid_payment.status == "success"


def test_refund_processed_once(db, recruiter, admin, paid_payment):
    gateway = FakeGateway()
    refund = request_refund(db, recruiter.id, paid_payment.id, "other")
    process_refund(db, refund.id, admin.id, "reject", gateway)

    with pytest.raises(PaymentNotRefundableError):
        process_refund(db, refund.id, admin.id, "approve", gateway)
    assert gateway.refunds == []


def test_invalid_action_and_missing_refund(db, recruiter, admin, paid_payment):
    refund = request_refund(db, recruiter.id, paid_payment.id, "other")

    with pytest.raises(InvalidRefundActionError):
        process_refund(db, refund.id, admin.id, "escalate", FakeGateway())
    with pytest.raises(RefundNotFoundError):
        process_refund(db, 999, admin.id, "approve", FakeGateway())


def test_list_refunds(db, recruiter, paid_payment):
    request_refund(db, recruiter.id, paid_payment.id, "other")

    assert list_refunds(db)["total"] == 1
    assert list_refunds(db, status="processed")["total"] == 0
    assert db.query(Refund).count() == 1
