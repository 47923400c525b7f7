"""
Unit tests for invoice listing and lookup.
"""
import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.models import User, EmployerPlan
from app.core.errors import ForbiddenError, InvoiceNotFoundError, NotFoundError
from app.services.activation_service import activate_payment, create_order
from app.services.invoice_service import get_invoice, list_invoices


# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


class FakeGateway:
    def __init__(self):
        self.count = 0

    def create_order(self, amount, currency, receipt):
        self.count += 1
        return {"id": f"pi_test_{self.count}", "amount": amount, "currency": currency}


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
def users(db):
    owner = User(full_name="Owner", email="owner@example.com")
    other = User(full_name="Other", email="other@example.com")
    db.add_all([owner, other])
    db.commit()
    return owner, other


@pytest.fixture
def plan(db):
    plan = EmployerPlan(name="Basic", display_name="Basic Plan", description="", price_monthly=49, price_annual=490)
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def paid_invoice(db, user, plan, gateway, when):
    payment, _ = create_order(db, user.id, plan.id, "monthly", gateway)
    return activate_payment(db, payment.gateway_order_id, f"pay_{payment.id}", now=when).invoice


def test_list_invoices_newest_first(db, users, plan):
    owner, other = users
    gateway = FakeGateway()
    first = paid_invoice(db, owner, plan, gateway, datetime(2026, 1, 10))
    second = paid_invoice(db, owner, plan, gateway, datetime(2026, 2, 10))
    first.created_at = datetime(2026, 1, 10)
    second.created_at = datetime(2026, 2, 10)
    db.commit()
    paid_invoice(db, other, plan, gateway, datetime(2026, 2, 11))

    result = list_invoices(db, owner.id)

    assert result["total"] == 2
    assert result["total_pages"] == 1
    assert [inv.invoice_number for inv in result["invoices"]] == ["INV-202602-0001", "INV-202601-0001"]
    assert result["invoices"][0].payment.order_id.startswith("ORD-")


def test_list_invoices_paginates(db, users, plan):
    owner, _ = users
    gateway = FakeGateway()
    for month in (1, 2, 3):
        paid_invoice(db, owner, plan, gateway, datetime(2026, month, 5))

    page = list_invoices(db, owner.id, page=2, limit=2)

    assert page["total"] == 3
    assert page["total_pages"] == 2
    assert page["current_page"] == 2
    assert len(page["invoices"]) == 1


def test_get_invoice(db, users, plan):
    owner, _ = users
    invoice = paid_invoice(db, owner, plan, FakeGateway(), datetime(2026, 4, 1))

    found = get_invoice(db, owner.id, invoice.id)

    assert found.id == invoice.id
    assert found.payment.status == "success"


def test_get_invoice_of_another_user(db, users, plan):
    owner, other = users
    invoice = paid_invoice(db, owner, plan, FakeGateway(), datetime(2026, 4, 1))

    with pytest.raises(ForbiddenError):
        get_invoice(db, other.id, invoice.id)


def test_get_missing_invoice(db, users):
    owner, _ = users

    with pytest.raises(InvoiceNotFoundError) as exc_info:
        get_invoice(db, owner.id, 999)
    assert isinstance(exc_info.value, NotFoundError)
    assert exc_info.value.status_code == 404
