"""
Payment-to-entitlement activation pipeline.

Creates gateway orders and turns a verified payment confirmation into an
active subscription term plus its paid invoice. Activation is idempotent
against re-delivery: the payment row is locked while it is processed, and
the unique payment references on subscriptions and invoices turn a lost
race into the already-processed result.
"""
import calendar
import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.payment import Payment, PaymentStatus
from app.db.models.subscription import Subscription, SubscriptionStatus, BillingCycle
from app.db.models.invoice import Invoice, InvoiceSequence
from app.core.config import INVOICE_TAX_RATE, PAYMENT_CURRENCY
from app.core.errors import (
    ForbiddenError,
    FreePlanOrderError,
    InvalidBillingCycleError,
    PaymentNotActivatableError,
    PaymentNotFoundError,
    PlanNotFoundError,
)
from app.services.plan_catalog import find_plan, get_plan

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
BILLING_CYCLES = {BillingCycle.MONTHLY.value, BillingCycle.ANNUAL.value}


@dataclass
class ActivationResult:
    payment: Payment
    subscription: Optional[Subscription]
    invoice: Optional[Invoice]
    already_processed: bool = False


def add_months(start: datetime, months: int) -> datetime:
    """Calendar-month arithmetic, clamping the day to the target month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def term_months(billing_cycle: str) -> int:
    return 12 if billing_cycle == BillingCycle.ANNUAL.value else 1


def compute_invoice_amounts(amount, tax_rate=INVOICE_TAX_RATE) -> Dict[str, Decimal]:
    """Flat-rate tax on the subtotal."""
    subtotal = Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)
    rate = Decimal(str(tax_rate))
    tax_amount = (subtotal * rate / 100).quantize(CENTS, rounding=ROUND_HALF_UP)
    return {
        "subtotal": subtotal,
        "tax_rate": rate,
        "tax_amount": tax_amount,
        "total": subtotal + tax_amount,
    }


def generate_order_id() -> str:
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def next_invoice_number(db: Session, when: datetime = None) -> str:
    """
    Allocate the next INV-YYYYMM-#### number for the month of `when`.

    The per-month counter is bumped with a single UPDATE; the month's row is
    created on first use, retrying the UPDATE if another writer created it
    first. Runs inside the caller's transaction.
    """
    month_key = InvoiceSequence.get_month_key(when)
    bump = (
        update(InvoiceSequence)
        .where(InvoiceSequence.month_key == month_key)
        .values(last_value=InvoiceSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )

    for _ in range(3):
        if db.execute(bump).rowcount == 1:
            break
        try:
            with db.begin_nested():
                db.add(InvoiceSequence(month_key=month_key, last_value=1))
            break
        except IntegrityError:
            continue
    else:
        raise RuntimeError(f"Could not allocate invoice number for {month_key}")

    value = db.execute(
        select(InvoiceSequence.last_value).where(InvoiceSequence.month_key == month_key)
    ).scalar_one()
    return f"INV-{month_key}-{value:04d}"


def create_order(
    db: Session,
    user_id: int,
    plan_id: int,
    billing_cycle: str,
    gateway,
    currency: str = PAYMENT_CURRENCY,
):
    """
    Create a gateway order and its pending Payment.

    The gateway is called before anything is written locally, so a gateway
    failure leaves no pending payment behind.

    Returns:
        Tuple of (payment, gateway_order dict)

    Raises:
        PlanNotFoundError, InvalidBillingCycleError, FreePlanOrderError,
        GatewayError
    """
    if billing_cycle not in BILLING_CYCLES:
        raise InvalidBillingCycleError(billing_cycle)

    plan = get_plan(db, plan_id)
    amount = plan.price_for(billing_cycle)
    if not amount:
        raise FreePlanOrderError()

    order_id = generate_order_id()
    gateway_order = gateway.create_order(amount, currency, order_id)

    payment = Payment(
        order_id=order_id,
        user_id=user_id,
        plan_id=plan.id,
        amount=amount,
        currency=currency.upper(),
        billing_cycle=billing_cycle,
        gateway_order_id=gateway_order["id"],
        status=PaymentStatus.PENDING.value,
    )
    try:
        db.add(payment)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Failed to record payment for gateway order {gateway_order['id']}")
        raise
    db.refresh(payment)

    logger.info(f"Order created: order_id={order_id}, user_id={user_id}, plan_id={plan.id}, amount={amount}")
    return payment, gateway_order


def _find_payment(db: Session, gateway_order_id: str, lock: bool = False) -> Optional[Payment]:
    query = db.query(Payment).filter(Payment.gateway_order_id == gateway_order_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def _supersede_active_terms(db: Session, user_id: int, now: datetime) -> int:
    """Cancel the user's current terms so the new one is the only active record."""
    stmt = (
        update(Subscription)
        .where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now,
        )
        .values(status=SubscriptionStatus.CANCELLED.value, cancelled_at=now, auto_renew=False)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount or 0


def _existing_activation(db: Session, payment: Payment) -> ActivationResult:
    subscription = db.query(Subscription).filter(Subscription.last_payment_id == payment.id).first()
    invoice = db.query(Invoice).filter(Invoice.payment_id == payment.id).first()
    return ActivationResult(payment=payment, subscription=subscription, invoice=invoice, already_processed=True)


def activate_payment(
    db: Session,
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: Optional[str] = None,
    payment_method: Optional[str] = None,
    user_id: Optional[int] = None,
    now: datetime = None,
) -> ActivationResult:
    """
    Apply a verified payment confirmation.

    Signature verification must already have succeeded. Marks the payment
    successful, cancels any term the user still has running, then creates
    the new active subscription term and the paid invoice in one transaction. Replaying the same confirmation returns the
    records created the first time.

    Args:
        db: Database session
        gateway_order_id: Gateway order the confirmation refers to
        gateway_payment_id: Gateway payment id to record
        signature: Gateway signature to record
        payment_method: Payment method reported by the gateway
        user_id: If given, the payment must belong to this user
        now: Activation time (defaults to utcnow)

    Raises:
        PaymentNotFoundError, ForbiddenError, PaymentNotActivatableError,
        PlanNotFoundError
    """
    now = now or datetime.utcnow()

    payment = _find_payment(db, gateway_order_id, lock=True)
    if payment is None:
        db.rollback()
        raise PaymentNotFoundError(gateway_order_id)

    if user_id is not None and payment.user_id != user_id:
        db.rollback()
        raise ForbiddenError("Payment belongs to another user")

    if payment.status == PaymentStatus.SUCCESS.value:
        logger.info(f"Payment already processed: order_id={payment.order_id}")
        return _existing_activation(db, payment)

    if payment.status not in (PaymentStatus.PENDING.value, PaymentStatus.FAILED.value):
        db.rollback()
        raise PaymentNotActivatableError(payment.status)

    plan = find_plan(db, payment.plan_id)
    if plan is None:
        db.rollback()
        raise PlanNotFoundError(payment.plan_id)

    billing_cycle = BillingCycle.ANNUAL.value if payment.billing_cycle == BillingCycle.ANNUAL.value else BillingCycle.MONTHLY.value
    end_date = add_months(now, term_months(billing_cycle))
    amounts = compute_invoice_amounts(payment.amount)

    try:
        payment.mark_success(gateway_payment_id, signature, payment_method)
        superseded = _supersede_active_terms(db, payment.user_id, now)

        subscription = Subscription(
            user_id=payment.user_id,
            plan_id=payment.plan_id,
            status=SubscriptionStatus.ACTIVE.value,
            billing_cycle=billing_cycle,
            start_date=now,
            end_date=end_date,
            current_period_start=now,
            current_period_end=end_date,
            last_payment_id=payment.id,
            usage_job_postings=0,
            usage_featured_jobs=0,
            usage_resume_credits=0,
        )
        db.add(subscription)
        db.flush()

        invoice = Invoice(
            invoice_number=next_invoice_number(db, now),
            user_id=payment.user_id,
            payment_id=payment.id,
            items=[{
                "description": f"{plan.display_name} - {payment.billing_cycle} subscription",
                "quantity": 1,
                "unit_price": float(amounts["subtotal"]),
                "amount": float(amounts["subtotal"]),
            }],
            subtotal=amounts["subtotal"],
            tax_rate=amounts["tax_rate"],
            tax_amount=amounts["tax_amount"],
            total=amounts["total"],
            currency=payment.currency,
            status="paid",
            paid_date=now,
        )
        db.add(invoice)
        db.commit()
    except IntegrityError:
        db.rollback()
        payment = _find_payment(db, gateway_order_id)
        if payment is not None and payment.status == PaymentStatus.SUCCESS.value:
            logger.info(f"Concurrent activation resolved as already processed: order_id={payment.order_id}")
            return _existing_activation(db, payment)
        raise
    except Exception:
        db.rollback()
        logger.exception(f"Payment activation failed: gateway_order_id={gateway_order_id}")
        raise

    db.refresh(payment)
    db.refresh(subscription)
    db.refresh(invoice)

    logger.info(
        f"Payment verified: order_id={payment.order_id}, user_id={payment.user_id}, "
        f"subscription_id={subscription.id}, invoice={invoice.invoice_number}, ends={end_date.isoformat()}, "
        f"superseded={superseded}"
    )
    return ActivationResult(payment=payment, subscription=subscription, invoice=invoice)


def mark_payment_failed(db: Session, gateway_order_id: str, reason: str) -> Payment:
    """Record a gateway-reported failure. A successful payment is left as is."""
    payment = _find_payment(db, gateway_order_id)
    if payment is None:
        raise PaymentNotFoundError(gateway_order_id)

    if payment.status != PaymentStatus.PENDING.value:
        logger.warning(f"Ignoring failure report for payment in status {payment.status}: order_id={payment.order_id}")
        return payment

    payment.mark_failed(reason)
    db.commit()
    db.refresh(payment)

    logger.warning(f"Payment failed: order_id={payment.order_id}, reason={reason}")
    return payment


def get_payment_history(
    db: Session,
    user_id: int,
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
) -> Dict:
    page = max(1, page)
    limit = max(1, limit)
    query = db.query(Payment).filter(Payment.user_id == user_id)
    if status:
        query = query.filter(Payment.status == status)

    total = query.count()
    payments = (
        query.order_by(Payment.created_at.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "payments": payments,
        "total": total,
        "current_page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def handle_gateway_event(db: Session, event: Dict) -> Optional[object]:
    """
    Dispatch a verified gateway webhook event.

    payment_intent.succeeded activates the payment; payment_intent.payment_failed
    records the failure. Other event types are ignored.
    """
    event_type = event.get("type")
    data = event.get("data", {}).get("object", {})

    if event_type == "payment_intent.succeeded":
        intent_id = data.get("id")
        return activate_payment(
            db,
            gateway_order_id=intent_id,
            gateway_payment_id=intent_id,
            payment_method=(data.get("payment_method_types") or [None])[0],
        )

    if event_type == "payment_intent.payment_failed":
        error = data.get("last_payment_error") or {}
        return mark_payment_failed(db, data.get("id"), error.get("message") or "Payment failed")

    logger.info(f"Ignoring gateway event: type={event_type}, id={event.get('id')}")
    return None
