"""
Refund requests and their admin processing.

Approving a refund calls the payment gateway before touching local state:
if the gateway call fails, the refund request and the payment stay exactly
as they were.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.db.models.payment import Payment, PaymentStatus
from app.db.models.refund import Refund, RefundStatus, REFUND_REASONS
from app.core.errors import (
    EntitlementError,
    ForbiddenError,
    InvalidRefundActionError,
    PaymentNotFoundError,
    PaymentNotRefundableError,
    RefundNotFoundError,
)

logger = logging.getLogger(__name__)


def request_refund(
    db: Session,
    user_id: int,
    payment_id: int,
    reason: str,
    description: Optional[str] = None,
) -> Refund:
    """
    Open a refund request for one of the user's successful payments.

    Raises:
        PaymentNotFoundError, ForbiddenError, PaymentNotRefundableError
    """
    if reason not in REFUND_REASONS:
        raise EntitlementError(f"Invalid refund reason: {reason}")

    payment = db.get(Payment, payment_id)
    if payment is None:
        raise PaymentNotFoundError(payment_id)

    if payment.user_id != user_id:
        raise ForbiddenError("Unauthorized")

    if payment.status != PaymentStatus.SUCCESS.value:
        raise PaymentNotRefundableError("Payment cannot be refunded")

    if db.query(Refund).filter(Refund.payment_id == payment_id).first():
        raise PaymentNotRefundableError("Refund request already exists")

    refund = Refund(
        payment_id=payment_id,
        user_id=user_id,
        amount=payment.amount,
        reason=reason,
        description=description,
    )
    db.add(refund)
    db.commit()
    db.refresh(refund)

    logger.info(f"Refund requested: refund_id={refund.id}, payment_id={payment_id}, user_id={user_id}")
    return refund


def process_refund(
    db: Session,
    refund_id: int,
    admin_id: int,
    action: str,
    gateway,
    admin_notes: Optional[str] = None,
) -> Refund:
    """
    Approve or reject a pending refund request.

    Raises:
        RefundNotFoundError, PaymentNotRefundableError,
        InvalidRefundActionError, GatewayError
    """
    refund = db.get(Refund, refund_id)
    if refund is None:
        raise RefundNotFoundError(refund_id)

    if refund.status != RefundStatus.PENDING.value:
        raise PaymentNotRefundableError("Refund already processed")

    if action == "approve":
        payment = refund.payment
        gateway_refund = gateway.refund(payment.gateway_payment_id or payment.gateway_order_id, refund.amount)

        now = datetime.utcnow()
        refund.status = RefundStatus.PROCESSED.value
        refund.gateway_refund_id = gateway_refund["id"]
        refund.processed_by = admin_id
        refund.processed_at = now
        refund.admin_notes = admin_notes
        payment.mark_refunded(gateway_refund["id"], refund.amount)
        try:
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                f"Gateway refund {gateway_refund['id']} succeeded but local update failed: refund_id={refund_id}"
            )
            raise

        logger.info(f"Refund processed: refund_id={refund_id}, admin_id={admin_id}, gateway_refund_id={gateway_refund['id']}")

    elif action == "reject":
        refund.status = RefundStatus.REJECTED.value
        refund.processed_by = admin_id
        refund.processed_at = datetime.utcnow()
        refund.rejection_reason = admin_notes
        db.commit()

        logger.info(f"Refund rejected: refund_id={refund_id}, admin_id={admin_id}")

    else:
        raise InvalidRefundActionError(action)

    db.refresh(refund)
    return refund


def list_refunds(db: Session, status: Optional[str] = None, page: int = 1, limit: int = 10):
    page = max(1, page)
    limit = max(1, limit)
    query = db.query(Refund)
    if status:
        query = query.filter(Refund.status == status)
    total = query.count()
    refunds = (
        query.order_by(Refund.created_at.desc(), Refund.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "refunds": refunds,
        "total": total,
        "current_page": page,
        "total_pages": (total + limit - 1) // limit,
    }
