"""
Read access to a user's invoices.

Invoices are only ever created by payment activation; nothing here writes.
"""
import logging
from typing import Dict

from sqlalchemy.orm import Session, joinedload

from app.db.models.invoice import Invoice
from app.core.errors import ForbiddenError, InvoiceNotFoundError

logger = logging.getLogger(__name__)


def list_invoices(db: Session, user_id: int, page: int = 1, limit: int = 10) -> Dict:
    """The user's invoices, newest first, with their payment loaded."""
    page = max(1, page)
    limit = max(1, limit)
    query = db.query(Invoice).filter(Invoice.user_id == user_id)

    total = query.count()
    invoices = (
        query.options(joinedload(Invoice.payment))
        .order_by(Invoice.created_at.desc(), Invoice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "invoices": invoices,
        "total": total,
        "current_page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def get_invoice(db: Session, user_id: int, invoice_id: int) -> Invoice:
    """
    Get one of the user's invoices.

    Raises:
        InvoiceNotFoundError: If no invoice has this id
        ForbiddenError: If the invoice belongs to another user
    """
    invoice = (
        db.query(Invoice)
        .options(joinedload(Invoice.payment))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if invoice is None:
        raise InvoiceNotFoundError(invoice_id)

    if invoice.user_id != user_id:
        logger.warning(f"Invoice access denied: invoice_id={invoice_id}, user_id={user_id}")
        raise ForbiddenError("Unauthorized")

    return invoice
