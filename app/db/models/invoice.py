from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from app.db.base import Base


class Invoice(Base):
    """
    Immutable financial record, created 1:1 with a successful payment.
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String, unique=True, nullable=False)  # INV-YYYYMM-####
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, unique=True)

    items = Column(JSON, nullable=False, default=list)  # [{description, quantity, unit_price, amount}]
    subtotal = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=18)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    status = Column(String, nullable=False, default="paid")  # draft | sent | paid | cancelled
    paid_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    payment = relationship("Payment")

    __table_args__ = (
        Index("idx_invoice_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}')>"


class InvoiceSequence(Base):
    """Per-month invoice counter, incremented atomically in the database."""
    __tablename__ = "invoice_sequences"

    month_key = Column(String(6), primary_key=True)  # YYYYMM
    last_value = Column(Integer, nullable=False, default=0)

    @staticmethod
    def get_month_key(date: datetime = None) -> str:
        """Generate month_key string in YYYYMM format."""
        if date is None:
            date = datetime.utcnow()
        return date.strftime("%Y%m")
