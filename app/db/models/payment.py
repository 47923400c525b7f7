"""
Payment model: one gateway order and its outcome.

The pending -> success transition is the only trigger for creating a
subscription term.
"""
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String, unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("employer_plans.id"), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="INR")
    status = Column(String, nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String, nullable=False, default="card")  # card | netbanking | upi | wallet | other
    payment_gateway = Column(String, nullable=False, default="stripe")
    billing_cycle = Column(String, nullable=True)  # monthly | annual | one-time

    gateway_order_id = Column(String, unique=True, nullable=True)
    gateway_payment_id = Column(String, nullable=True, index=True)
    gateway_signature = Column(String, nullable=True)

    failure_reason = Column(String, nullable=True)
    refund_id = Column(String, nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan = relationship("EmployerPlan")

    __table_args__ = (
        Index("idx_payment_user_status", "user_id", "status"),
        Index("idx_payment_created", "created_at"),
    )

    # The mark_* helpers mutate only; the caller owns the commit.
    def mark_success(self, gateway_payment_id: str, signature: str = None, payment_method: str = None):
        self.status = PaymentStatus.SUCCESS.value
        self.gateway_payment_id = gateway_payment_id
        self.gateway_signature = signature
        if payment_method:
            self.payment_method = payment_method

    def mark_failed(self, reason: str):
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason

    def mark_refunded(self, refund_id: str, amount):
        self.status = PaymentStatus.REFUNDED.value
        self.refund_id = refund_id
        self.refund_amount = amount
        self.refunded_at = datetime.utcnow()

    def __repr__(self):
        return f"<Payment(id={self.id}, order_id='{self.order_id}', status='{self.status}')>"
