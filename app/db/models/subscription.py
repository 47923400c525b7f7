"""
Subscription model: one entitlement term for one user.

Usage counters only grow within a term; they are zeroed by an explicit reset.
"""
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.db.base import Base
from app.core.plan_limits import ActionKind


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    ANNUAL = "annual"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    plan_id = Column(Integer, ForeignKey("employer_plans.id"), nullable=False)

    status = Column(String, nullable=False, default=SubscriptionStatus.PENDING.value)
    billing_cycle = Column(String, nullable=False)

    # Naive UTC timestamps; end_date is the authoritative expiry boundary
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, nullable=False, default=True)
    cancelled_at = Column(DateTime, nullable=True)

    usage_job_postings = Column(Integer, nullable=False, default=0)
    usage_featured_jobs = Column(Integer, nullable=False, default=0)
    usage_resume_credits = Column(Integer, nullable=False, default=0)

    # One subscription term per payment
    last_payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    plan = relationship("EmployerPlan")
    last_payment = relationship("Payment")

    __table_args__ = (
        Index("idx_subscription_user_status", "user_id", "status"),
        Index("idx_subscription_end_date", "end_date"),
    )

    def is_active_at(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.status == SubscriptionStatus.ACTIVE.value and self.end_date > now

    @property
    def is_active(self) -> bool:
        return self.is_active_at()

    def usage_for(self, kind: ActionKind) -> int:
        return getattr(self, kind.usage_field) or 0

    @property
    def usage(self) -> dict:
        return {kind.usage_key: self.usage_for(kind) for kind in ActionKind}

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
