"""
Database models module.

This module imports all database models to ensure they are registered with SQLAlchemy's Base.metadata
before table creation.

All models must be imported here to be included in database migrations and table creation.
"""
from app.db.models.user import User, UserRole
from app.db.models.employer_plan import EmployerPlan
from app.db.models.subscription import Subscription, SubscriptionStatus, BillingCycle
from app.db.models.unlocked_resume import UnlockedResume
from app.db.models.payment import Payment, PaymentStatus
from app.db.models.invoice import Invoice, InvoiceSequence
from app.db.models.refund import Refund, RefundStatus
from app.db.models.job import Job

__all__ = [
    "User",
    "UserRole",
    "EmployerPlan",
    "Subscription",
    "SubscriptionStatus",
    "BillingCycle",
    "UnlockedResume",
    "Payment",
    "PaymentStatus",
    "Invoice",
    "InvoiceSequence",
    "Refund",
    "RefundStatus",
    "Job",
]
