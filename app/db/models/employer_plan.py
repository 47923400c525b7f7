"""
EmployerPlan model: what a subscription tier grants.

Limits are per billing term; 0 means unlimited.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from app.db.base import Base
from app.core.plan_limits import ActionKind


class EmployerPlan(Base):
    __tablename__ = "employer_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)  # Free | Basic | Premium | Enterprise
    display_name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")

    price_monthly = Column(Numeric(12, 2), nullable=False, default=0)
    price_annual = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")

    limit_job_postings = Column(Integer, nullable=False, default=0)
    limit_featured_jobs = Column(Integer, nullable=False, default=0)
    limit_resume_credits = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_popular = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def price_for(self, billing_cycle: str):
        return self.price_annual if billing_cycle == "annual" else self.price_monthly

    def limit_for(self, kind: ActionKind) -> int:
        return getattr(self, kind.limit_field) or 0

    @property
    def price(self) -> dict:
        return {"monthly": self.price_monthly, "annual": self.price_annual}

    @property
    def limits(self) -> dict:
        return {kind.usage_key: self.limit_for(kind) for kind in ActionKind}

    def __repr__(self):
        return f"<EmployerPlan(id={self.id}, name='{self.name}')>"
