"""
Pydantic schemas for plan and subscription endpoints.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.core.plan_limits import ActionKind


class PlanPrice(BaseModel):
    monthly: float = Field(..., description="Price per monthly billing cycle")
    annual: float = Field(..., description="Price per annual billing cycle")


class PlanResponse(BaseModel):
    """A plan as shown on the pricing page."""
    id: int
    name: str
    display_name: str
    description: str
    price: PlanPrice
    currency: str
    limits: Dict[str, int] = Field(..., description="Per-term limits; 0 means unlimited")
    is_popular: bool
    sort_order: int
    is_active: bool = True

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "id": 2,
                "name": "Basic",
                "display_name": "Basic Plan",
                "description": "For growing companies hiring regularly",
                "price": {"monthly": 49, "annual": 490},
                "currency": "INR",
                "limits": {"jobPostings": 20, "featuredJobs": 10, "resumeCredits": 25},
                "is_popular": True,
                "sort_order": 2
            }
        }


class PlanListResponse(BaseModel):
    success: bool = True
    plans: List[PlanResponse]


def _check_limits(limits: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
    for key, value in (limits or {}).items():
        if ActionKind.from_usage_key(key) is None:
            raise ValueError(f"Unknown limit: {key}")
        if value < 0:
            raise ValueError(f"Limit for {key} must be 0 (unlimited) or positive")
    return limits


class PlanCreateRequest(BaseModel):
    """Admin request to add a plan."""
    name: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    price_monthly: float = Field(0, ge=0)
    price_annual: float = Field(0, ge=0)
    currency: str = Field("INR", min_length=3, max_length=3)
    limits: Dict[str, int] = Field(default_factory=dict, description="Per-term limits; 0 means unlimited")
    is_active: bool = True
    sort_order: int = 0
    is_popular: bool = False

    @field_validator("limits")
    @classmethod
    def validate_limits(cls, v):
        return _check_limits(v)

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Startup",
                "display_name": "Startup Plan",
                "price_monthly": 29,
                "price_annual": 290,
                "limits": {"jobPostings": 10, "featuredJobs": 2, "resumeCredits": 10}
            }
        }


class PlanUpdateRequest(BaseModel):
    """Admin request to change a plan; omitted fields are left as they are."""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price_monthly: Optional[float] = Field(None, ge=0)
    price_annual: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    limits: Optional[Dict[str, int]] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None
    is_popular: Optional[bool] = None

    @field_validator("limits")
    @classmethod
    def validate_limits(cls, v):
        return _check_limits(v)


class PlanEnvelope(BaseModel):
    success: bool = True
    message: str
    plan: PlanResponse


class PlanCompareResponse(BaseModel):
    success: bool = True
    plans: List[PlanResponse]
    features: List[str]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SubscriptionResponse(BaseModel):
    id: int
    plan_id: int
    status: str
    billing_cycle: str
    start_date: datetime
    end_date: datetime
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    auto_renew: bool
    usage: Dict[str, int]
    last_payment_id: Optional[int] = None

    class Config:
        from_attributes = True


class CurrentSubscriptionResponse(BaseModel):
    success: bool = True
    subscription: Optional[SubscriptionResponse] = None
    message: Optional[str] = None


class CheckUsageRequest(BaseModel):
    """Request schema for a dry-run entitlement check."""
    action: str = Field(..., description="jobPosting, featuredJob or resumeCredit")
    count: int = Field(1, ge=1, description="Units the caller intends to consume")

    class Config:
        json_schema_extra = {
            "example": {"action": "resumeCredit", "count": 1}
        }


class EntitlementDecisionResponse(BaseModel):
    success: bool
    allowed: bool
    reason: Optional[str] = None
