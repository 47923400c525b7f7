"""
Pydantic schemas for usage endpoints.
"""
from datetime import datetime
from typing import Dict, Optional
from pydantic import BaseModel, Field


class ActionUsageDetail(BaseModel):
    """Usage details for a single gated action."""
    limit: Optional[int] = Field(None, description="Per-term limit (None for unlimited)")
    used: int = Field(..., description="Units consumed this term")
    remaining: Optional[int] = Field(None, description="Remaining quota (None for unlimited)")
    unlimited: bool = Field(..., description="Whether this action has unlimited quota")


class UsageResponse(BaseModel):
    """Response schema for GET /me/usage."""
    plan: Optional[str] = Field(None, description="Plan name, None without an active subscription")
    subscription_id: Optional[int] = None
    status: Optional[str] = None
    period_end: Optional[datetime] = None
    features: Dict[str, ActionUsageDetail] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "plan": "Basic",
                "subscription_id": 12,
                "status": "active",
                "period_end": "2026-11-18T10:00:00",
                "features": {
                    "jobPosting": {"limit": 20, "used": 3, "remaining": 17, "unlimited": False},
                    "featuredJob": {"limit": 10, "used": 1, "remaining": 9, "unlimited": False},
                    "resumeCredit": {"limit": None, "used": 40, "remaining": None, "unlimited": True}
                }
            }
        }
