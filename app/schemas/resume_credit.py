"""
Pydantic schemas for resume credit endpoints.
"""
from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, Field


class UnlockResumeRequest(BaseModel):
    candidate_id: int
    job_id: Optional[int] = Field(None, description="Job the unlock is for (context only)")


class UnlockedResumeResponse(BaseModel):
    id: int
    recruiter_id: int
    candidate_id: int
    job_id: Optional[int] = None
    credits_used: int
    unlocked_at: datetime
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UnlockResumeResponse(BaseModel):
    success: bool = True
    message: str
    unlocked: Optional[UnlockedResumeResponse] = None
    credits_used: Optional[int] = None


class ResumeAccessResponse(BaseModel):
    success: bool = True
    has_access: bool
    unlocked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class UnlockedResumeListResponse(BaseModel):
    success: bool = True
    unlocked: List[UnlockedResumeResponse]
    total: int
    current_page: int
    total_pages: int


class CreditBalance(BaseModel):
    total: int
    used: int
    remaining: Union[int, str] = Field(..., description="Remaining credits, or 'Unlimited'")


class CreditBalanceResponse(BaseModel):
    success: bool = True
    credits: CreditBalance

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "credits": {"total": 25, "used": 4, "remaining": 21}
            }
        }
