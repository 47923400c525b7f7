"""
Pydantic schemas for job posting and featured job endpoints.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.config import DEFAULT_FEATURE_DURATION_DAYS


class CreateJobRequest(BaseModel):
    title: str = Field(..., min_length=1)
    company_name: str = Field(..., min_length=1)


class FeatureJobRequest(BaseModel):
    job_id: int
    duration: int = Field(DEFAULT_FEATURE_DURATION_DAYS, ge=1, le=365, description="Days to keep the job featured")
    badge: Optional[str] = None


class JobResponse(BaseModel):
    id: int
    title: str
    company_name: str
    created_by: int
    is_active: bool
    is_featured: bool
    featured_until: Optional[datetime] = None
    badge: Optional[str] = None

    class Config:
        from_attributes = True


class JobEnvelope(BaseModel):
    success: bool = True
    message: str
    job: JobResponse
    credits_used: Optional[int] = None


class JobListResponse(BaseModel):
    success: bool = True
    jobs: List[JobResponse]
    count: int
