"""
Job posting and featured job endpoints.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.schemas.job import CreateJobRequest, FeatureJobRequest, JobEnvelope, JobListResponse, JobResponse
from app.services.featured_job_service import (
    feature_job,
    get_featured_jobs,
    get_my_featured_jobs,
    unfeature_job,
)
from app.services.job_posting_service import create_job_posting

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Jobs"])


def _denied(reason: str, **extra):
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"success": False, "message": reason, **extra}
    )


@router.post("/jobs", status_code=status.HTTP_201_CREATED, response_model=JobEnvelope)
def post_job(
    body: CreateJobRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    result = create_job_posting(db, user.id, body.title, body.company_name)
    if not result.allowed:
        _denied(result.reason)
    return {"success": True, "message": "Job posted successfully", "job": result.job}


@router.post("/featured-jobs", response_model=JobEnvelope)
def feature(
    body: FeatureJobRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    result = feature_job(db, user.id, body.job_id, body.duration, body.badge)
    if not result.allowed:
        if result.featured_until is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "success": False,
                    "message": result.reason,
                    "featured_until": result.featured_until.isoformat(),
                }
            )
        _denied(result.reason)
    return {
        "success": True,
        "message": "Job featured successfully",
        "job": result.job,
        "credits_used": result.credits_used,
    }


@router.delete("/featured-jobs/{job_id}", response_model=JobEnvelope)
def unfeature(
    job_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    job = unfeature_job(db, user.id, job_id)
    return {"success": True, "message": "Job unfeatured successfully", "job": job}


@router.get("/featured-jobs", response_model=JobListResponse)
def featured_jobs(limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    jobs = get_featured_jobs(db, limit)
    return {"success": True, "jobs": jobs, "count": len(jobs)}


@router.get("/featured-jobs/mine", response_model=JobListResponse)
def my_featured_jobs(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    jobs = get_my_featured_jobs(db, user.id)
    return {"success": True, "jobs": [JobResponse.model_validate(job) for job in jobs], "count": len(jobs)}
