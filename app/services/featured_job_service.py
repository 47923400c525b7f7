"""
Featured job slots.

Featuring a job spends one featured-job unit from the owner's active
subscription. The job row is claimed with a conditional UPDATE before the
unit is consumed, and both are committed together.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.db.models.job import Job
from app.core.config import DEFAULT_FEATURE_DURATION_DAYS
from app.core.errors import JobNotFoundError, JobOwnershipError
from app.core.plan_limits import ActionKind
from app.services.subscription_service import consume, get_active_subscription

logger = logging.getLogger(__name__)

ALREADY_FEATURED_REASON = "Job is already featured"
NO_SUBSCRIPTION_REASON = "No active subscription. Please upgrade your plan to feature jobs."


@dataclass
class FeatureResult:
    allowed: bool
    job: Optional[Job] = None
    reason: Optional[str] = None
    featured_until: Optional[datetime] = None
    credits_used: Optional[int] = None


def _get_owned_job(db: Session, user_id: int, job_id: int, message: str) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    if job.created_by != user_id:
        raise JobOwnershipError(message)
    return job


def feature_job(
    db: Session,
    user_id: int,
    job_id: int,
    duration_days: int = DEFAULT_FEATURE_DURATION_DAYS,
    badge: Optional[str] = None,
    now: datetime = None,
) -> FeatureResult:
    """
    Feature one of the user's jobs for `duration_days`.

    Raises:
        JobNotFoundError: If the job does not exist
        JobOwnershipError: If the job belongs to someone else
    """
    now = now or datetime.utcnow()
    job = _get_owned_job(db, user_id, job_id, "You can only feature your own jobs")

    if job.is_currently_featured(now):
        return FeatureResult(allowed=False, job=job, reason=ALREADY_FEATURED_REASON, featured_until=job.featured_until)

    subscription = get_active_subscription(db, user_id, now)
    if not subscription:
        return FeatureResult(allowed=False, job=job, reason=NO_SUBSCRIPTION_REASON)

    featured_until = now + timedelta(days=duration_days)
    values = {"is_featured": True, "featured_until": featured_until}
    if badge:
        values["badge"] = badge
    claim = (
        update(Job)
        .where(
            Job.id == job_id,
            or_(Job.is_featured.is_(False), Job.featured_until.is_(None), Job.featured_until <= now),
        )
        .values(values)
        .execution_options(synchronize_session=False)
    )

    try:
        # Claim the slot first; only the request that flips the row spends a unit.
        if db.execute(claim).rowcount != 1:
            db.rollback()
            db.refresh(job)
            return FeatureResult(allowed=False, job=job, reason=ALREADY_FEATURED_REASON, featured_until=job.featured_until)

        decision = consume(db, subscription, ActionKind.FEATURED_JOB, 1, commit=False, now=now)
        if not decision.allowed:
            db.rollback()
            db.refresh(job)
            return FeatureResult(allowed=False, job=job, reason=decision.reason)

        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Feature job failed: job_id={job_id}, user_id={user_id}")
        raise

    db.refresh(job)
    db.refresh(subscription)
    logger.info(f"Job featured: job_id={job_id}, user_id={user_id}, until={job.featured_until.isoformat()}")

    return FeatureResult(
        allowed=True,
        job=job,
        featured_until=job.featured_until,
        credits_used=subscription.usage_for(ActionKind.FEATURED_JOB),
    )


def unfeature_job(db: Session, user_id: int, job_id: int) -> Job:
    """Remove the featured flag. Spent units are not returned."""
    job = _get_owned_job(db, user_id, job_id, "Unauthorized")
    job.is_featured = False
    job.featured_until = None
    job.badge = None
    db.commit()
    db.refresh(job)

    logger.info(f"Job unfeatured: job_id={job_id}, user_id={user_id}")
    return job


def get_featured_jobs(db: Session, limit: int = 10, now: datetime = None) -> List[Job]:
    now = now or datetime.utcnow()
    return (
        db.query(Job)
        .filter(
            Job.is_featured.is_(True),
            Job.featured_until > now,
            Job.is_active.is_(True),
        )
        .order_by(Job.featured_until.desc())
        .limit(max(1, limit))
        .all()
    )


def get_my_featured_jobs(db: Session, user_id: int) -> List[Job]:
    return (
        db.query(Job)
        .filter(Job.created_by == user_id, Job.is_featured.is_(True))
        .order_by(Job.featured_until.desc())
        .all()
    )
