"""
Job posting creation, metered against the poster's subscription.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.db.models.job import Job
from app.core.plan_limits import ActionKind
from app.services.subscription_service import NO_SUBSCRIPTION_REASON, consume, get_active_subscription

logger = logging.getLogger(__name__)


@dataclass
class JobPostingResult:
    allowed: bool
    job: Optional[Job] = None
    reason: Optional[str] = None


def create_job_posting(db: Session, user_id: int, title: str, company_name: str) -> JobPostingResult:
    """Spend one job-posting unit and create the job in the same transaction."""
    subscription = get_active_subscription(db, user_id)
    if not subscription:
        return JobPostingResult(allowed=False, reason=NO_SUBSCRIPTION_REASON)

    try:
        decision = consume(db, subscription, ActionKind.JOB_POSTING, 1, commit=False)
        if not decision.allowed:
            db.rollback()
            return JobPostingResult(allowed=False, reason=decision.reason)

        job = Job(title=title, company_name=company_name, created_by=user_id)
        db.add(job)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Job posting failed: user_id={user_id}")
        raise

    db.refresh(job)
    logger.info(f"Job posted: job_id={job.id}, user_id={user_id}, title={title}")
    return JobPostingResult(allowed=True, job=job)
