"""
Resume unlock registry.

A recruiter spends one resume credit per candidate, exactly once, no matter
how many times (or how concurrently) the unlock is requested. The unique
(recruiter_id, candidate_id) constraint decides races; only the request
whose insert succeeds consumes a credit, and the record and the credit are
committed together.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.db.models.unlocked_resume import UnlockedResume
from app.core.plan_limits import ActionKind
from app.services.subscription_service import (
    NO_SUBSCRIPTION_REASON,
    consume,
    get_active_subscription,
)

logger = logging.getLogger(__name__)

RESUME_CREDIT_COST = 1


@dataclass
class ResumeAccess:
    has_access: bool
    unlocked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


@dataclass
class UnlockResult:
    """
    Outcome of an unlock request.

    allowed=False carries the denial reason and means nothing was written.
    already_unlocked=True means no credit was spent by this call.
    """
    allowed: bool
    unlocked: Optional[UnlockedResume] = None
    already_unlocked: bool = False
    reason: Optional[str] = None
    credits_used: Optional[int] = None


def find_unlock(db: Session, recruiter_id: int, candidate_id: int) -> Optional[UnlockedResume]:
    return (
        db.query(UnlockedResume)
        .filter(
            UnlockedResume.recruiter_id == recruiter_id,
            UnlockedResume.candidate_id == candidate_id,
        )
        .first()
    )


def check_access(db: Session, recruiter_id: int, candidate_id: int) -> ResumeAccess:
    unlocked = find_unlock(db, recruiter_id, candidate_id)
    if not unlocked:
        return ResumeAccess(has_access=False)
    return ResumeAccess(
        has_access=unlocked.is_accessible(),
        unlocked_at=unlocked.unlocked_at,
        expires_at=unlocked.expires_at,
    )


def unlock(db: Session, recruiter_id: int, candidate_id: int, job_id: Optional[int] = None) -> UnlockResult:
    """
    Unlock a candidate's resume for a recruiter.

    Args:
        db: Database session
        recruiter_id: Recruiter spending the credit
        candidate_id: Candidate whose resume is unlocked
        job_id: Job the unlock relates to (context only)

    Returns:
        UnlockResult; denials (no subscription, credit limit) are results,
        not exceptions
    """
    existing = find_unlock(db, recruiter_id, candidate_id)
    if existing and existing.is_accessible():
        return UnlockResult(allowed=True, unlocked=existing, already_unlocked=True)

    subscription = get_active_subscription(db, recruiter_id)
    if not subscription:
        return UnlockResult(allowed=False, reason=NO_SUBSCRIPTION_REASON)

    # Insert first: the unique constraint is the only gate for spending a credit.
    record = UnlockedResume(
        recruiter_id=recruiter_id,
        candidate_id=candidate_id,
        job_id=job_id,
        credits_used=RESUME_CREDIT_COST,
    )
    try:
        db.add(record)
        db.flush()
    except IntegrityError:
        db.rollback()
        winner = find_unlock(db, recruiter_id, candidate_id)
        logger.info(f"Concurrent unlock resolved as already unlocked: recruiter_id={recruiter_id}, candidate_id={candidate_id}")
        return UnlockResult(allowed=True, unlocked=winner, already_unlocked=True)

    try:
        decision = consume(db, subscription, ActionKind.RESUME_CREDIT, RESUME_CREDIT_COST, commit=False)
        if not decision.allowed:
            db.rollback()
            return UnlockResult(allowed=False, reason=decision.reason)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(f"Resume unlock failed: recruiter_id={recruiter_id}, candidate_id={candidate_id}")
        raise

    db.refresh(record)
    db.refresh(subscription)
    logger.info(f"Resume unlocked: recruiter_id={recruiter_id} -> candidate_id={candidate_id}, job_id={job_id}")

    return UnlockResult(
        allowed=True,
        unlocked=record,
        credits_used=subscription.usage_for(ActionKind.RESUME_CREDIT),
    )


def list_unlocked_resumes(db: Session, recruiter_id: int, page: int = 1, limit: int = 10) -> Dict:
    """Paginated unlocks for a recruiter, newest first."""
    page = max(1, page)
    limit = max(1, limit)
    query = db.query(UnlockedResume).filter(UnlockedResume.recruiter_id == recruiter_id)
    total = query.count()
    items = (
        query.options(joinedload(UnlockedResume.candidate), joinedload(UnlockedResume.job))
        .order_by(UnlockedResume.unlocked_at.desc(), UnlockedResume.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "unlocked": items,
        "total": total,
        "current_page": page,
        "total_pages": (total + limit - 1) // limit,
    }
