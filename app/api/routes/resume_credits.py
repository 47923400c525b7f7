"""
Resume credit endpoints: access checks, unlocks and balance.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.schemas.resume_credit import (
    CreditBalanceResponse,
    ResumeAccessResponse,
    UnlockedResumeListResponse,
    UnlockedResumeResponse,
    UnlockResumeRequest,
    UnlockResumeResponse,
)
from app.services.resume_unlock_service import check_access, list_unlocked_resumes, unlock
from app.services.subscription_service import get_credit_balance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/resume-credits", tags=["Resume Credits"])


@router.get("/access/{candidate_id}", response_model=ResumeAccessResponse)
def resume_access(
    candidate_id: int,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    access = check_access(db, user.id, candidate_id)
    return {
        "success": True,
        "has_access": access.has_access,
        "unlocked_at": access.unlocked_at,
        "expires_at": access.expires_at,
    }


@router.post("/unlock", response_model=UnlockResumeResponse)
def unlock_resume(
    body: UnlockResumeRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    """
    Spend one resume credit to unlock a candidate's resume.

    Returns 201 on a new unlock, 200 when the resume was already unlocked
    (no credit spent) and 403 when the subscription does not allow it.
    """
    result = unlock(db, user.id, body.candidate_id, body.job_id)
    if not result.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"success": False, "message": result.reason}
        )

    unlocked = UnlockedResumeResponse.model_validate(result.unlocked).model_dump(mode="json") if result.unlocked else None
    if result.already_unlocked:
        return {"success": True, "message": "Resume already unlocked", "unlocked": unlocked}

    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Resume unlocked successfully",
            "unlocked": unlocked,
            "credits_used": result.credits_used,
        },
    )


@router.get("/unlocked", response_model=UnlockedResumeListResponse)
def unlocked_resumes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return {"success": True, **list_unlocked_resumes(db, user.id, page, limit)}


@router.get("/balance", response_model=CreditBalanceResponse)
def credit_balance(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db),
):
    return {"success": True, "credits": get_credit_balance(db, user.id)}
