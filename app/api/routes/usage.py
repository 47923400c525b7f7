"""
Usage tracking endpoints.

Provides usage statistics and quota information for authenticated users.
"""
import logging
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj
from app.schemas.usage import UsageResponse
from app.services.subscription_service import get_usage_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/me", tags=["Usage"])


@router.get("/usage", status_code=status.HTTP_200_OK, response_model=UsageResponse)
def get_usage(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Current-term usage for the authenticated user.
    
    Returns:
    - plan: Plan name (None without an active subscription)
    - features: per action kind limit, used, remaining, unlimited
    """
    usage_data = get_usage_summary(db, user.id)
    
    logger.debug(f"Usage summary requested: user_id={user.id}, plan={usage_data['plan']}")
    
    return usage_data
