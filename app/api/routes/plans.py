"""
Plan catalog, admin plan management and subscription endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.db.models.user import User
from app.core.auth_dependency import get_current_user_obj, require_admin
from app.schemas.plan import (
    CheckUsageRequest,
    CurrentSubscriptionResponse,
    EntitlementDecisionResponse,
    MessageResponse,
    PlanCompareResponse,
    PlanCreateRequest,
    PlanEnvelope,
    PlanListResponse,
    PlanResponse,
    PlanUpdateRequest,
    SubscriptionResponse,
)
from app.services.plan_catalog import (
    compare_plans,
    create_plan,
    delete_plan,
    get_active_plans,
    get_plan,
    toggle_plan_status,
    update_plan,
)
from app.services.subscription_service import (
    NO_SUBSCRIPTION_REASON,
    can_perform_action,
    cancel_subscription,
    get_active_subscription,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["Plans"])


@router.get("", response_model=PlanListResponse)
def list_plans(db: Session = Depends(get_db)):
    """All plans currently offered, in display order."""
    return {"success": True, "plans": get_active_plans(db)}


@router.get("/compare", response_model=PlanCompareResponse)
def compare(
    plan_ids: Optional[str] = Query(None, description="Comma-separated plan ids"),
    db: Session = Depends(get_db)
):
    ids = None
    if plan_ids:
        try:
            ids = [int(part) for part in plan_ids.split(",") if part.strip()]
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"success": False, "message": "plan_ids must be comma-separated integers"}
            )
    return {"success": True, **compare_plans(db, ids)}


@router.get("/subscription/current", response_model=CurrentSubscriptionResponse)
def current_subscription(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    subscription = get_active_subscription(db, user.id)
    if not subscription:
        return {"success": True, "subscription": None, "message": NO_SUBSCRIPTION_REASON}
    return {"success": True, "subscription": SubscriptionResponse.model_validate(subscription)}


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
def cancel_current_subscription(
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    subscription = get_active_subscription(db, user.id)
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_SUBSCRIPTION_REASON)
    return cancel_subscription(db, subscription)


@router.post("/usage/check", response_model=EntitlementDecisionResponse)
def check_usage_limit(
    body: CheckUsageRequest,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """
    Dry-run entitlement check. Never consumes usage.
    """
    subscription = get_active_subscription(db, user.id)
    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"success": False, "message": NO_SUBSCRIPTION_REASON}
        )

    decision = can_perform_action(db, subscription, body.action, body.count)
    return {"success": decision.allowed, **decision.to_dict()}


@router.get("/{plan_id}", response_model=PlanResponse)
def get_plan_by_id(plan_id: int, db: Session = Depends(get_db)):
    return get_plan(db, plan_id)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PlanEnvelope)
def create_new_plan(
    body: PlanCreateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    plan = create_plan(db, body.model_dump(), admin_id=admin.id)
    return {"success": True, "message": "Plan created successfully", "plan": plan}


@router.put("/{plan_id}", response_model=PlanEnvelope)
def update_existing_plan(
    plan_id: int,
    body: PlanUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Edit a plan. Limit changes apply to current subscribers immediately.
    """
    plan = update_plan(db, plan_id, body.model_dump(exclude_unset=True), admin_id=admin.id)
    return {"success": True, "message": "Plan updated successfully", "plan": plan}


@router.delete("/{plan_id}", response_model=MessageResponse)
def remove_plan(
    plan_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    delete_plan(db, plan_id, admin_id=admin.id)
    return {"success": True, "message": "Plan deleted successfully"}


@router.patch("/{plan_id}/toggle", response_model=PlanEnvelope)
def toggle_plan(
    plan_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
):
    plan = toggle_plan_status(db, plan_id, admin_id=admin.id)
    message = "Plan activated" if plan.is_active else "Plan deactivated"
    return {"success": True, "message": message, "plan": plan}
