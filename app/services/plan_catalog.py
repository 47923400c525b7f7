"""
Plan catalog lookups and admin plan management.

Plans are read live on every entitlement check, so an edit to a plan's
limits applies to existing subscribers from the next check on.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models.employer_plan import EmployerPlan
from app.db.models.subscription import Subscription, SubscriptionStatus
from app.core.errors import DuplicatePlanNameError, EntitlementError, PlanInUseError, PlanNotFoundError
from app.core.plan_limits import DEFAULT_PLANS, ActionKind

logger = logging.getLogger(__name__)


def find_plan(db: Session, plan_id: int) -> Optional[EmployerPlan]:
    """Return the plan or None."""
    if plan_id is None:
        return None
    return db.get(EmployerPlan, plan_id)


def get_plan(db: Session, plan_id: int) -> EmployerPlan:
    """
    Get a plan by id.

    Raises:
        PlanNotFoundError: If no plan has this id
    """
    plan = find_plan(db, plan_id)
    if plan is None:
        raise PlanNotFoundError(plan_id)
    return plan


def get_active_plans(db: Session) -> List[EmployerPlan]:
    """All plans currently offered, in display order."""
    return (
        db.query(EmployerPlan)
        .filter(EmployerPlan.is_active.is_(True))
        .order_by(EmployerPlan.sort_order)
        .all()
    )


def initialize_default_plans(db: Session) -> List[EmployerPlan]:
    """
    Seed the default plans, skipping any plan name that already exists.

    Returns:
        The plans created by this call
    """
    created = []
    for plan_data in DEFAULT_PLANS:
        exists = db.query(EmployerPlan).filter(EmployerPlan.name == plan_data["name"]).first()
        if exists:
            continue

        limits = plan_data["limits"]
        plan = EmployerPlan(
            name=plan_data["name"],
            display_name=plan_data["display_name"],
            description=plan_data["description"],
            price_monthly=plan_data["price_monthly"],
            price_annual=plan_data["price_annual"],
            sort_order=plan_data["sort_order"],
            is_popular=plan_data["is_popular"],
        )
        for kind in ActionKind:
            setattr(plan, kind.limit_field, limits[kind.usage_key])
        db.add(plan)
        created.append(plan)

    db.commit()
    for plan in created:
        db.refresh(plan)
        logger.info(f"Default plan created: {plan.name}")
    return created


PLAN_FIELDS = (
    "name", "display_name", "description", "price_monthly", "price_annual",
    "currency", "is_active", "sort_order", "is_popular",
)


def _parse_limits(limits: Optional[Dict[str, int]]) -> Dict[str, int]:
    parsed = {}
    for key, limit in (limits or {}).items():
        kind = ActionKind.from_usage_key(key)
        if kind is None:
            raise EntitlementError(f"Unknown limit: {key}")
        if not isinstance(limit, int) or limit < 0:
            raise EntitlementError(f"Invalid limit for {key}: {limit}")
        parsed[kind.limit_field] = limit
    return parsed


def _apply_plan_fields(plan: EmployerPlan, data: Dict[str, Any]):
    limits = _parse_limits(data.get("limits"))

    for field in PLAN_FIELDS:
        if data.get(field) is not None:
            value = data[field]
            if field.startswith("price_"):
                value = Decimal(str(value))
            setattr(plan, field, value)

    for field, limit in limits.items():
        setattr(plan, field, limit)


def _save_plan(db: Session, plan: EmployerPlan) -> EmployerPlan:
    name = plan.name
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicatePlanNameError(name)
    db.refresh(plan)
    return plan


def create_plan(db: Session, data: Dict[str, Any], admin_id: int = None) -> EmployerPlan:
    """
    Add a plan to the catalog.

    `data` holds the plan columns plus an optional `limits` dict keyed like
    EmployerPlan.limits; omitted limits default to 0 (unlimited).

    Raises:
        DuplicatePlanNameError: If another plan already has this name
    """
    if not data.get("name") or not data.get("display_name"):
        raise EntitlementError("Plan name and display name are required")

    plan = EmployerPlan()
    _apply_plan_fields(plan, data)
    db.add(plan)
    _save_plan(db, plan)

    logger.info(f"Plan created by admin {admin_id}: {plan.name}")
    return plan


def update_plan(db: Session, plan_id: int, updates: Dict[str, Any], admin_id: int = None) -> EmployerPlan:
    """
    Change a plan in place.

    Limit changes reach existing subscribers on their next entitlement check.

    Raises:
        PlanNotFoundError, DuplicatePlanNameError
    """
    plan = get_plan(db, plan_id)
    _apply_plan_fields(plan, updates)
    _save_plan(db, plan)

    logger.info(f"Plan updated by admin {admin_id}: {plan.name}, fields={sorted(updates)}")
    return plan


def delete_plan(db: Session, plan_id: int, admin_id: int = None) -> None:
    """
    Remove a plan nobody is subscribed to.

    Raises:
        PlanNotFoundError
        PlanInUseError: If active subscriptions or past payments still
            reference the plan
    """
    plan = get_plan(db, plan_id)

    active = (
        db.query(func.count(Subscription.id))
        .filter(
            Subscription.plan_id == plan_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
        )
        .scalar()
    )
    if active:
        raise PlanInUseError(plan_id, f"Cannot delete plan with {active} active subscriptions")

    name = plan.name
    try:
        db.delete(plan)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise PlanInUseError(plan_id, "Plan is referenced by past payments or subscriptions; deactivate it instead")

    logger.info(f"Plan deleted by admin {admin_id}: {name}")


def toggle_plan_status(db: Session, plan_id: int, admin_id: int = None) -> EmployerPlan:
    """Flip is_active. Inactive plans stay readable by id but are not offered."""
    plan = get_plan(db, plan_id)
    plan.is_active = not plan.is_active
    db.commit()
    db.refresh(plan)

    logger.info(f"Plan {'activated' if plan.is_active else 'deactivated'} by admin {admin_id}: {plan.name}")
    return plan


def compare_plans(db: Session, plan_ids: Optional[List[int]] = None) -> Dict[str, Any]:
    """Active plans side by side, optionally narrowed to `plan_ids`."""
    query = db.query(EmployerPlan).filter(EmployerPlan.is_active.is_(True))
    if plan_ids:
        query = query.filter(EmployerPlan.id.in_(plan_ids))
    return {
        "plans": query.order_by(EmployerPlan.sort_order).all(),
        "features": [kind.usage_key for kind in ActionKind],
    }
