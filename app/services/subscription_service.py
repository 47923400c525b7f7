"""
Entitlement ledger and credit consumption engine.

Handles the active-subscription lookup, allow/deny decisions for gated
actions, usage recording and the subscription state transitions.

Denials are returned as EntitlementDecision values, never raised: callers
branch on them routinely. consume() is the race-free path every call site
uses; can_perform_action() + increment_usage() remain available as the
side-effect-free check and the unconditional write.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional, Union

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from app.db.models.subscription import Subscription, SubscriptionStatus
from app.core.errors import InvalidSubscriptionStateError, SubscriptionNotFoundError
from app.core.plan_limits import ActionKind, is_unlimited
from app.services.plan_catalog import find_plan

logger = logging.getLogger(__name__)

NOT_ACTIVE_REASON = "Subscription is not active"
PLAN_NOT_FOUND_REASON = "Plan not found"
UNKNOWN_ACTION_REASON = "Unknown action"
NO_SUBSCRIPTION_REASON = "No active subscription"

UNLIMITED_LABEL = "Unlimited"


@dataclass
class EntitlementDecision:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        if data["reason"] is None:
            del data["reason"]
        return data


ALLOWED = EntitlementDecision(allowed=True)


def limit_reached_reason(kind: ActionKind, used: int, limit: int) -> str:
    """User-facing denial text, e.g. 'Job posting limit reached (3/5)'."""
    return f"{kind.label} limit reached ({used}/{limit})"


def _check_count(count: int):
    if not isinstance(count, int) or count < 1:
        raise ValueError("count must be a positive integer")


def get_active_subscription(db: Session, user_id: int, now: datetime = None) -> Optional[Subscription]:
    """
    Get the user's current subscription term, with its plan loaded.

    Returns None when the user has no active, unexpired subscription;
    that is a normal state, not an error.
    """
    now = now or datetime.utcnow()
    return (
        db.query(Subscription)
        .options(joinedload(Subscription.plan))
        .filter(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date > now,
        )
        .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        .first()
    )


def get_subscription(db: Session, subscription_id: int) -> Subscription:
    subscription = db.get(Subscription, subscription_id)
    if subscription is None:
        raise SubscriptionNotFoundError(subscription_id)
    return subscription


def can_perform_action(
    db: Session,
    subscription: Subscription,
    action: Union[ActionKind, str],
    count: int = 1,
    now: datetime = None,
) -> EntitlementDecision:
    """
    Decide whether the subscription may perform `count` units of `action`.

    Pure predicate: usage is never modified here. Checks run in order:
    subscription active, plan resolvable, action known, then the limit.
    """
    _check_count(count)

    if not subscription.is_active_at(now):
        return EntitlementDecision(False, NOT_ACTIVE_REASON)

    plan = find_plan(db, subscription.plan_id)
    if plan is None:
        return EntitlementDecision(False, PLAN_NOT_FOUND_REASON)

    kind = ActionKind.parse(action)
    if kind is None:
        return EntitlementDecision(False, UNKNOWN_ACTION_REASON)

    limit = plan.limit_for(kind)
    if is_unlimited(limit):
        return ALLOWED

    used = subscription.usage_for(kind)
    if used + count <= limit:
        return ALLOWED

    return EntitlementDecision(False, limit_reached_reason(kind, used, limit))


def increment_usage(
    db: Session,
    subscription: Subscription,
    action: Union[ActionKind, str],
    count: int = 1,
) -> Subscription:
    """
    Add `count` to the matching usage counter and persist.

    Does not re-validate the limit; only call after an allowed decision.
    The increment is issued as `usage = usage + count` so concurrent
    writers never lose each other's updates.
    """
    _check_count(count)
    kind = ActionKind.parse(action)
    if kind is None:
        logger.warning(f"Ignoring usage increment for unknown action: subscription_id={subscription.id}, action={action}")
        return subscription

    column = getattr(Subscription, kind.usage_field)
    setattr(subscription, kind.usage_field, column + count)
    db.commit()
    db.refresh(subscription)

    logger.info(
        f"Usage incremented: subscription_id={subscription.id}, action={kind.value}, "
        f"count={count}, used={subscription.usage_for(kind)}"
    )
    return subscription


def consume(
    db: Session,
    subscription: Subscription,
    action: Union[ActionKind, str],
    count: int = 1,
    commit: bool = True,
    now: datetime = None,
) -> EntitlementDecision:
    """
    Check quota and consume usage in one conditional UPDATE.

    The storage layer evaluates "usage + count <= limit" and applies the
    increment in the same statement, so concurrent requests cannot both
    pass against a stale counter.

    Args:
        db: Database session
        subscription: Subscription to charge
        action: Action kind (jobPosting, featuredJob, resumeCredit)
        count: Units to consume (default: 1)
        commit: Commit immediately; pass False to fold the consumption into
            the caller's transaction
        now: Evaluation time (defaults to utcnow)

    Returns:
        EntitlementDecision; on denial nothing was written
    """
    _check_count(count)
    now = now or datetime.utcnow()

    precheck = can_perform_action(db, subscription, action, count, now)
    if not precheck.allowed:
        logger.info(
            f"Consumption denied: subscription_id={subscription.id}, action={action}, "
            f"count={count}, reason={precheck.reason}"
        )
        return precheck

    kind = ActionKind.parse(action)
    limit = find_plan(db, subscription.plan_id).limit_for(kind)
    column = getattr(Subscription, kind.usage_field)

    stmt = update(Subscription).where(
        Subscription.id == subscription.id,
        Subscription.status == SubscriptionStatus.ACTIVE.value,
        Subscription.end_date > now,
    )
    if not is_unlimited(limit):
        stmt = stmt.where(column + count <= limit)
    stmt = stmt.values({kind.usage_field: column + count}).execution_options(synchronize_session=False)

    result = db.execute(stmt)
    db.refresh(subscription)

    if result.rowcount != 1:
        # Lost a race since the precheck; report from fresh state.
        decision = can_perform_action(db, subscription, kind, count, now)
        if decision.allowed:
            decision = EntitlementDecision(False, limit_reached_reason(kind, subscription.usage_for(kind), limit))
        logger.warning(
            f"Consumption denied at write: subscription_id={subscription.id}, action={kind.value}, "
            f"count={count}, reason={decision.reason}"
        )
        return decision

    if commit:
        db.commit()
        db.refresh(subscription)

    used = subscription.usage_for(kind)
    logger.info(
        f"Usage consumed: subscription_id={subscription.id}, user_id={subscription.user_id}, "
        f"action={kind.value}, count={count}, used={used}/{limit if limit else 'unlimited'}"
    )
    return ALLOWED


def reset_usage(db: Session, subscription: Subscription) -> Subscription:
    """Zero every usage counter, e.g. when a new billing period starts."""
    for kind in ActionKind:
        setattr(subscription, kind.usage_field, 0)
    db.commit()
    db.refresh(subscription)

    logger.info(f"Usage reset: subscription_id={subscription.id}, user_id={subscription.user_id}")
    return subscription


def cancel_subscription(db: Session, subscription: Subscription, now: datetime = None) -> Subscription:
    """
    User-initiated cancellation. Terminal.

    Raises:
        InvalidSubscriptionStateError: If the subscription already ended
    """
    if subscription.status not in (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.PENDING.value):
        raise InvalidSubscriptionStateError(subscription.status, SubscriptionStatus.CANCELLED.value)

    subscription.status = SubscriptionStatus.CANCELLED.value
    subscription.cancelled_at = now or datetime.utcnow()
    subscription.auto_renew = False
    db.commit()
    db.refresh(subscription)

    logger.info(f"Subscription cancelled: subscription_id={subscription.id}, user_id={subscription.user_id}")
    return subscription


def expire_overdue_subscriptions(db: Session, now: datetime = None) -> int:
    """
    Move every active subscription whose end_date has passed to expired.

    Intended for a periodic job.

    Returns:
        Number of subscriptions expired
    """
    now = now or datetime.utcnow()
    stmt = (
        update(Subscription)
        .where(
            Subscription.status == SubscriptionStatus.ACTIVE.value,
            Subscription.end_date <= now,
        )
        .values(status=SubscriptionStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Expiry sweep failed")
        raise

    expired = result.rowcount or 0
    logger.info(f"Expired overdue subscriptions: count={expired}, as_of={now.isoformat()}")
    return expired


def get_credit_balance(db: Session, user_id: int) -> Dict:
    """
    Resume credit balance for the user's active subscription.

    remaining is "Unlimited" when the plan's limit is 0.
    """
    subscription = get_active_subscription(db, user_id)
    if not subscription or subscription.plan is None:
        return {"total": 0, "used": 0, "remaining": 0}

    total = subscription.plan.limit_for(ActionKind.RESUME_CREDIT)
    used = subscription.usage_for(ActionKind.RESUME_CREDIT)
    return {
        "total": total,
        "used": used,
        "remaining": UNLIMITED_LABEL if is_unlimited(total) else max(0, total - used),
    }


def get_usage_summary(db: Session, user_id: int) -> Dict:
    """
    Per-action usage data for GET /me/usage.

    Returns:
        Dictionary with plan, subscription status, period end and per-action
        limit/used/remaining/unlimited
    """
    subscription = get_active_subscription(db, user_id)
    if not subscription or subscription.plan is None:
        return {
            "plan": None,
            "subscription_id": None,
            "status": None,
            "period_end": None,
            "features": {},
        }

    plan = subscription.plan
    features = {}
    for kind in ActionKind:
        limit = plan.limit_for(kind)
        used = subscription.usage_for(kind)
        unlimited = is_unlimited(limit)
        features[kind.value] = {
            "limit": None if unlimited else limit,
            "used": used,
            "remaining": None if unlimited else max(0, limit - used),
            "unlimited": unlimited,
        }

    return {
        "plan": plan.name,
        "subscription_id": subscription.id,
        "status": subscription.status,
        "period_end": subscription.current_period_end or subscription.end_date,
        "features": features,
    }
