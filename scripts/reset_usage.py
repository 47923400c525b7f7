"""
Zero the usage counters of one subscription.
Run: python -m scripts.reset_usage <subscription_id>
"""
import argparse
import logging
import sys

from app.db.session import SessionLocal
from app.core.errors import SubscriptionNotFoundError
from app.services.subscription_service import get_subscription, reset_usage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def reset_subscription_usage(subscription_id: int) -> dict:
    db = SessionLocal()
    try:
        subscription = get_subscription(db, subscription_id)
        logger.info(f"Usage before reset: subscription_id={subscription_id}, usage={subscription.usage}")
        return reset_usage(db, subscription).usage
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reset usage counters for a subscription")
    parser.add_argument("subscription_id", type=int)
    args = parser.parse_args()

    try:
        usage = reset_subscription_usage(args.subscription_id)
    except SubscriptionNotFoundError:
        print(f"\n[ERROR] Subscription {args.subscription_id} not found")
        sys.exit(1)
    print(f"\n[SUCCESS] Subscription {args.subscription_id} usage is now {usage}")
