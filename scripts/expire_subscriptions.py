"""
Mark every active subscription past its end date as expired.
Run: python -m scripts.expire_subscriptions

Meant to be scheduled (cron or similar); one run is one sweep.
"""
import logging
import sys

from app.db.session import SessionLocal
from app.services.subscription_service import expire_overdue_subscriptions

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        return expire_overdue_subscriptions(db)
    finally:
        db.close()


if __name__ == "__main__":
    try:
        expired = main()
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        sys.exit(1)
    print(f"\n[SUCCESS] Expired {expired} subscription(s)")
