"""
Seed the default employer plans (Free, Basic, Premium, Enterprise).
Run: python -m scripts.seed_plans

Safe to run repeatedly: plans that already exist by name are left alone.
"""
import logging
import sys

from app.db.session import SessionLocal
from app.db.init_db import init_db
from app.services.plan_catalog import initialize_default_plans

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_plans() -> int:
    init_db()
    db = SessionLocal()
    try:
        created = initialize_default_plans(db)
        for plan in created:
            logger.info(f"Created plan: {plan.name} (ID: {plan.id})")
        return len(created)
    except Exception as e:
        db.rollback()
        logger.error(f"Error seeding plans: {e}", exc_info=True)
        raise
    finally:
        db.close()


if __name__ == "__main__":
    try:
        count = seed_plans()
    except Exception:
        print("\n[ERROR] Failed to seed plans")
        sys.exit(1)
    print(f"\n[SUCCESS] Seeded {count} new plan(s)")
