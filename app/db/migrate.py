"""
Alembic migration runner.

On PostgreSQL an advisory lock keeps two booting workers from upgrading the
schema at the same time; other backends migrate without a lock.
"""
import logging
import os
from typing import Optional

from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

from app.core.config import DATABASE_URL

logger = logging.getLogger(__name__)

MIGRATION_LOCK_ID = 48151623
ALEMBIC_INI_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "alembic.ini")


def build_alembic_config(database_url: Optional[str] = None) -> Config:
    alembic_cfg = Config(ALEMBIC_INI_PATH)
    alembic_cfg.set_main_option("sqlalchemy.url", database_url or DATABASE_URL)
    return alembic_cfg


def run_migrations(database_url: Optional[str] = None, revision: str = "head"):
    """Upgrade the schema to `revision`, holding the migration lock on PostgreSQL."""
    url = database_url or DATABASE_URL
    if not url:
        raise ValueError("DATABASE_URL is not set")

    alembic_cfg = build_alembic_config(url)
    use_lock = url.startswith("postgresql")
    engine = create_engine(url, pool_pre_ping=True)

    try:
        if use_lock:
            with engine.connect() as lock_conn:
                lock_conn.execute(text("SELECT pg_advisory_lock(:id)"), {"id": MIGRATION_LOCK_ID})
                logger.info("Migration lock acquired")
                try:
                    command.upgrade(alembic_cfg, revision)
                finally:
                    lock_conn.execute(text("SELECT pg_advisory_unlock(:id)"), {"id": MIGRATION_LOCK_ID})
        else:
            command.upgrade(alembic_cfg, revision)
        logger.info(f"Migrations complete: revision={revision}")
    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        engine.dispose()
