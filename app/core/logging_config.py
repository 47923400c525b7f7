"""
Logging setup for the entitlement service.

Everything goes to stdout and to a size-rotated file under LOG_DIR. Secrets
and gateway signatures must pass through sanitize_log_data before they are
logged.
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from app.core.config import LOG_DIR, LOG_LEVEL

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# function/line kept in the file for billing audits
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

LOG_FILE_NAME = "entitlements.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "stripe", "sqlalchemy.engine")

REDACTED = "***REDACTED***"
SENSITIVE_FRAGMENTS = ("password", "token", "secret", "key", "signature", "database_url")


def _with_format(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_level: str = LOG_LEVEL, log_dir: str = LOG_DIR):
    """
    Install console and rotating-file handlers on the root logger.

    Calling it again replaces the handlers rather than stacking them.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    root.addHandler(_with_format(logging.StreamHandler(sys.stdout), level, CONSOLE_FORMAT))
    root.addHandler(_with_format(
        RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        ),
        level,
        FILE_FORMAT,
    ))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _is_sensitive(key) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in SENSITIVE_FRAGMENTS)


def sanitize_log_data(data: dict) -> dict:
    """Return a copy of `data` with secret-looking values masked, nested dicts included."""
    sanitized = {}
    for key, value in data.items():
        if _is_sensitive(key):
            sanitized[key] = REDACTED
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value
    return sanitized
