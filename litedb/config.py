"""Environment-driven settings for the access layer."""

import logging
import os

logger = logging.getLogger(__name__)

LOG_EXCEPTIONS_ENV = "LITEDB_LOG_EXCEPTIONS"
FETCH_SIZE_ENV = "LITEDB_FETCH_SIZE"
DATABASE_URL_ENV = "DATABASE_URL"

DEFAULT_FETCH_SIZE = 2000

_TRUTHY = {"1", "true", "yes", "on", "y", "t"}


def log_exceptions() -> bool:
    """Whether caught execution failures are logged with full detail."""
    return os.environ.get(LOG_EXCEPTIONS_ENV, "").strip().lower() in _TRUTHY


def fetch_size() -> int:
    """Rows per round trip for server-side streaming cursors."""
    raw = os.environ.get(FETCH_SIZE_ENV)
    if raw is None:
        return DEFAULT_FETCH_SIZE
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using %d", FETCH_SIZE_ENV, raw, DEFAULT_FETCH_SIZE)
        return DEFAULT_FETCH_SIZE
    if value < 1:
        logger.warning("Invalid %s=%r, using %d", FETCH_SIZE_ENV, raw, DEFAULT_FETCH_SIZE)
        return DEFAULT_FETCH_SIZE
    return value


def database_url() -> str:
    """Read the connection URL from DATABASE_URL."""
    url = os.environ.get(DATABASE_URL_ENV)
    if not url:
        raise ValueError("DATABASE_URL must be set")
    return url
