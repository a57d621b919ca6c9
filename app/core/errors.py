import asyncio
from typing import Optional

from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.core.logger import logger

# Failures that mean the pooled connections themselves are gone
DISCONNECT_ISSUES = (
    "password authentication failed",
    "authentication failed",
    "self-signed",
    "certificate",
    "connection refused",
    "could not connect",
    "connection was closed",
    "terminating connection",
)

CONNECTION_ISSUES = DISCONNECT_ISSUES + ("timeout",)

class ApiError(Exception):
    """Base for errors that map straight onto an HTTP response {"error": message}."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

class BadRequest(ApiError):
    status_code = 400
    default_message = "Bad request"

class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"

class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"

class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"

class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"

class InternalError(ApiError):
    status_code = 500

class ServiceUnavailable(ApiError):
    status_code = 503
    default_message = "Database connection error"

def _error_text(exc: BaseException) -> str:
    messages = [str(exc)]
    orig = getattr(exc, "orig", None)
    if orig is not None:
        messages.append(str(orig))
    return " ".join(messages).lower()

def is_connection_error(exc: BaseException) -> bool:
    """True when a store failure looks like a connectivity problem rather than a bad query."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    if getattr(exc, "connection_invalidated", False):
        return True

    text = _error_text(exc)
    return any(marker in text for marker in CONNECTION_ISSUES)

def needs_reconnect(exc: BaseException) -> bool:
    """
    True only when the pool should be rebuilt: the server dropped or refused
    the connection, or rejected its credentials.
    Pool checkout and statement timeouts still answer 503 but leave the pool alone.
    """
    if isinstance(exc, (PoolTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return False
    if getattr(exc, "connection_invalidated", False):
        return True
    if isinstance(exc, ConnectionError):
        return True

    text = _error_text(exc)
    if "statement timeout" in text:
        return False
    return any(marker in text for marker in DISCONNECT_ISSUES)

def classify_db_error(exc: BaseException, fallback_message: str = "Internal server error") -> ApiError:
    """
    Maps a low-level store failure onto the error taxonomy.
    Connectivity problems become 503, everything else a 500 with the caller's message.
    """
    if is_connection_error(exc):
        logger.warning(f"🔌 Database connectivity failure: {exc}")
        return ServiceUnavailable()

    logger.opt(exception=exc).error(f"❌ DB Error: {fallback_message}")
    return InternalError(fallback_message)

def sqlstate_of(exc: BaseException) -> Optional[str]:
    """SQLSTATE code carried by a DBAPI error (asyncpg exposes it as ``sqlstate``)."""
    orig = getattr(exc, "orig", exc)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
