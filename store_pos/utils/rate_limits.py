# store_pos/utils/rate_limits.py

import os

from flask import request, g, has_request_context
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from .logger import Log


# ---------- KEY FUNCTIONS ----------

def _get_client_ip():
    """Safely get client IP, returns 'unknown' if outside request context."""
    if has_request_context():
        return get_remote_address() or "unknown"
    return "unknown"


def user_key_func():
    """Rate-limit per authenticated user, else per IP."""
    user = getattr(g, "current_user", None) or {}
    user_id = user.get("user_id") if isinstance(user, dict) else None
    if user_id is not None:
        return f"user:{user_id}"
    return get_remote_address()


# ---------- RATE LIMIT BREACH HANDLER ----------

def log_rate_limit_breach(request_limit):
    """Called by Flask-Limiter whenever a limit is exceeded."""
    client_ip = _get_client_ip()
    user = getattr(g, "current_user", None) or {}
    user_id = user.get("user_id", "anonymous") if isinstance(user, dict) else "anonymous"

    Log.warning(
        f"[rate_limits.py][RATE_LIMIT_BREACH][{client_ip}] "
        f"user={user_id}, limit={getattr(request_limit, 'limit', 'unknown')}, "
        f"method={request.method}, path={request.path}, endpoint={request.endpoint or 'unknown'}"
    )


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("RATE_LIMIT_STORAGE_URI", "memory://"),
    on_breach=log_rate_limit_breach,
)


# ---------- CRUD HELPERS ----------

def crud_read_limiter(
    entity_name: str,
    limit_str: str = "120 per minute",
    scope: str | None = None,
):
    """
    Generic limiter for READ (GET) operations.

    Barcode scans go through this path, so the default is generous.
    """
    scope = scope or f"{entity_name}-read"
    error_message = f"Too many {entity_name} read requests. Please slow down."

    return limiter.shared_limit(
        limit_str,
        scope=scope,
        key_func=user_key_func,
        methods=["GET"],
        error_message=error_message,
    )


def crud_write_limiter(
    entity_name: str,
    limit_str: str = "20 per minute; 200 per hour",
    scope: str | None = None,
):
    """Generic limiter for WRITE (POST/PUT/PATCH) operations."""
    scope = scope or f"{entity_name}-write"
    error_message = f"Too many {entity_name} write requests. Please try again later."

    return limiter.shared_limit(
        limit_str,
        scope=scope,
        key_func=user_key_func,
        methods=["POST", "PUT", "PATCH"],
        error_message=error_message,
    )


def crud_delete_limiter(
    entity_name: str,
    limit_str: str = "10 per minute; 50 per hour",
    scope: str | None = None,
):
    """Generic limiter for DELETE operations."""
    scope = scope or f"{entity_name}-delete"
    error_message = f"Too many {entity_name} delete requests. Please try again later."

    return limiter.shared_limit(
        limit_str,
        scope=scope,
        key_func=user_key_func,
        methods=["DELETE"],
        error_message=error_message,
    )
