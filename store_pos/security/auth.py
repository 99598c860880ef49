from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app, g, request
from flask_smorest import abort

from ..constants.service_code import (
    AUTHENTICATION_MESSAGES, ERROR_CODES, ERROR_MESSAGES, HTTP_STATUS_CODES, ROLES
)
from ..utils.errors import SubscriptionExpiredError
from ..utils.helpers import normalise_store_id
from ..utils.logger import Log


TOKEN_TTL_HOURS = 12


def generate_token(user_id, store_id=None, role=ROLES["CASHIER"], expires_in=None):
    expires_at = datetime.now(timezone.utc) + (expires_in or timedelta(hours=TOKEN_TTL_HOURS))
    payload = {
        "user_id": str(user_id),
        "store_id": normalise_store_id(store_id) or None,
        "role": role,
        "exp": expires_at,
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def _enforce_subscription(user):
    """
    Reject a store user whose store subscription is inactive or expired.

    A failure evaluating the check is logged and the request goes through.
    """
    store_id = user.get("store_id")
    if user.get("role") == ROLES["ADMIN"] or not store_id:
        return

    log_tag = f"[auth.py][token_required][subscription][{store_id}]"
    manager = current_app.extensions["subscription_manager"]

    try:
        status = manager.check_subscription(store_id)
    except Exception as e:
        Log.error(f"{log_tag} error checking subscription: {str(e)}")
        return

    if not status["is_active"] or status["subscription_expired"]:
        end_date = status.get("subscription_end_date")
        # A store inactive before its end date was paused, not expired
        message_key = "SUBSCRIPTION_EXPIRED" if status["subscription_expired"] else "STORE_INACTIVE"
        Log.info(f"{log_tag} store blocked ({message_key}), subscription ends {end_date}")
        raise SubscriptionExpiredError(
            ERROR_MESSAGES[message_key],
            meta={
                "code": ERROR_CODES["SUBSCRIPTION_EXPIRED"],
                "subscription_end_date": end_date.isoformat() if hasattr(end_date, "isoformat") else end_date,
            },
        )


def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            abort(HTTP_STATUS_CODES["UNAUTHORIZED"], message=AUTHENTICATION_MESSAGES["AUTHENTICATION_REQUIRED"])

        token = auth_header.split()[1]
        try:
            data = jwt.decode(token, current_app.config["SECRET_KEY"], algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            abort(HTTP_STATUS_CODES["UNAUTHORIZED"], message=AUTHENTICATION_MESSAGES["TOKEN_EXPIRED"])
        except jwt.InvalidTokenError:
            abort(HTTP_STATUS_CODES["UNAUTHORIZED"], message=AUTHENTICATION_MESSAGES["INVALID_TOKEN"])

        g.current_user = {
            "user_id": data.get("user_id"),
            "store_id": normalise_store_id(data.get("store_id")) or None,
            "role": data.get("role"),
        }

        _enforce_subscription(g.current_user)

        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Must sit below `token_required`."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user = g.get("current_user") or {}
        if user.get("role") != ROLES["ADMIN"]:
            raise PermissionError(ERROR_MESSAGES["ADMIN_REQUIRED"])
        return f(*args, **kwargs)
    return decorated
