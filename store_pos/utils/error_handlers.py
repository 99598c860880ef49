from flask import jsonify

from .errors import StorePOSError
from .logger import Log


# Handle PermissionError
def handle_permission_error(error):
    response = {
        "success": False,
        "error": "PermissionError",
        "message": str(error),
        "status_code": 403  # Forbidden
    }
    return jsonify(response), 403

# Handle marshmallow ValidationError
def handle_validation_error(error):
    response = {
        "success": False,
        "error": "Validation Error",
        "message": error.messages,
        "status_code": 400  # Bad Request
    }
    return jsonify(response), 400

# Handle domain errors (NotFound, ValidationFailure, SubscriptionExpired, ConcurrentMutationConflict)
def handle_store_pos_error(error: StorePOSError):
    Log.info(f"[error_handlers.py][handle_store_pos_error] {error.code}: {error.message}")
    response = {
        "success": False,
        "code": error.code,
        "message": error.message,
        "status_code": error.status_code,
    }
    if error.errors:
        response["errors"] = error.errors
    if error.meta:
        response.update(error.meta)
    return jsonify(response), error.status_code

def handle_rate_limit(e):
    return jsonify({
        "success": False,
        "status_code": 429,
        "error": "Too Many Requests",
        "message": e.description or "Too many requests, please try again later."
    }), 429
