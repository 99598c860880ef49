# store_pos/utils/errors.py

from ..constants.service_code import ERROR_CODES, HTTP_STATUS_CODES


class StorePOSError(Exception):
    """Base error carrying a machine-readable code and an HTTP status."""

    code = "ERROR"
    status_code = HTTP_STATUS_CODES["INTERNAL_SERVER_ERROR"]

    def __init__(self, message: str, errors=None, meta=None):
        super().__init__(message)
        self.message = message
        self.errors = errors
        self.meta = meta or {}


class NotFoundError(StorePOSError):
    code = ERROR_CODES["NOT_FOUND"]
    status_code = HTTP_STATUS_CODES["NOT_FOUND"]


class ValidationFailure(StorePOSError):
    code = ERROR_CODES["VALIDATION_FAILED"]
    status_code = HTTP_STATUS_CODES["BAD_REQUEST"]


class SubscriptionExpiredError(StorePOSError):
    code = ERROR_CODES["SUBSCRIPTION_EXPIRED"]
    status_code = HTTP_STATUS_CODES["FORBIDDEN"]


class ConcurrentMutationConflict(StorePOSError):
    code = ERROR_CODES["CONCURRENT_MUTATION_CONFLICT"]
    status_code = HTTP_STATUS_CODES["CONFLICT"]
