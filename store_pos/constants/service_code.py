
HTTP_STATUS_CODES = {
    "OK": 200,
    "CREATED": 201,
    "NO_CONTENT": 204,
    "BAD_REQUEST": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "VALIDATION_ERROR": 422,
    "TOO_MANY_REQUESTS": 429,
    "INTERNAL_SERVER_ERROR": 500,
    "SERVICE_UNAVAILABLE": 503,
}

ERROR_MESSAGES = {
    "ADMIN_REQUIRED": "Access denied. Admin role required.",
    "DUPLICATE_BARCODE": "Product with this barcode already exists",
    "STORE_ID_REQUIRED": "Store ID is required. Please ensure you are logged in as a store user.",
    "SUBSCRIPTION_EXPIRED": "Your store subscription has expired. Please renew your subscription to regain access.",
    "STORE_INACTIVE": "Your store is inactive. Please contact support or settle the outstanding balance to regain access.",
    "CONCURRENT_UPDATE": "The record was modified by another request. Please retry.",
}

AUTHENTICATION_MESSAGES = {
    'AUTHENTICATION_REQUIRED': "Authentication required. Please provide a valid token.",
    "TOKEN_EXPIRED": "Token expired",
    "INVALID_TOKEN": "Invalid token",
}

# Machine-readable error codes surfaced in response bodies
ERROR_CODES = {
    "NOT_FOUND": "NOT_FOUND",
    "VALIDATION_FAILED": "VALIDATION_FAILED",
    "SUBSCRIPTION_EXPIRED": "SUBSCRIPTION_EXPIRED",
    "CONCURRENT_MUTATION_CONFLICT": "CONCURRENT_MUTATION_CONFLICT",
}

ROLES = {
    "ADMIN": "Admin",
    "MANAGER": "Manager",
    "CASHIER": "Cashier",
}

PRODUCT_STATUSES = ["active", "inactive", "hidden"]

PRODUCT_CACHE_KEY_PREFIX = "product"
