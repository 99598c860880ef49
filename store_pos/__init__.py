import atexit

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix
from marshmallow import ValidationError
from flask_smorest import Api
from flask_limiter.errors import RateLimitExceeded

from .utils.rate_limits import limiter
from .extensions import db, cors, RedisCache
from .config import load_config
from .routes import register_routes
from .utils.errors import StorePOSError
from .utils.error_handlers import (
    handle_permission_error, handle_validation_error, handle_store_pos_error,
    handle_rate_limit
)
from .utils.logger import Log
from .models.product_model import Product
from .models.store_model import Store
from .models.store_account_model import StoreAccount
from .services.barcode_cache import BarcodeCache
from .services.product_service import ProductService
from .services.subscription_manager import SubscriptionManager
from .services.store_account_service import StoreAccountService
from .jobs.subscription_expiry_job import process_expired_subscriptions


def _build_cache(app, cache_client=None):
    """
    The cache client is owned here. An injected raw client (tests) is wrapped
    as-is; otherwise one is built from REDIS_URL and closed at exit.
    """
    cache = RedisCache(
        url=app.config["REDIS_URL"],
        socket_timeout=app.config["REDIS_SOCKET_TIMEOUT"],
        connect_timeout=app.config["REDIS_CONNECT_TIMEOUT"],
        client=cache_client,
    )
    if cache_client is None:
        cache.connect()
        atexit.register(cache.close)
    return cache


def create_app(config_overrides=None, db_client=None, cache_client=None):
    app = Flask(__name__)

    #get actual client IP
    app.wsgi_app = ProxyFix(
        app.wsgi_app,
        x_for=1,      # Trust X-Forwarded-For
        x_proto=1,    # Trust X-Forwarded-Proto
        x_host=1,     # Trust X-Forwarded-Host
        x_port=1,     # Trust X-Forwarded-Port
        x_prefix=1    # Trust X-Forwarded-Prefix
    )

    # Load configuration (includes the Flask-Smorest keys)
    load_config(app, config_overrides)

    api = Api(app)

    # Initialize all extensions
    limiter.init_app(app)
    db.init_app(app, database=db_client)
    cors.init_app(app, origins=app.config["ALLOWED_ORIGINS"])

    # Composition root: every component receives its collaborators explicitly
    cache = _build_cache(app, cache_client)
    barcode_cache = BarcodeCache(cache, Product, ttl_seconds=app.config["PRODUCT_CACHE_TTL"])
    subscription_manager = SubscriptionManager(Store)

    app.extensions["cache"] = cache
    app.extensions["barcode_cache"] = barcode_cache
    app.extensions["product_service"] = ProductService(barcode_cache, Product)
    app.extensions["subscription_manager"] = subscription_manager
    app.extensions["store_account_service"] = StoreAccountService(StoreAccount, Store)

    #Setup database indexes
    if app.config.get("MONGO_CREATE_INDEXES", True):
        with app.app_context():
            Product.create_indexes()
            Store.create_indexes()
            StoreAccount.create_indexes()

    # Register custom error handlers
    app.errorhandler(PermissionError)(handle_permission_error)
    app.errorhandler(ValidationError)(handle_validation_error)
    app.errorhandler(StorePOSError)(handle_store_pos_error)
    app.errorhandler(RateLimitExceeded)(handle_rate_limit)

    # Register all blueprints using `api.register_blueprint(...)`
    register_routes(app, api)

    @app.cli.command("expire-subscriptions")
    def expire_subscriptions_command():
        """Deactivate every store whose subscription has ended."""
        result = process_expired_subscriptions(subscription_manager)
        Log.info(f"[store_pos][expire-subscriptions] {result}")
        print(result)

    return app
