from dotenv import load_dotenv
load_dotenv()  # Load environment variables from .env file

import os


class Config:
    """Base configuration class."""
    APP_NAME = os.getenv("APP_NAME", "Store POS")

    SECRET_KEY = os.getenv("SECRET_KEY", "your_default_secret_key")
    DEBUG = os.getenv("FLASK_DEBUG", "True") == "True"
    TESTING = False
    MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017/store_pos")
    MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "store_pos")

    # ========================================
    # REDIS / PRODUCT CACHE
    # ========================================
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    # Short timeouts so an unreachable cache degrades to "no cache" quickly
    REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))
    REDIS_CONNECT_TIMEOUT = float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5"))
    PRODUCT_CACHE_TTL = int(os.getenv("PRODUCT_CACHE_TTL", "3600"))

    # ========================================
    # STORE ACCOUNTS
    # ========================================
    DEFAULT_ACCOUNT_THRESHOLD = float(os.getenv("DEFAULT_ACCOUNT_THRESHOLD", "10000"))

    RATELIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
    ALLOWED_ORIGINS = [o for o in (os.getenv("ALLOWED_ORIGINS") or "*").split(",") if o]


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    MONGO_URI = os.getenv("TEST_MONGO_URI", "mongodb://localhost:27017/store_pos_test")
    MONGO_DB_NAME = "store_pos_test"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    MONGO_URI = os.getenv("PROD_MONGO_URI", os.getenv("MONGO_URI", "mongodb://localhost:27017/store_pos"))


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def load_config(app, overrides=None):
    load_dotenv()
    app_env = os.getenv("APP_ENV", "development")
    app.config.from_object(CONFIG_BY_ENV.get(app_env, DevelopmentConfig))

    # Flask-Smorest keys
    app.config["API_TITLE"] = "Store POS API"
    app.config["API_VERSION"] = "v1"
    app.config["OPENAPI_VERSION"] = "3.0.3"
    app.config["OPENAPI_URL_PREFIX"] = "/api"
    app.config["OPENAPI_JSON_PATH"] = "openapi.json"
    app.config["OPENAPI_SWAGGER_UI_PATH"] = "/docs"
    app.config["OPENAPI_SWAGGER_UI_URL"] = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"

    if overrides:
        app.config.update(overrides)
