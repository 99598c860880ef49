# store_pos/extensions/__init__.py

from flask_cors import CORS
from .db import db
from .cache import RedisCache

# Only app-aware extensions should be global; the cache client is built per app
cors = CORS()

__all__ = [
    "cors",
    "db",
    "RedisCache",
]
