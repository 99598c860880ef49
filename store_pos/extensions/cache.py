# store_pos/extensions/cache.py
import json
from typing import Any, List, Optional

import redis

from ..utils.logger import Log


class RedisCache:
    """
    Key/value cache client over Redis.

    The client is created and owned by the composition root (`create_app`),
    which calls `connect()` on startup and `close()` on shutdown, and is passed
    explicitly into the components that use it.

    Every operation is safe to call while Redis is unreachable: errors are
    logged at warning level and the call returns None / False / 0 / [].
    """

    SCAN_BATCH_SIZE = 100

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        socket_timeout: float = 0.5,
        connect_timeout: float = 0.5,
        client: Optional[redis.Redis] = None,
    ):
        self.url = url
        self.socket_timeout = socket_timeout
        self.connect_timeout = connect_timeout
        self._client = client

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def connect(self) -> bool:
        """Build the underlying client (if needed) and ping it."""
        if self._client is None:
            self._client = redis.Redis.from_url(
                self.url,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.connect_timeout,
                decode_responses=True,
            )
        return self.ping()

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.close()
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][close] Error closing Redis client: {err}")
        finally:
            self._client = None

    def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            self._client.ping()
            Log.info("[cache.py][RedisCache][ping] Connected to Redis")
            return True
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][ping] Redis not available, caching disabled: {err}")
            return False

    # -------------------------------------------------------------------
    # String KV helpers (JSON values)
    # -------------------------------------------------------------------
    def get(self, key: str) -> Optional[Any]:
        if self._client is None:
            return None
        try:
            raw = self._client.get(key)
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][get] Error fetching {key}: {err}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as err:
            Log.warning(f"[cache.py][RedisCache][get] Undecodable value at {key}: {err}")
            return None

    def set_with_ttl(self, key: str, value: Any, ttl_seconds: int) -> bool:
        if self._client is None:
            return False
        try:
            self._client.setex(key, ttl_seconds, json.dumps(value, default=str))
            return True
        except (redis.RedisError, TypeError, ValueError) as err:
            Log.warning(f"[cache.py][RedisCache][set_with_ttl] Error setting {key}: {err}")
            return False

    def delete(self, key: str) -> int:
        if self._client is None:
            return 0
        try:
            return int(self._client.delete(key))
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][delete] Error removing {key}: {err}")
            return 0

    def delete_many(self, keys: List[str]) -> int:
        """Delete several keys in one pipeline round trip."""
        if self._client is None or not keys:
            return 0
        try:
            pipe = self._client.pipeline(transaction=False)
            for key in keys:
                pipe.delete(key)
            return sum(int(n or 0) for n in pipe.execute())
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][delete_many] Error removing {len(keys)} keys: {err}")
            return 0

    def scan_by_pattern(self, pattern: str) -> List[str]:
        """SCAN (never KEYS) for keys matching `pattern`."""
        if self._client is None:
            return []
        try:
            return list(self._client.scan_iter(match=pattern, count=self.SCAN_BATCH_SIZE))
        except redis.RedisError as err:
            Log.warning(f"[cache.py][RedisCache][scan_by_pattern] Error scanning {pattern}: {err}")
            return []

    def delete_pattern(self, pattern: str) -> int:
        keys = self.scan_by_pattern(pattern)
        deleted = 0
        for start in range(0, len(keys), self.SCAN_BATCH_SIZE):
            deleted += self.delete_many(keys[start:start + self.SCAN_BATCH_SIZE])
        return deleted
