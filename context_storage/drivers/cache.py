"""Redis cache driver."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import redis

from .base import StorageDriver

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity

logger = logging.getLogger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


class CacheStorage(StorageDriver):
    """Stores each identity's records as one JSON value in Redis.

    Keys are namespaced with ``prefix``. With ``ttl`` set, entries expire
    after that many seconds and later reads report a miss.
    """

    name = "cache"

    def __init__(
        self,
        url: str = DEFAULT_REDIS_URL,
        prefix: str = "context_storage:",
        ttl: int | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize CacheStorage.

        Args:
            url: Redis connection URL (ignored when client is given)
            prefix: Namespace prepended to every key
            ttl: Expiry in seconds. None keeps entries until removed
            client: Existing Redis client to use

        """
        self.url = url
        self.prefix = prefix
        self.ttl = ttl
        # from_url connects lazily, on the first command
        self.client = client if client is not None else redis.Redis.from_url(url, decode_responses=True)

    def cache_key(self, identity: SessionIdentity) -> str:
        return f"{self.prefix}{identity.key}"

    def read(self, identity: SessionIdentity) -> list[dict[str, Any]] | None:
        key = self.cache_key(identity)
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Redis read failed for %s: %s", key, e)
            return None

        if raw is None:
            return None

        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Invalid JSON in cache entry %s: %s", key, e)
            return None

        if not isinstance(data, list):
            logger.warning("Cache entry %s does not hold a list", key)
            return None
        return data

    def write(self, identity: SessionIdentity, data: list[dict[str, Any]]) -> bool:
        key = self.cache_key(identity)
        try:
            payload = json.dumps(data, ensure_ascii=False)
            self.client.set(key, payload, ex=self.ttl)
        except (TypeError, ValueError) as e:
            logger.warning("Records for %s are not JSON serializable: %s", key, e)
            return False
        except redis.RedisError as e:
            logger.warning("Redis write failed for %s: %s", key, e)
            return False
        return True

    def remove(self, identity: SessionIdentity) -> bool:
        key = self.cache_key(identity)
        try:
            self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Redis delete failed for %s: %s", key, e)
            return False
        return True

    def __repr__(self) -> str:
        return f"CacheStorage(prefix={self.prefix!r}, ttl={self.ttl!r})"
