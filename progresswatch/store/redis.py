from __future__ import annotations

import json
import logging
from typing import Any

from ..exceptions import MalformedRecord, StoreUnavailable
from ..models import ProgressRecord
from .base import ProgressStore

logger = logging.getLogger("progresswatch.store.redis")

try:
    import redis.asyncio as aioredis
    from redis.exceptions import RedisError

    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    logger.warning("redis package not available")


class RedisProgressStore(ProgressStore):
    """Reads JSON progress records from Redis string keys."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        *,
        key_prefix: str = "progress:",
        client: Any | None = None,
        **redis_kwargs: Any,
    ):
        if not REDIS_AVAILABLE:
            raise ImportError("redis package required for RedisProgressStore")

        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._redis_kwargs = redis_kwargs
        self._redis = client
        self._owns_client = client is None

    def key_for(self, job_id: str) -> str:
        return f"{self._key_prefix}{job_id}"

    def _ensure_redis(self) -> aioredis.Redis:
        """Ensure Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                **self._redis_kwargs,
            )
        return self._redis

    async def read(self, job_id: str) -> ProgressRecord | None:
        """Get record by job ID."""
        redis = self._ensure_redis()
        try:
            raw = await redis.get(self.key_for(job_id))
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Redis read failed for {job_id}: {e}") from e

        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedRecord(f"Invalid JSON for {job_id}: {e}") from e
        return ProgressRecord.from_dict(data)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis is not None and self._owns_client:
            try:
                await self._redis.aclose()
            finally:
                self._redis = None
