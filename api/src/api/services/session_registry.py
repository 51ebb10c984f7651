"""Live admin session tracking with idle timeout and forced invalidation."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Any

logger = logging.getLogger(__name__)


def _token_key(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class InMemorySessionRegistry:
    """Process-local registry; state is lost on restart and not shared between workers."""

    def __init__(self, *, idle_timeout_seconds: float, revocation_ttl_seconds: float) -> None:
        self.idle_timeout_seconds = idle_timeout_seconds
        self.revocation_ttl_seconds = revocation_ttl_seconds
        self._last_seen: dict[str, float] = {}
        self._revoked_until: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _cleanup(self, now_ts: float) -> None:
        expired_revocations = [key for key, until in self._revoked_until.items() if until <= now_ts]
        for key in expired_revocations:
            self._revoked_until.pop(key, None)
        stale = [
            key
            for key, seen in self._last_seen.items()
            if now_ts - seen > self.revocation_ttl_seconds
        ]
        for key in stale:
            self._last_seen.pop(key, None)

    async def touch(self, token: str) -> bool:
        now_ts = time.time()
        key = _token_key(token)
        async with self._lock:
            self._cleanup(now_ts)
            if key in self._revoked_until:
                return False
            last_seen = self._last_seen.get(key)
            if last_seen is not None and now_ts - last_seen > self.idle_timeout_seconds:
                self._last_seen.pop(key, None)
                self._revoked_until[key] = now_ts + self.revocation_ttl_seconds
                return False
            self._last_seen[key] = now_ts
            return True

    async def invalidate(self, token: str) -> None:
        now_ts = time.time()
        key = _token_key(token)
        async with self._lock:
            self._last_seen.pop(key, None)
            self._revoked_until[key] = now_ts + self.revocation_ttl_seconds

    async def ping(self) -> None:
        return None

    async def active_count(self) -> int:
        now_ts = time.time()
        async with self._lock:
            self._cleanup(now_ts)
            return sum(
                1
                for seen in self._last_seen.values()
                if now_ts - seen <= self.idle_timeout_seconds
            )


class RedisSessionRegistry:
    """Registry shared across workers; keys expire with the token lifetime."""

    def __init__(
        self,
        redis_client: Any,
        *,
        idle_timeout_seconds: float,
        revocation_ttl_seconds: float,
        prefix: str = "warden:session",
    ) -> None:
        self.redis = redis_client
        self.idle_timeout_seconds = idle_timeout_seconds
        self.revocation_ttl_seconds = max(1, int(revocation_ttl_seconds))
        self.prefix = prefix

    def _seen_key(self, key: str) -> str:
        return f"{self.prefix}:seen:{key}"

    def _revoked_key(self, key: str) -> str:
        return f"{self.prefix}:revoked:{key}"

    async def touch(self, token: str) -> bool:
        now_ts = time.time()
        key = _token_key(token)
        if await self.redis.exists(self._revoked_key(key)):
            return False
        raw_last_seen = await self.redis.get(self._seen_key(key))
        if raw_last_seen is not None:
            try:
                last_seen = float(raw_last_seen)
            except (TypeError, ValueError):
                last_seen = now_ts
            if now_ts - last_seen > self.idle_timeout_seconds:
                await self.invalidate(token)
                return False
        await self.redis.set(self._seen_key(key), str(now_ts), ex=self.revocation_ttl_seconds)
        return True

    async def invalidate(self, token: str) -> None:
        key = _token_key(token)
        await self.redis.delete(self._seen_key(key))
        await self.redis.set(self._revoked_key(key), "1", ex=self.revocation_ttl_seconds)

    async def ping(self) -> None:
        await self.redis.ping()

    async def close(self) -> None:
        await self.redis.aclose()


def build_session_registry(settings: Any) -> InMemorySessionRegistry | RedisSessionRegistry:
    idle_timeout_seconds = settings.session_timeout_minutes * 60
    revocation_ttl_seconds = settings.jwt_expire_minutes * 60
    if settings.session_backend == "redis":
        import redis.asyncio as aioredis

        logger.info("Using redis session registry")
        return RedisSessionRegistry(
            aioredis.from_url(settings.redis_url),
            idle_timeout_seconds=idle_timeout_seconds,
            revocation_ttl_seconds=revocation_ttl_seconds,
        )
    return InMemorySessionRegistry(
        idle_timeout_seconds=idle_timeout_seconds,
        revocation_ttl_seconds=revocation_ttl_seconds,
    )
