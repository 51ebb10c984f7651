"""Tests for session registry backends."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from api.services.session_registry import (
    InMemorySessionRegistry,
    RedisSessionRegistry,
    build_session_registry,
)


class FakeRedis:
    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def exists(self, key):
        return int(key in self.values)

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self.values[key] = value
        self.ttls[key] = ex

    async def delete(self, key):
        self.values.pop(key, None)

    async def ping(self):
        return True


class TestInMemorySessionRegistry:
    async def test_first_touch_registers(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        assert await registry.touch("tok") is True
        assert await registry.active_count() == 1

    async def test_invalidate_blocks_future_touches(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        await registry.touch("tok")
        await registry.invalidate("tok")
        assert await registry.touch("tok") is False
        assert await registry.active_count() == 0

    async def test_invalidate_unknown_token_is_harmless(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        await registry.invalidate("never-seen")
        assert await registry.touch("never-seen") is False

    async def test_idle_timeout_expires_session(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        with patch("api.services.session_registry.time.time", return_value=1000.0):
            assert await registry.touch("tok") is True
        with patch("api.services.session_registry.time.time", return_value=1030.0):
            assert await registry.touch("tok") is True
        with patch("api.services.session_registry.time.time", return_value=1200.0):
            assert await registry.touch("tok") is False
        with patch("api.services.session_registry.time.time", return_value=1201.0):
            assert await registry.touch("tok") is False

    async def test_revocations_expire_with_token_lifetime(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        with patch("api.services.session_registry.time.time", return_value=1000.0):
            await registry.invalidate("tok")
        with patch("api.services.session_registry.time.time", return_value=1700.0):
            assert await registry.touch("tok") is True

    async def test_raw_tokens_are_not_stored(self):
        registry = InMemorySessionRegistry(idle_timeout_seconds=60, revocation_ttl_seconds=600)
        await registry.touch("secret-token")
        assert "secret-token" not in registry._last_seen


class TestRedisSessionRegistry:
    async def test_touch_then_invalidate(self):
        redis = FakeRedis()
        registry = RedisSessionRegistry(redis, idle_timeout_seconds=60, revocation_ttl_seconds=600)

        assert await registry.touch("tok") is True
        await registry.invalidate("tok")

        assert await registry.touch("tok") is False
        revoked = [key for key in redis.values if ":revoked:" in key]
        assert len(revoked) == 1
        assert redis.ttls[revoked[0]] == 600
        assert not any(":seen:" in key for key in redis.values)

    async def test_idle_timeout(self):
        redis = FakeRedis()
        registry = RedisSessionRegistry(redis, idle_timeout_seconds=60, revocation_ttl_seconds=600)
        with patch("api.services.session_registry.time.time", return_value=1000.0):
            await registry.touch("tok")
        with patch("api.services.session_registry.time.time", return_value=1100.0):
            assert await registry.touch("tok") is False

    async def test_ping_reaches_redis(self):
        redis = FakeRedis()
        redis.ping = AsyncMock(return_value=True)
        registry = RedisSessionRegistry(redis, idle_timeout_seconds=60, revocation_ttl_seconds=600)
        await registry.ping()
        redis.ping.assert_awaited_once()

    async def test_keys_use_token_digest(self):
        redis = FakeRedis()
        registry = RedisSessionRegistry(redis, idle_timeout_seconds=60, revocation_ttl_seconds=600)
        await registry.touch("secret-token")
        assert all("secret-token" not in key for key in redis.values)
        assert all(key.startswith("warden:session:") for key in redis.values)


def test_build_defaults_to_memory():
    settings = SimpleNamespace(
        session_backend="memory",
        session_timeout_minutes=60,
        jwt_expire_minutes=480,
        redis_url="redis://localhost:6379/0",
    )
    registry = build_session_registry(settings)
    assert isinstance(registry, InMemorySessionRegistry)
    assert registry.idle_timeout_seconds == 3600
    assert registry.revocation_ttl_seconds == 28800


def test_build_redis_backend():
    settings = SimpleNamespace(
        session_backend="redis",
        session_timeout_minutes=30,
        jwt_expire_minutes=60,
        redis_url="redis://localhost:6379/0",
    )
    with patch("redis.asyncio.from_url") as from_url:
        registry = build_session_registry(settings)
    assert isinstance(registry, RedisSessionRegistry)
    assert registry.redis is from_url.return_value
    from_url.assert_called_once_with("redis://localhost:6379/0")
