"""Tests for the Redis backend with a mocked redis client."""

from __future__ import annotations

import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from herdguard_core.exceptions import (
    CacheBackendError,
    CacheConfigError,
    CacheSerializationError,
)
from herdguard_core.interfaces.backend import MISSING, CacheBackend
from herdguard_infra.backends.redis_backend import RedisCacheBackend
from tests.mocks.mock_backends import make_mock_redis


@pytest.mark.unit
class TestRedisGet:
    """Tests for get."""

    async def test_get_decodes_json(self) -> None:
        """Stored JSON is decoded."""
        mock_redis = make_mock_redis()
        mock_redis.get.return_value = json.dumps({"foo": "bar"})
        backend = RedisCacheBackend(mock_redis)
        assert await backend.get("k") == {"foo": "bar"}
        mock_redis.get.assert_awaited_once_with("k")

    async def test_get_decodes_bytes(self) -> None:
        """Raw bytes from a non-decoding client are decoded too."""
        mock_redis = make_mock_redis()
        mock_redis.get.return_value = b"[1, 2]"
        backend = RedisCacheBackend(mock_redis)
        assert await backend.get("k") == [1, 2]

    async def test_get_applies_prefix(self) -> None:
        """Keys are stored under the backend prefix."""
        mock_redis = make_mock_redis()
        mock_redis.get.return_value = "1"
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.get("k")
        mock_redis.get.assert_awaited_once_with("test:k")

    async def test_get_miss_returns_missing(self) -> None:
        """A nil reply is absence."""
        backend = RedisCacheBackend(make_mock_redis())
        assert await backend.get("missing") is MISSING

    async def test_get_json_null_is_a_value(self) -> None:
        """A stored JSON null is a present None, not absence."""
        mock_redis = make_mock_redis()
        mock_redis.get.return_value = "null"
        backend = RedisCacheBackend(mock_redis)
        assert await backend.get("k") is None

    async def test_get_invalid_json_raises_serialization_error(self) -> None:
        """Malformed payloads raise CacheSerializationError."""
        mock_redis = make_mock_redis()
        mock_redis.get.return_value = "invalid-json"
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheSerializationError, match="Failed to parse cached value"):
            await backend.get("k")

    async def test_get_redis_error_raises_backend_error(self) -> None:
        """Transport failures raise CacheBackendError chained to the cause."""
        mock_redis = make_mock_redis()
        cause = RedisConnectionError("Connection refused")
        mock_redis.get.side_effect = cause
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheBackendError, match="Redis get operation failed") as exc_info:
            await backend.get("k")
        assert exc_info.value.__cause__ is cause


@pytest.mark.unit
class TestRedisSet:
    """Tests for set."""

    async def test_set_without_ttl(self) -> None:
        """No TTL stores without expiry."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        await backend.set("k", {"foo": "bar"})
        mock_redis.set.assert_awaited_once_with(name="k", value='{"foo": "bar"}')

    async def test_set_zero_ttl_means_no_expiry(self) -> None:
        """A zero TTL also stores without expiry."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        await backend.set("k", 1, ttl_seconds=0)
        mock_redis.set.assert_awaited_once_with(name="k", value="1")

    async def test_set_with_ttl_and_prefix(self) -> None:
        """TTL is passed in milliseconds under the prefixed key."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.set("k", "v", ttl_seconds=300)
        mock_redis.set.assert_awaited_once_with(name="test:k", value='"v"', px=300_000)

    async def test_set_unserializable_raises_serialization_error(self) -> None:
        """Values JSON cannot encode raise CacheSerializationError."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        circular: dict[str, object] = {}
        circular["self"] = circular
        with pytest.raises(CacheSerializationError, match="Failed to stringify value"):
            await backend.set("k", circular)
        with pytest.raises(CacheSerializationError):
            await backend.set("k", object())
        mock_redis.set.assert_not_awaited()

    async def test_set_redis_error_raises_backend_error(self) -> None:
        """Transport failures raise CacheBackendError."""
        mock_redis = make_mock_redis()
        mock_redis.set.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheBackendError, match="Redis set operation failed"):
            await backend.set("k", "v")


@pytest.mark.unit
class TestRedisDelete:
    """Tests for delete."""

    async def test_delete_with_prefix(self) -> None:
        """Delete forwards the prefixed key."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.delete("k")
        mock_redis.delete.assert_awaited_once_with("test:k")

    async def test_delete_redis_error(self) -> None:
        """Transport failures raise CacheBackendError."""
        mock_redis = make_mock_redis()
        mock_redis.delete.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheBackendError, match="Redis delete operation failed"):
            await backend.delete("k")


@pytest.mark.unit
class TestRedisLocks:
    """Tests for try_acquire_lock and release_lock."""

    async def test_acquire_uses_set_nx_px(self) -> None:
        """Lock acquisition is a single SET NX PX."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis, prefix="test")
        assert await backend.try_acquire_lock("lock:k", 5) is True
        kwargs = mock_redis.set.call_args.kwargs
        assert kwargs["name"] == "test:lock:k"
        assert kwargs["nx"] is True
        assert kwargs["px"] == 5000
        assert ":" in kwargs["value"]

    async def test_acquire_fails_when_held(self) -> None:
        """A nil reply to SET NX means another holder exists."""
        mock_redis = make_mock_redis()
        mock_redis.set.return_value = None
        backend = RedisCacheBackend(mock_redis)
        assert await backend.try_acquire_lock("lock:k", 5) is False

    async def test_acquire_sub_millisecond_ttl_rounds_up(self) -> None:
        """Tiny TTLs still produce a positive PX."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        await backend.try_acquire_lock("lock:k", 0.0001)
        assert mock_redis.set.call_args.kwargs["px"] == 1

    async def test_acquire_redis_error(self) -> None:
        """Transport failures raise CacheBackendError."""
        mock_redis = make_mock_redis()
        mock_redis.set.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheBackendError, match="Redis lock operation failed"):
            await backend.try_acquire_lock("lock:k", 5)

    async def test_release_compares_token(self) -> None:
        """Release runs the compare-and-delete script with the acquired token."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.try_acquire_lock("lock:k", 5)
        token = mock_redis.set.call_args.kwargs["value"]

        await backend.release_lock("lock:k")

        mock_redis.release_script.assert_awaited_once_with(keys=["test:lock:k"], args=[token])
        mock_redis.delete.assert_not_awaited()

    async def test_tokens_differ_per_acquisition(self) -> None:
        """Each acquisition writes a fresh token."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        await backend.try_acquire_lock("lock:a", 5)
        await backend.try_acquire_lock("lock:b", 5)
        first, second = (c.kwargs["value"] for c in mock_redis.set.call_args_list)
        assert first != second

    async def test_release_without_holding_is_noop(self) -> None:
        """A lock this instance never acquired is not touched."""
        mock_redis = make_mock_redis()
        mock_redis.set.return_value = None
        backend = RedisCacheBackend(mock_redis)

        await backend.release_lock("lock:never")
        assert await backend.try_acquire_lock("lock:k", 5) is False
        await backend.release_lock("lock:k")

        mock_redis.release_script.assert_not_awaited()

    async def test_release_is_idempotent(self) -> None:
        """A second release after a successful one does nothing."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        await backend.try_acquire_lock("lock:k", 5)
        await backend.release_lock("lock:k")
        await backend.release_lock("lock:k")
        mock_redis.release_script.assert_awaited_once()

    async def test_release_redis_error(self) -> None:
        """Transport failures raise CacheBackendError."""
        mock_redis = make_mock_redis()
        mock_redis.release_script.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(mock_redis)
        await backend.try_acquire_lock("lock:k", 5)
        with pytest.raises(CacheBackendError, match="Redis unlock operation failed"):
            await backend.release_lock("lock:k")


@pytest.mark.unit
class TestRedisClearNamespace:
    """Tests for clear_namespace."""

    async def test_refuses_without_prefix(self) -> None:
        """Clearing without a prefix is a configuration error."""
        mock_redis = make_mock_redis()
        backend = RedisCacheBackend(mock_redis)
        with pytest.raises(CacheConfigError, match="prefix is required"):
            await backend.clear_namespace()
        mock_redis.scan.assert_not_awaited()

    async def test_scans_and_deletes_in_batches(self) -> None:
        """Every SCAN batch under the prefix is deleted."""
        mock_redis = make_mock_redis()
        mock_redis.scan.side_effect = [
            (10, ["test:key1", "test:key2"]),
            (0, ["test:key3"]),
        ]
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.clear_namespace()

        assert mock_redis.scan.await_count == 2
        mock_redis.scan.assert_any_await(cursor=0, match="test:*", count=100)
        mock_redis.scan.assert_any_await(cursor=10, match="test:*", count=100)
        mock_redis.delete.assert_any_await("test:key1", "test:key2")
        mock_redis.delete.assert_any_await("test:key3")

    async def test_empty_batches_skip_delete(self) -> None:
        """Empty SCAN batches issue no DEL."""
        mock_redis = make_mock_redis()
        mock_redis.scan.side_effect = [(10, []), (0, [])]
        backend = RedisCacheBackend(mock_redis, prefix="test")
        await backend.clear_namespace()
        assert mock_redis.scan.await_count == 2
        mock_redis.delete.assert_not_awaited()

    async def test_scan_error_raises_backend_error(self) -> None:
        """Transport failures raise CacheBackendError."""
        mock_redis = make_mock_redis()
        mock_redis.scan.side_effect = RedisConnectionError("down")
        backend = RedisCacheBackend(mock_redis, prefix="test")
        with pytest.raises(CacheBackendError, match="Redis clear operation failed"):
            await backend.clear_namespace()


@pytest.mark.unit
class TestRedisMisc:
    """Tests for protocol conformance and close."""

    def test_satisfies_backend_protocol(self) -> None:
        """RedisCacheBackend is a structural CacheBackend."""
        assert isinstance(RedisCacheBackend(make_mock_redis()), CacheBackend)

    async def test_close(self) -> None:
        """Close closes the client."""
        mock_redis = make_mock_redis()
        await RedisCacheBackend(mock_redis).close()
        mock_redis.aclose.assert_awaited_once()
