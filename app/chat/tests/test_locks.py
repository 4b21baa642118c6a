"""
Tests for the keyed lock registries.

Tests cover:
- In-process KeyedLock: release, re-entry, timeouts, serialization
- RedisKeyedLock against a mocked django-redis connection
- Registry selection from settings
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from chat.locks import KeyedLock, LockAcquisitionError, RedisKeyedLock
from chat.services import ConversationService, get_lock_registry
from chat.tests.fakes import (
    InMemoryCounterStore,
    InMemoryMessageStore,
    InMemoryPresenceStore,
    InMemoryUserDirectory,
    RecordingPublisher,
)
from core.exceptions import PersistenceError


class TestKeyedLock:
    def test_registry_empties_after_release(self):
        locks = KeyedLock(timeout=1.0)

        with locks.hold("counter", 1, 2):
            assert len(locks) == 1

        assert len(locks) == 0

    def test_reentrant_for_same_thread(self):
        locks = KeyedLock(timeout=0.1)

        with locks.hold("presence", 1):
            with locks.hold("presence", 1):
                assert len(locks) == 1

        assert len(locks) == 0

    def test_distinct_keys_do_not_block(self):
        locks = KeyedLock(timeout=0.1)

        def other_pair():
            with locks.hold("counter", 2, 1):
                return len(locks)

        with locks.hold("counter", 1, 2):
            with ThreadPoolExecutor(max_workers=1) as pool:
                assert pool.submit(other_pair).result() == 2

    def test_timeout_raises_persistence_error(self):
        """
        Waiting on a busy key gives up after the timeout.

        Why it matters: Services translate PersistenceError into a
        PERSISTENCE_ERROR result; a lock wait must never hang a request.
        """
        locks = KeyedLock(timeout=0.05)

        def contend():
            with locks.hold("counter", 1, 2):
                pass

        with locks.hold("counter", 1, 2):
            with ThreadPoolExecutor(max_workers=1) as pool:
                with pytest.raises(LockAcquisitionError) as exc_info:
                    pool.submit(contend).result()

        assert isinstance(exc_info.value, PersistenceError)
        assert len(locks) == 0

    def test_serializes_critical_section(self):
        locks = KeyedLock(timeout=5.0)
        inside = []
        overlaps = []
        guard = threading.Lock()

        def critical(_):
            with locks.hold("sender", 1):
                with guard:
                    if inside:
                        overlaps.append(True)
                    inside.append(True)
                time.sleep(0.01)
                with guard:
                    inside.pop()

        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(critical, range(8)))

        assert overlaps == []
        assert len(locks) == 0

    def test_exception_in_block_releases(self):
        locks = KeyedLock(timeout=0.1)

        with pytest.raises(ValueError):
            with locks.hold("counter", 1, 2):
                raise ValueError("boom")

        with locks.hold("counter", 1, 2):
            pass


# =============================================================================
# Redis-backed locks
# =============================================================================


@pytest.fixture
def mock_redis():
    """Mock the django-redis connection used by RedisKeyedLock."""
    redis = MagicMock()
    redis.set.return_value = True
    redis.eval.return_value = 1
    with patch("chat.locks.get_redis_connection", return_value=redis):
        yield redis


class TestRedisKeyedLock:
    def test_hold_sets_and_releases_key(self, mock_redis):
        locks = RedisKeyedLock(timeout=1.0, ttl=30)

        with locks.hold("counter", 1, 2):
            mock_redis.eval.assert_not_called()

        name, token = mock_redis.set.call_args.args
        assert name == "lock:chat:counter:1:2"
        assert mock_redis.set.call_args.kwargs == {"nx": True, "ex": 30}
        mock_redis.eval.assert_called_once_with(
            RedisKeyedLock.RELEASE_SCRIPT, 1, "lock:chat:counter:1:2", token
        )

    def test_each_hold_uses_fresh_token(self, mock_redis):
        locks = RedisKeyedLock(timeout=1.0)

        with locks.hold("presence", 1):
            pass
        with locks.hold("presence", 1):
            pass

        first, second = (c.args[1] for c in mock_redis.set.call_args_list)
        assert first != second

    def test_reentrant_for_same_thread(self, mock_redis):
        locks = RedisKeyedLock(timeout=1.0)

        with locks.hold("sender", 1):
            with locks.hold("sender", 1):
                pass
            mock_redis.eval.assert_not_called()

        assert mock_redis.set.call_count == 1
        assert mock_redis.eval.call_count == 1

    def test_waits_for_busy_key(self, mock_redis):
        mock_redis.set.side_effect = [False, False, True]
        locks = RedisKeyedLock(timeout=1.0)

        with locks.hold("counter", 1, 2):
            pass

        assert mock_redis.set.call_count == 3

    def test_timeout_raises_lock_acquisition_error(self, mock_redis):
        """
        A key held by another process fails the section after the timeout.

        Why it matters: The service reports PERSISTENCE_ERROR instead of
        hanging the request behind a stuck worker.
        """
        mock_redis.set.return_value = False
        locks = RedisKeyedLock(timeout=0.1)

        with pytest.raises(LockAcquisitionError) as exc_info:
            with locks.hold("counter", 1, 2):
                pass

        assert exc_info.value.details["key"] == "lock:chat:counter:1:2"
        assert exc_info.value.details["timeout"] == 0.1
        mock_redis.eval.assert_not_called()

    def test_redis_outage_is_persistence_error(self, mock_redis):
        mock_redis.set.side_effect = RedisConnectionError("refused")
        locks = RedisKeyedLock(timeout=1.0)

        with pytest.raises(PersistenceError):
            with locks.hold("presence", 3):
                pass

    def test_exception_in_block_releases(self, mock_redis):
        locks = RedisKeyedLock(timeout=1.0)

        with pytest.raises(ValueError):
            with locks.hold("counter", 1, 2):
                raise ValueError("boom")

        mock_redis.eval.assert_called_once()


class TestLockRegistryWiring:
    @pytest.fixture(autouse=True)
    def fresh_registry(self):
        get_lock_registry.cache_clear()
        yield
        get_lock_registry.cache_clear()

    def test_in_process_without_redis(self, settings):
        settings.REDIS_URL = ""

        assert isinstance(get_lock_registry(), KeyedLock)

    def test_redis_backed_when_configured(self, settings):
        settings.REDIS_URL = "redis://localhost:6379/0"
        settings.CHAT_PAIR_LOCK_TIMEOUT_SECONDS = 2.5

        registry = get_lock_registry()

        assert isinstance(registry, RedisKeyedLock)
        assert registry.timeout == 2.5

    def test_service_sections_lock_through_redis(self, mock_redis):
        """
        A send takes the sender and counter keys in Redis.

        Why it matters: With several worker processes, only a shared lock
        keeps two processes from interleaving on the same counter pair.
        """
        service = ConversationService(
            messages=InMemoryMessageStore(),
            counters=InMemoryCounterStore(),
            presence=InMemoryPresenceStore(),
            users=InMemoryUserDirectory([1, 2]),
            publisher=RecordingPublisher(),
            locks=RedisKeyedLock(timeout=1.0),
        )

        result = service.send_message(1, 2, content="hi")

        assert result.success
        assert [c.args[0] for c in mock_redis.set.call_args_list] == [
            "lock:chat:sender:1",
            "lock:chat:counter:1:2",
        ]
        assert mock_redis.eval.call_count == 2
