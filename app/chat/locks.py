"""
Keyed locks for chat critical sections.

A read-modify-write on an unread counter pair, a presence row or a sender's
timestamp sequence must not interleave with another request touching the
same key. Two registries share one ``hold(*key)`` interface:

1. **KeyedLock**
   - One re-entrant threading lock per key, dropped once nobody holds or
     waits on it
   - Serializes threads inside one process
   - Used when no Redis server is configured (development, tests)

2. **RedisKeyedLock**
   - One Redis key per lock (SET NX with a TTL, token-checked release)
   - Serializes every process connected to the same Redis
   - Used when ``REDIS_URL`` is set

Database row locks (select_for_update) guard the same rows on databases
that support them; these registries also cover the sender timestamp
sequence and SQLite, where row locks are not available.

Usage:
    from chat.locks import KeyedLock

    locks = KeyedLock(timeout=5.0)

    with locks.hold("counter", sender_id, receiver_id):
        ...  # Only one holder per (sender, receiver) in here

Note:
    One registry per process. The service wiring creates it once and
    injects it; core code never reaches for a module global.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid as uuid_module
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django_redis import get_redis_connection
from redis.exceptions import RedisError

from chat.constants import LOCK_CONFIG
from core.exceptions import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Generator, Hashable

    from redis import Redis

logger = logging.getLogger(__name__)


class LockAcquisitionError(PersistenceError):
    """Raised when a keyed lock is not acquired within the timeout."""


# =============================================================================
# In-process locks
# =============================================================================


@dataclass
class _Entry:
    lock: threading.RLock = field(default_factory=threading.RLock)
    users: int = 0


class KeyedLock:
    """
    Registry of per-key re-entrant locks with bounded waiting.

    Args:
        timeout: Maximum seconds to wait for a key before giving up
    """

    def __init__(self, timeout: float = LOCK_CONFIG.DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    @contextmanager
    def hold(self, *key: Hashable) -> Generator[None, None, None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        Raises:
            LockAcquisitionError: If the lock is busy for longer than timeout
        """
        entry = self._checkout(key)
        acquired = entry.lock.acquire(timeout=self.timeout)
        try:
            if not acquired:
                logger.warning(
                    "Timed out after %ss waiting for chat lock %r", self.timeout, key
                )
                raise LockAcquisitionError(
                    f"Timed out waiting for lock on {key!r}",
                    details={"key": repr(key), "timeout": self.timeout},
                )
            yield
        finally:
            if acquired:
                entry.lock.release()
            self._checkin(key, entry)

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)


# =============================================================================
# Redis locks
# =============================================================================


class RedisKeyedLock:
    """
    Per-key locks stored in Redis, shared across processes.

    Each key becomes ``lock:chat:<part>:<part>...`` holding a random token.
    The TTL frees a key whose holder crashed; release only deletes the key
    if it still holds our token. A thread holding a key may hold it again
    without another round trip.

    Args:
        timeout: Maximum seconds to wait for a key before giving up
        ttl: Seconds before an unreleased key expires on its own
        alias: django-redis connection alias (a CACHES entry)
    """

    # Atomic check-and-delete
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(
        self,
        timeout: float = LOCK_CONFIG.DEFAULT_TIMEOUT_SECONDS,
        ttl: int = LOCK_CONFIG.REDIS_TTL_SECONDS,
        alias: str = "default",
    ) -> None:
        self.timeout = timeout
        self.ttl = ttl
        self.alias = alias
        self._local = threading.local()
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        """Get Redis connection (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis_connection(self.alias)
        return self._redis

    def _held(self) -> dict[str, list]:
        """This thread's held keys: name -> [token, depth]."""
        held = getattr(self._local, "held", None)
        if held is None:
            held = self._local.held = {}
        return held

    @staticmethod
    def key_name(key: tuple[Hashable, ...]) -> str:
        return "lock:chat:" + ":".join(str(part) for part in key)

    def _acquire(self, name: str) -> str:
        token = str(uuid_module.uuid4())
        deadline = time.monotonic() + self.timeout
        try:
            redis = self._get_redis()
            while not redis.set(name, token, nx=True, ex=self.ttl):
                if time.monotonic() >= deadline:
                    logger.warning(
                        "Timed out after %ss waiting for chat lock %s",
                        self.timeout,
                        name,
                    )
                    raise LockAcquisitionError(
                        f"Failed to acquire lock '{name}' within {self.timeout}s",
                        details={"key": name, "timeout": self.timeout},
                    )
                time.sleep(LOCK_CONFIG.REDIS_RETRY_INTERVAL_SECONDS)
        except RedisError as e:
            raise LockAcquisitionError(
                f"Failed to acquire lock '{name}'",
                details={"key": name, "original_error": str(e)},
            ) from e
        return token

    def _release(self, name: str, token: str) -> None:
        try:
            self._get_redis().eval(self.RELEASE_SCRIPT, 1, name, token)
        except RedisError as e:
            raise PersistenceError(
                f"Failed to release lock '{name}'",
                details={"key": name, "original_error": str(e)},
            ) from e

    @contextmanager
    def hold(self, *key: Hashable) -> Generator[None, None, None]:
        """
        Hold the Redis lock for ``key`` for the duration of the block.

        Raises:
            LockAcquisitionError: If the key stays taken for longer than
                timeout or Redis cannot be reached
        """
        name = self.key_name(key)
        held = self._held()
        if name in held:
            held[name][1] += 1
        else:
            held[name] = [self._acquire(name), 1]
        try:
            yield
        finally:
            entry = held[name]
            entry[1] -= 1
            if entry[1] == 0:
                del held[name]
                self._release(name, entry[0])


__all__ = [
    "KeyedLock",
    "LockAcquisitionError",
    "RedisKeyedLock",
]
