"""
Protocol definitions for the chat core's collaborators.

The conversation service, ledger and presence tracker depend on these
interfaces only. The Django ORM implementations live in chat.repositories
and the channel layer publisher in chat.notifications; tests swap in
in-memory fakes.

Available Protocols:
    MessageStore: Message persistence and queries
    UnreadCounterStore: Unread counter rows with locked read-modify-write
    PresenceStore: Presence rows with locked read-modify-write
    UserDirectory: Existence checks and listing of users
    EventPublisher: Broadcast of realtime events
    LockRegistry: Per-key locks (chat.locks)

Usage:
    from chat.protocols import UnreadCounterStore

    def reset(counters: UnreadCounterStore, sender_id: int, receiver_id: int):
        with counters.for_update(sender_id, receiver_id) as record:
            record.message_count = 0

Note:
    - Every store method may raise core.exceptions.PersistenceError
    - ``for_update`` context managers persist the yielded record on a clean
      exit and discard changes if the block raises
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Hashable, Iterable
    from contextlib import AbstractContextManager
    from datetime import datetime
    from typing import Any

    from chat.models import Message, UnreadMessageCount, UserPresence
    from chat.types import PresenceSnapshot


@runtime_checkable
class MessageStore(Protocol):
    """Persistence of direct messages."""

    def insert(
        self,
        sender_id: int,
        receiver_id: int,
        content: str | None,
        gif_url: str | None,
        timestamp: datetime,
    ) -> Message:
        """Store a new message and return it with its generated id."""
        ...

    def get(self, message_id: int) -> Message | None:
        """Return the message or None if it does not exist."""
        ...

    def update_content(
        self, message: Message, content: str, edited_at: datetime
    ) -> Message:
        """Replace the content of an existing message."""
        ...

    def delete(self, message: Message) -> None:
        """Physically remove the message."""
        ...

    def between(
        self,
        user_a: int,
        user_b: int,
        before: datetime,
        limit: int,
        descending: bool,
    ) -> Iterable[Message]:
        """
        The ``limit`` most recent messages exchanged between two users
        with ``timestamp < before``, ordered oldest first unless
        ``descending``. The result is lazy and re-evaluable.
        """
        ...

    def search(self, user_id: int, query: str, limit: int) -> Iterable[Message]:
        """Messages the user sent or received whose content contains query."""
        ...

    def latest_timestamp(self, sender_id: int) -> datetime | None:
        """Timestamp of the sender's most recent message."""
        ...


@runtime_checkable
class UnreadCounterStore(Protocol):
    """Unread counter rows keyed by (sender, receiver)."""

    def get(self, sender_id: int, receiver_id: int) -> UnreadMessageCount | None:
        ...

    def for_update(
        self, sender_id: int, receiver_id: int
    ) -> AbstractContextManager[UnreadMessageCount]:
        """
        Load (creating with count 0, unread) and lock the pair's row.

        The caller mutates the yielded record; it is saved when the block
        exits without an exception.
        """
        ...

    def for_receiver(self, receiver_id: int) -> Iterable[UnreadMessageCount]:
        """All counter rows describing the receiver's inbox."""
        ...


@runtime_checkable
class PresenceStore(Protocol):
    """Presence rows keyed by user."""

    def get(self, user_id: int) -> PresenceSnapshot:
        """Presence of the user, defaults if no row exists."""
        ...

    def get_many(self, user_ids: Iterable[int]) -> dict[int, PresenceSnapshot]:
        ...

    def for_update(self, user_id: int) -> AbstractContextManager[UserPresence]:
        """Load (creating if missing) and lock the user's row."""
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """Read-only access to the user accounts."""

    def exists(self, user_id: int) -> bool:
        ...

    def others(self, user_id: int) -> Iterable[Any]:
        """Every user except ``user_id``."""
        ...


@runtime_checkable
class EventPublisher(Protocol):
    """Realtime transport for chat events."""

    def broadcast_to_all(self, event: str, payload: dict[str, Any]) -> None:
        """
        Deliver the event to every connected client.

        Raises whatever the transport raises; callers decide whether a
        failed publish matters.
        """
        ...


@runtime_checkable
class LockRegistry(Protocol):
    """Per-key mutual exclusion with bounded waiting."""

    def hold(self, *key: Hashable) -> AbstractContextManager[None]:
        """
        Hold ``key`` for the block.

        Raises chat.locks.LockAcquisitionError if the key stays taken past
        the registry's timeout.
        """
        ...


__all__ = [
    "MessageStore",
    "UnreadCounterStore",
    "PresenceStore",
    "UserDirectory",
    "EventPublisher",
    "LockRegistry",
]
