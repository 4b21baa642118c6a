"""
Data types passed between the chat stores, ledger, tracker and service.

Types:
    PresenceSnapshot: Read-only view of a user's presence
    CounterChange: Outcome of one unread counter transition
    FocusChange: Outcome of opening or closing a conversation
    ConversationHistory: A window of messages plus the peer's live flag
    ContactSummary: One row of the contact list

Usage:
    from chat.types import CounterChange

    change = ledger.on_message_sent(sender_id, receiver_id)
    if change.changed:
        fanout.count_changed(change)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.models import Message, UserPresence


@dataclass(frozen=True)
class PresenceSnapshot:
    """
    Presence of one user at read time.

    Unknown users read as inactive, unfocused, with no status message.
    """

    user_id: int
    is_active: bool = False
    focused_peer_id: int | None = None
    status_message: str = ""

    @classmethod
    def from_record(cls, presence: UserPresence) -> PresenceSnapshot:
        return cls(
            user_id=presence.user_id,
            is_active=presence.is_active,
            focused_peer_id=presence.focused_peer_id,
            status_message=presence.status_message,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "is_active": self.is_active,
            "status_message": self.status_message,
        }


@dataclass(frozen=True)
class CounterChange:
    """
    Result of a ledger transition on the pair (sender, receiver).

    ``message_count`` is the number of sender's messages the receiver has
    not read. ``changed`` is False when the transition left both the count
    and the flag as they were.
    """

    sender_id: int
    receiver_id: int
    message_count: int
    is_read: bool
    changed: bool

    def to_payload(self) -> dict[str, Any]:
        return {
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "message_count": self.message_count,
            "is_read": self.is_read,
        }


@dataclass(frozen=True)
class FocusChange:
    """Outcome of change_focus: new and previous focus plus touched counters."""

    user_id: int
    peer_id: int | None
    previous_peer_id: int | None
    counters: list[CounterChange] = field(default_factory=list)


@dataclass
class ConversationHistory:
    """
    Messages exchanged between two users and the peer's live flag.

    ``messages`` is a lazy, re-evaluable sequence (a QuerySet for the ORM
    store); iterating it twice runs the same query twice.
    """

    messages: Iterable[Message]
    peer_is_active: bool


@dataclass(frozen=True)
class ContactSummary:
    """
    Another user as seen from the caller's contact list.

    ``message_count`` / ``is_read`` come from the pair (contact -> caller).
    """

    user_id: int
    display_name: str
    email: str
    message_count: int
    is_read: bool
    is_active: bool
    status_message: str


__all__ = [
    "PresenceSnapshot",
    "CounterChange",
    "FocusChange",
    "ConversationHistory",
    "ContactSummary",
]
