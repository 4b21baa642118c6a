"""
Presence and focus tracking.

Tracks per user whether they are online (``is_active``), which
conversation their client has open (``focused_peer``) and their status
message. Writes are serialized per user; reads never block.

Usage:
    tracker.set_active(user.id, True)       # login
    previous = tracker.set_focus(user.id, peer.id)
    tracker.is_active(peer.id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat.constants import PRESENCE_CONFIG
from chat.types import PresenceSnapshot
from core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from chat.ledger import UnreadCounterLedger
    from chat.notifications import NotificationFanout
    from chat.protocols import LockRegistry, PresenceStore

logger = logging.getLogger(__name__)


class PresenceTracker:
    """
    Reads and writes user presence.

    Args:
        store: Presence rows
        ledger: Informed when a user goes offline
        fanout: Publishes presence and status message events
        locks: Process-wide keyed lock registry
    """

    def __init__(
        self,
        store: PresenceStore,
        ledger: UnreadCounterLedger,
        fanout: NotificationFanout,
        locks: LockRegistry,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.fanout = fanout
        self.locks = locks

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def set_active(self, user_id: int, active: bool) -> PresenceSnapshot:
        """
        Set the user's live flag and broadcast it.

        The event goes out even if the flag did not change, so clients that
        missed an update resynchronize. Focus is left as it is.
        """
        with self.locks.hold("presence", user_id):
            with self.store.for_update(user_id) as presence:
                presence.is_active = active
                snapshot = PresenceSnapshot.from_record(presence)

        logger.info("User %s is now %s", user_id, "active" if active else "inactive")
        self.fanout.presence_changed(snapshot)

        if not active:
            self.ledger.on_user_went_offline(user_id)
        return snapshot

    def set_focus(self, user_id: int, peer_id: int | None) -> int | None:
        """Record the conversation the user has open. Returns the previous peer."""
        with self.locks.hold("presence", user_id):
            with self.store.for_update(user_id) as presence:
                previous = presence.focused_peer_id
                presence.focused_peer_id = peer_id
        return previous

    def update_status_message(self, user_id: int, text: str) -> PresenceSnapshot:
        """
        Store and broadcast the user's status message.

        Raises:
            ValidationError: If the text is longer than allowed
        """
        text = (text or "").strip()
        if len(text) > PRESENCE_CONFIG.MAX_STATUS_MESSAGE_LENGTH:
            raise ValidationError(
                f"Status message must be at most "
                f"{PRESENCE_CONFIG.MAX_STATUS_MESSAGE_LENGTH} characters",
                details={"max_length": PRESENCE_CONFIG.MAX_STATUS_MESSAGE_LENGTH},
            )

        with self.locks.hold("presence", user_id):
            with self.store.for_update(user_id) as presence:
                presence.status_message = text
                snapshot = PresenceSnapshot.from_record(presence)

        self.fanout.status_message_updated(snapshot)
        return snapshot

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get(self, user_id: int) -> PresenceSnapshot:
        return self.store.get(user_id)

    def get_many(self, user_ids: Iterable[int]) -> dict[int, PresenceSnapshot]:
        return self.store.get_many(user_ids)

    def is_active(self, user_id: int) -> bool:
        return self.store.get(user_id).is_active

    def focused_peer(self, user_id: int) -> int | None:
        return self.store.get(user_id).focused_peer_id


__all__ = [
    "PresenceTracker",
]
