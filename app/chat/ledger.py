"""
Unread counter ledger.

Owns every state transition of the unread counters. A counter pair
(sender, receiver) holds C, the number of sender's messages the receiver
has not read, and R, whether the receiver is caught up with the sender.

Transitions:
    on_message_sent       receiver active and focused on sender -> C=0, R=True
                          otherwise -> C+=1, R=False
    on_message_deleted    C-=1 if C>0, R untouched
    on_focus_change       (new peer -> user) C=0, R=True
                          (previous peer -> user) R=False, C untouched
    on_user_went_offline  nothing

Every transition runs under the pair's keyed lock and inside the store's
locked read-modify-write, so concurrent sends to the same pair never lose
an increment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat.types import CounterChange

if TYPE_CHECKING:
    from chat.models import UnreadMessageCount
    from chat.protocols import LockRegistry, PresenceStore, UnreadCounterStore

logger = logging.getLogger(__name__)


def _change(
    record: UnreadMessageCount, before: tuple[int, bool]
) -> CounterChange:
    return CounterChange(
        sender_id=record.sender_id,
        receiver_id=record.receiver_id,
        message_count=record.message_count,
        is_read=record.is_read,
        changed=(record.message_count, record.is_read) != before,
    )


class UnreadCounterLedger:
    """
    Applies unread counter transitions.

    Args:
        counters: Store holding the counter rows
        presence: Presence reader, consulted to decide whether a new
            message is read on arrival
        locks: Process-wide keyed lock registry
    """

    def __init__(
        self,
        counters: UnreadCounterStore,
        presence: PresenceStore,
        locks: LockRegistry,
    ) -> None:
        self.counters = counters
        self.presence = presence
        self.locks = locks

    def on_message_sent(self, sender_id: int, receiver_id: int) -> CounterChange:
        """
        Count a new message from sender in receiver's inbox.

        Only a receiver that is active AND has the conversation with exactly
        this sender open reads the message on arrival.
        """
        with self.locks.hold("counter", sender_id, receiver_id):
            with self.counters.for_update(sender_id, receiver_id) as record:
                before = (record.message_count, record.is_read)
                receiver = self.presence.get(receiver_id)
                if receiver.is_active and receiver.focused_peer_id == sender_id:
                    record.message_count = 0
                    record.is_read = True
                else:
                    record.message_count += 1
                    record.is_read = False
                change = _change(record, before)

        logger.debug(
            "Unread %s -> %s now %s (read=%s)",
            sender_id,
            receiver_id,
            change.message_count,
            change.is_read,
        )
        return change

    def on_message_deleted(self, sender_id: int, receiver_id: int) -> CounterChange:
        """Take one message back out of the receiver's unread count."""
        with self.locks.hold("counter", sender_id, receiver_id):
            with self.counters.for_update(sender_id, receiver_id) as record:
                before = (record.message_count, record.is_read)
                if record.message_count > 0:
                    record.message_count -= 1
                change = _change(record, before)
        return change

    def on_focus_change(
        self,
        user_id: int,
        new_peer_id: int | None,
        previous_peer_id: int | None,
    ) -> list[CounterChange]:
        """
        Mark the newly opened conversation read and the closed one unread.

        Returns the changes for every pair touched, new peer first.
        """
        changes = []

        if new_peer_id is not None:
            with self.locks.hold("counter", new_peer_id, user_id):
                with self.counters.for_update(new_peer_id, user_id) as record:
                    before = (record.message_count, record.is_read)
                    record.message_count = 0
                    record.is_read = True
                    changes.append(_change(record, before))

        if previous_peer_id is not None and previous_peer_id != new_peer_id:
            with self.locks.hold("counter", previous_peer_id, user_id):
                with self.counters.for_update(previous_peer_id, user_id) as record:
                    before = (record.message_count, record.is_read)
                    record.is_read = False
                    changes.append(_change(record, before))

        return changes

    def on_user_went_offline(self, user_id: int) -> list[CounterChange]:
        """
        Going offline does not touch any counter.

        Focus is kept, and since the suppression rule also requires the
        receiver to be active, messages arriving while offline are counted.
        """
        logger.debug("User %s went offline; counters unchanged", user_id)
        return []


__all__ = [
    "UnreadCounterLedger",
]
