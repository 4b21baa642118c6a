"""
Realtime notification fan-out for chat events.

Every event goes to every connected client through one channel layer
group; clients pick out what concerns them. Publishing is fire-and-forget:
there is no acknowledgement and no retry, and a transport failure is logged
without failing the operation that triggered it.

Event kinds (chat.constants.EVENTS):
    message.new              a message was stored
    message.edited           a message's content changed
    message.deleted          a message was removed
    unread.count_changed     an unread counter pair changed
    presence.changed         a user's active flag was set
    status_message.updated   a user's status message changed

Frame sent to clients:
    {"event": "message.new", "payload": {...}}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from chat.constants import EVENTS, REALTIME_CONFIG

if TYPE_CHECKING:
    from typing import Any

    from chat.models import Message
    from chat.protocols import EventPublisher
    from chat.types import CounterChange, PresenceSnapshot

logger = logging.getLogger(__name__)


def message_payload(message: Message) -> dict[str, Any]:
    """Plain, channel-layer safe representation of a message."""
    return {
        "id": message.pk,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "gif_url": message.gif_url,
        "timestamp": message.timestamp.isoformat(),
        "edited_at": message.edited_at.isoformat() if message.edited_at else None,
    }


class ChannelLayerPublisher:
    """EventPublisher that group_sends to the broadcast group."""

    def __init__(self, group: str = REALTIME_CONFIG.BROADCAST_GROUP) -> None:
        self.group = group

    def broadcast_to_all(self, event: str, payload: dict[str, Any]) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.warning("No channel layer configured; dropping %s event", event)
            return

        async_to_sync(channel_layer.group_send)(
            self.group,
            {
                "type": REALTIME_CONFIG.HANDLER_TYPE,
                "event": event,
                "payload": payload,
            },
        )


class NotificationFanout:
    """
    Typed front for an EventPublisher.

    Each method returns True if the event was handed to the transport and
    False if publishing failed.
    """

    def __init__(self, publisher: EventPublisher) -> None:
        self.publisher = publisher

    def _publish(self, event: str, payload: dict[str, Any]) -> bool:
        try:
            self.publisher.broadcast_to_all(event, payload)
        except Exception:
            # Delivery is best effort; the triggering mutation already happened
            logger.exception("Failed to publish %s event", event)
            return False
        return True

    def new_message(self, message: Message) -> bool:
        return self._publish(EVENTS.MESSAGE_NEW, message_payload(message))

    def message_edited(self, message: Message) -> bool:
        return self._publish(EVENTS.MESSAGE_EDITED, message_payload(message))

    def message_deleted(self, message: Message) -> bool:
        return self._publish(EVENTS.MESSAGE_DELETED, message_payload(message))

    def count_changed(self, change: CounterChange) -> bool:
        return self._publish(EVENTS.UNREAD_COUNT_CHANGED, change.to_payload())

    def presence_changed(self, presence: PresenceSnapshot) -> bool:
        return self._publish(
            EVENTS.PRESENCE_CHANGED,
            {"user_id": presence.user_id, "is_active": presence.is_active},
        )

    def status_message_updated(self, presence: PresenceSnapshot) -> bool:
        return self._publish(
            EVENTS.STATUS_MESSAGE_UPDATED,
            {"user_id": presence.user_id, "status_message": presence.status_message},
        )


__all__ = [
    "ChannelLayerPublisher",
    "NotificationFanout",
    "message_payload",
]
