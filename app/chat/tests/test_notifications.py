"""
Tests for the notification fan-out and channel layer publisher.

Tests cover:
- Payload shape of each event kind
- Failure isolation (a broken transport never raises)
- Delivery through the channel layer group
"""

from datetime import datetime
from datetime import timezone as dt_timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chat.constants import EVENTS, REALTIME_CONFIG
from chat.models import Message
from chat.notifications import ChannelLayerPublisher, NotificationFanout, message_payload
from chat.tests.fakes import RecordingPublisher
from chat.types import CounterChange, PresenceSnapshot


@pytest.fixture
def message():
    return Message(
        id=7,
        sender_id=1,
        receiver_id=2,
        content="hello",
        timestamp=datetime(2024, 5, 1, 9, 30, tzinfo=dt_timezone.utc),
    )


class TestPayloads:
    def test_message_payload_is_plain_data(self, message):
        assert message_payload(message) == {
            "id": 7,
            "sender_id": 1,
            "receiver_id": 2,
            "content": "hello",
            "gif_url": None,
            "timestamp": "2024-05-01T09:30:00+00:00",
            "edited_at": None,
        }

    def test_edited_message_includes_edit_time(self, message):
        message.edited_at = datetime(2024, 5, 1, 10, 0, tzinfo=dt_timezone.utc)

        assert message_payload(message)["edited_at"] == "2024-05-01T10:00:00+00:00"

    def test_each_method_publishes_its_event(self, message):
        publisher = RecordingPublisher()
        fanout = NotificationFanout(publisher)
        presence = PresenceSnapshot(user_id=1, is_active=True, status_message="Hi")

        fanout.new_message(message)
        fanout.message_edited(message)
        fanout.message_deleted(message)
        fanout.count_changed(CounterChange(1, 2, 3, False, True))
        fanout.presence_changed(presence)
        fanout.status_message_updated(presence)

        assert publisher.names() == [
            EVENTS.MESSAGE_NEW,
            EVENTS.MESSAGE_EDITED,
            EVENTS.MESSAGE_DELETED,
            EVENTS.UNREAD_COUNT_CHANGED,
            EVENTS.PRESENCE_CHANGED,
            EVENTS.STATUS_MESSAGE_UPDATED,
        ]
        assert publisher.of(EVENTS.UNREAD_COUNT_CHANGED) == [
            {"sender_id": 1, "receiver_id": 2, "message_count": 3, "is_read": False}
        ]


class TestFailureIsolation:
    def test_transport_error_is_logged_not_raised(self, message):
        """
        A broken transport returns False instead of raising.

        Why it matters: The message is already stored; a notification
        outage must not turn a successful send into an error.
        """
        fanout = NotificationFanout(RecordingPublisher(fail=True))

        with patch("chat.notifications.logger") as logger:
            assert fanout.new_message(message) is False

        logger.exception.assert_called_once()
        assert EVENTS.MESSAGE_NEW in logger.exception.call_args.args

    def test_success_returns_true(self, message):
        assert NotificationFanout(RecordingPublisher()).new_message(message) is True


class TestChannelLayerPublisher:
    def test_group_send_to_broadcast_group(self):
        channel_layer = MagicMock()
        channel_layer.group_send = AsyncMock()

        with patch("chat.notifications.get_channel_layer", return_value=channel_layer):
            ChannelLayerPublisher().broadcast_to_all(
                EVENTS.PRESENCE_CHANGED, {"user_id": 1, "is_active": True}
            )

        channel_layer.group_send.assert_awaited_once_with(
            REALTIME_CONFIG.BROADCAST_GROUP,
            {
                "type": REALTIME_CONFIG.HANDLER_TYPE,
                "event": EVENTS.PRESENCE_CHANGED,
                "payload": {"user_id": 1, "is_active": True},
            },
        )

    def test_custom_group(self):
        channel_layer = MagicMock()
        channel_layer.group_send = AsyncMock()

        with patch("chat.notifications.get_channel_layer", return_value=channel_layer):
            ChannelLayerPublisher(group="chat_test").broadcast_to_all(
                EVENTS.MESSAGE_NEW, {}
            )

        assert channel_layer.group_send.await_args.args[0] == "chat_test"

    def test_missing_channel_layer_drops_event(self):
        with patch("chat.notifications.get_channel_layer", return_value=None):
            with patch("chat.notifications.logger") as logger:
                ChannelLayerPublisher().broadcast_to_all(EVENTS.MESSAGE_NEW, {})

        logger.warning.assert_called_once()
