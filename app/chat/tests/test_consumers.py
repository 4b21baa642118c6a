"""
Tests for the chat WebSocket consumer and JWT middleware.

Tests cover:
- Connection authentication (token query string, subprotocol, anonymous)
- Broadcast events forwarded to every connected client
- Client frames: message send, focus change, errors

The async scenarios run through async_to_sync so the suite needs no async
test plugin. Scenarios that reach the database use transactional test
databases because the consumer queries from its own sync context.
"""

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.tokens import AccessToken

from chat.constants import EVENTS, REALTIME_CONFIG
from chat.consumers import ChatConsumer
from chat.middleware import JWTAuthMiddleware, get_token_from_scope
from chat.models import Message
from chat.routing import websocket_urlpatterns
from chat.tests.factories import UserFactory

WS_PATH = "/ws/chat/"


@pytest.fixture(autouse=True)
def fresh_channel_layer(settings):
    """A new in-memory channel layer per test."""
    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }


def consumer_for(user):
    communicator = WebsocketCommunicator(ChatConsumer.as_asgi(), WS_PATH)
    communicator.scope["user"] = user
    return communicator


def authenticated_app():
    return JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


# =============================================================================
# Token extraction
# =============================================================================


class TestGetTokenFromScope:
    def test_query_string(self):
        scope = {"query_string": b"token=abc.def&other=1"}

        assert get_token_from_scope(scope) == "abc.def"

    def test_subprotocol(self):
        scope = {"query_string": b"", "subprotocols": ["jwt", "abc.def"]}

        assert get_token_from_scope(scope) == "abc.def"

    def test_missing(self):
        assert get_token_from_scope({"query_string": b""}) is None
        assert get_token_from_scope({"subprotocols": ["graphql-ws"]}) is None


# =============================================================================
# Connection
# =============================================================================


@pytest.mark.django_db(transaction=True)
class TestConnection:
    def test_anonymous_is_rejected(self):
        async def scenario():
            communicator = consumer_for(AnonymousUser())
            connected, code = await communicator.connect()
            return connected, code

        connected, code = async_to_sync(scenario)()

        assert connected is False
        assert code == 4001

    def test_authenticated_joins_broadcast(self):
        """
        Every connected client receives every chat event.

        Why it matters: Fan-out is a single group broadcast; a client
        outside the group would never see new messages.
        """
        user = UserFactory.build(id=1)

        async def scenario():
            communicator = consumer_for(user)
            connected, _ = await communicator.connect()
            await get_channel_layer().group_send(
                REALTIME_CONFIG.BROADCAST_GROUP,
                {
                    "type": REALTIME_CONFIG.HANDLER_TYPE,
                    "event": EVENTS.PRESENCE_CHANGED,
                    "payload": {"user_id": 2, "is_active": True},
                },
            )
            frame = await communicator.receive_json_from()
            await communicator.disconnect()
            return connected, frame

        connected, frame = async_to_sync(scenario)()

        assert connected is True
        assert frame == {
            "event": EVENTS.PRESENCE_CHANGED,
            "payload": {"user_id": 2, "is_active": True},
        }

    def test_disconnected_client_leaves_group(self):
        user = UserFactory.build(id=1)

        async def scenario():
            communicator = consumer_for(user)
            await communicator.connect()
            await communicator.disconnect()
            layer = get_channel_layer()
            return layer.groups.get(REALTIME_CONFIG.BROADCAST_GROUP, {})

        assert async_to_sync(scenario)() == {}

    def test_unknown_frame_type_gets_error(self):
        user = UserFactory.build(id=1)

        async def scenario():
            communicator = consumer_for(user)
            await communicator.connect()
            await communicator.send_json_to({"type": "typing"})
            frame = await communicator.receive_json_from()
            await communicator.disconnect()
            return frame

        frame = async_to_sync(scenario)()

        assert frame["event"] == "error"
        assert frame["payload"]["error_code"] == "VALIDATION_ERROR"

    def test_non_integer_receiver_gets_error(self):
        user = UserFactory.build(id=1)

        async def scenario():
            communicator = consumer_for(user)
            await communicator.connect()
            await communicator.send_json_to(
                {"type": "message", "receiver_id": "2", "content": "hi"}
            )
            frame = await communicator.receive_json_from()
            await communicator.disconnect()
            return frame

        frame = async_to_sync(scenario)()

        assert frame["payload"]["error"] == "receiver_id must be an integer"


# =============================================================================
# JWT middleware
# =============================================================================


@pytest.mark.django_db(transaction=True)
class TestJWTAuthMiddleware:
    def test_valid_token_connects(self):
        user = UserFactory()
        token = AccessToken.for_user(user)

        async def scenario():
            communicator = WebsocketCommunicator(
                authenticated_app(), f"{WS_PATH}?token={token}"
            )
            connected, _ = await communicator.connect()
            await communicator.disconnect()
            return connected

        assert async_to_sync(scenario)() is True

    def test_invalid_token_rejected(self):
        async def scenario():
            communicator = WebsocketCommunicator(
                authenticated_app(), f"{WS_PATH}?token=not-a-jwt"
            )
            return await communicator.connect()

        connected, code = async_to_sync(scenario)()

        assert connected is False
        assert code == 4001

    def test_inactive_user_rejected(self):
        user = UserFactory(is_active=False)
        token = AccessToken.for_user(user)

        async def scenario():
            communicator = WebsocketCommunicator(
                authenticated_app(), f"{WS_PATH}?token={token}"
            )
            return await communicator.connect()

        connected, _ = async_to_sync(scenario)()

        assert connected is False


# =============================================================================
# Client frames
# =============================================================================


@pytest.mark.django_db(transaction=True)
class TestClientFrames:
    def test_message_frame_sends_and_broadcasts(self):
        alice, bob = UserFactory(), UserFactory()

        async def scenario():
            communicator = consumer_for(alice)
            await communicator.connect()
            await communicator.send_json_to(
                {"type": "message", "receiver_id": bob.id, "content": "over the wire"}
            )
            first = await communicator.receive_json_from(timeout=5)
            second = await communicator.receive_json_from(timeout=5)
            await communicator.disconnect()
            return first, second

        first, second = async_to_sync(scenario)()

        assert first["event"] == EVENTS.MESSAGE_NEW
        assert first["payload"]["content"] == "over the wire"
        assert first["payload"]["sender_id"] == alice.id
        assert second == {
            "event": EVENTS.UNREAD_COUNT_CHANGED,
            "payload": {
                "sender_id": alice.id,
                "receiver_id": bob.id,
                "message_count": 1,
                "is_read": False,
            },
        }
        assert Message.objects.filter(sender=alice, receiver=bob).count() == 1

    def test_invalid_message_frame_returns_service_error(self):
        alice = UserFactory()

        async def scenario():
            communicator = consumer_for(alice)
            await communicator.connect()
            await communicator.send_json_to(
                {"type": "message", "receiver_id": alice.id, "content": "me"}
            )
            frame = await communicator.receive_json_from(timeout=5)
            await communicator.disconnect()
            return frame

        frame = async_to_sync(scenario)()

        assert frame["event"] == "error"
        assert frame["payload"]["error_code"] == "VALIDATION_ERROR"
        assert not Message.objects.exists()

    def test_focus_frame_replies_with_focus(self):
        alice, bob = UserFactory(), UserFactory()

        async def scenario():
            communicator = consumer_for(alice)
            await communicator.connect()
            await communicator.send_json_to({"type": "focus", "peer_id": bob.id})
            frames = [await communicator.receive_json_from(timeout=5)]
            while not await communicator.receive_nothing(timeout=0.2):
                frames.append(await communicator.receive_json_from())
            await communicator.disconnect()
            return frames

        frames = async_to_sync(scenario)()

        assert {
            "event": "focus.changed",
            "payload": {"peer_id": bob.id, "previous_peer_id": None},
        } in frames

    def test_focus_unknown_peer_returns_error(self):
        alice = UserFactory()

        async def scenario():
            communicator = consumer_for(alice)
            await communicator.connect()
            await communicator.send_json_to({"type": "focus", "peer_id": 999999})
            frame = await communicator.receive_json_from(timeout=5)
            await communicator.disconnect()
            return frame

        frame = async_to_sync(scenario)()

        assert frame["payload"]["error_code"] == "NOT_FOUND"
