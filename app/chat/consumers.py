"""
WebSocket consumers for the chat application.

Consumers:
    ChatConsumer: Realtime stream of chat events for an authenticated user

Authentication:
    chat.middleware.JWTAuthMiddleware attaches the user to scope["user"].
    Anonymous connections are closed with code 4001.

Channel Groups:
    Every connection joins the single broadcast group and receives every
    event; clients filter by the ids in the payload.

Frames from client:
    {"type": "message", "receiver_id": 2, "content": "Hello!"}
    {"type": "message", "receiver_id": 2, "gif_url": "https://..."}
    {"type": "focus", "peer_id": 2}        # null closes the conversation

Frames to client:
    {"event": "message.new", "payload": {...}}       # any chat event
    {"event": "focus.changed", "payload": {...}}     # reply to focus
    {"event": "error", "payload": {"error": ..., "error_code": ...}}
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from chat.constants import REALTIME_CONFIG
from chat.services import get_conversation_service

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer forwarding chat events to one client.

    Attributes:
        group_name: Channel layer group joined on connect
    """

    group_name = REALTIME_CONFIG.BROADCAST_GROUP

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.joined = False

    async def connect(self):
        user = self.scope.get("user")

        if not user or isinstance(user, AnonymousUser):
            logger.warning("Rejected unauthenticated chat connection")
            await self.close(code=4001)
            return

        await self.channel_layer.group_add(self.group_name, self.channel_name)
        self.joined = True

        await self.accept()
        logger.info(f"User {user.id} connected to chat stream")

    async def disconnect(self, close_code):
        if self.joined:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(
                f"User {self.scope['user'].id} disconnected from chat stream "
                f"(code {close_code})"
            )

    async def receive_json(self, content, **kwargs):
        frame_type = content.get("type") if isinstance(content, dict) else None

        if frame_type == "message":
            await self._handle_message(content)
        elif frame_type == "focus":
            await self._handle_focus(content)
        else:
            await self._send_error(
                f"Unknown message type: {frame_type}", "VALIDATION_ERROR"
            )

    async def _handle_message(self, content):
        receiver_id = content.get("receiver_id")
        if not isinstance(receiver_id, int):
            await self._send_error("receiver_id must be an integer", "VALIDATION_ERROR")
            return

        result = await self._send_message(
            receiver_id, content.get("content"), content.get("gif_url")
        )
        # On success the message.new broadcast reaches this client too
        if not result.success:
            await self._send_error(result.error, result.error_code)

    async def _handle_focus(self, content):
        peer_id = content.get("peer_id")
        if peer_id is not None and not isinstance(peer_id, int):
            await self._send_error("peer_id must be an integer or null", "VALIDATION_ERROR")
            return

        result = await self._change_focus(peer_id)
        if not result.success:
            await self._send_error(result.error, result.error_code)
            return

        focus = result.data
        await self.send_json(
            {
                "event": "focus.changed",
                "payload": {
                    "peer_id": focus.peer_id,
                    "previous_peer_id": focus.previous_peer_id,
                },
            }
        )

    async def _send_error(self, error: str | None, error_code: str | None):
        await self.send_json(
            {"event": "error", "payload": {"error": error, "error_code": error_code}}
        )

    async def chat_event(self, event):
        """Forward a chat.event from the channel layer to the client."""
        await self.send_json({"event": event["event"], "payload": event["payload"]})

    @database_sync_to_async
    def _send_message(self, receiver_id: int, text: str | None, gif_url: str | None):
        return get_conversation_service().send_message(
            self.scope["user"].id, receiver_id, content=text, gif_url=gif_url
        )

    @database_sync_to_async
    def _change_focus(self, peer_id: int | None):
        return get_conversation_service().change_focus(self.scope["user"].id, peer_id)
