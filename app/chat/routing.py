"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - Single realtime stream; every client receives every event

Authentication:
    JWT access token as query parameter: ?token=<jwt_access_token>
    (or subprotocols ["jwt", <token>]). See chat.middleware.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
