"""
WebSocket authentication middleware.

Resolves a SimpleJWT access token to a user and stores it in
``scope["user"]``. Connections without a valid token get AnonymousUser
and are rejected by the consumer.

Token Passing Methods:
    1. Query string: ws://host/ws/chat/?token=<jwt_token>
    2. Subprotocol: Sec-WebSocket-Protocol: jwt, <jwt_token>

Usage in config/asgi.py:
    application = ProtocolTypeRouter({
        "websocket": JWTAuthMiddleware(URLRouter(websocket_urlpatterns)),
    })
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def get_token_from_scope(scope) -> str | None:
    """Token from ?token=..., falling back to the jwt subprotocol."""
    query_string = scope.get("query_string", b"").decode()
    tokens = parse_qs(query_string).get("token", [])
    if tokens:
        return tokens[0]

    subprotocols = scope.get("subprotocols", [])
    if len(subprotocols) >= 2 and subprotocols[0] == "jwt":
        return subprotocols[1]

    return None


@database_sync_to_async
def get_user_from_token(token: str):
    """User for a valid access token, AnonymousUser otherwise."""
    User = get_user_model()

    try:
        access_token = AccessToken(token)
    except TokenError as e:
        logger.warning(f"Invalid JWT token on WebSocket connect: {e}")
        return AnonymousUser()

    user_id = access_token.get(api_settings.USER_ID_CLAIM)
    user = User.objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first()
    if user is None:
        logger.warning(f"User {user_id} from token not found")
        return AnonymousUser()
    if not user.is_active:
        logger.warning(f"Inactive user attempted WebSocket connection: {user_id}")
        return AnonymousUser()
    return user


class JWTAuthMiddleware(BaseMiddleware):
    """Attach the token's user to the connection scope."""

    async def __call__(self, scope, receive, send):
        scope = dict(scope)
        token = get_token_from_scope(scope)
        scope["user"] = await get_user_from_token(token) if token else AnonymousUser()
        return await super().__call__(scope, receive, send)
