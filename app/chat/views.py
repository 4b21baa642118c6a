"""
API views for chat.

URL Structure:
    /api/v1/chat/messages/                      POST
    /api/v1/chat/messages/{id}/                 PATCH, DELETE
    /api/v1/chat/conversations/{user_id}/       GET
    /api/v1/chat/search/                        GET
    /api/v1/chat/contacts/                      GET
    /api/v1/chat/focus/                         POST
    /api/v1/chat/presence/                      POST
    /api/v1/chat/presence/status-message/       PUT
    /api/v1/auth/token/                         POST (login)
    /api/v1/auth/logout/                        POST

Design Decisions:
    - Views only parse input and render output; ConversationService holds
      the rules
    - The acting user is always request.user, never a body field
    - Service error codes map to HTTP statuses through ERROR_STATUS
"""

from __future__ import annotations

from django.contrib.auth.signals import user_logged_in, user_logged_out
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.views import TokenObtainPairView

from chat.repositories import translate_database_errors
from chat.serializers import (
    ContactSerializer,
    ConversationHistorySerializer,
    FocusChangeSerializer,
    FocusSerializer,
    HistoryQuerySerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    PresenceSerializer,
    PresenceSetSerializer,
    SearchQuerySerializer,
    StatusMessageSerializer,
)
from chat.services import ConversationService, get_conversation_service
from core.exceptions import PersistenceError

ERROR_STATUS = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "PERSISTENCE_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_response(result) -> Response:
    """Render a failed ServiceResult with the status for its error code."""
    return Response(
        result.to_response(),
        status=ERROR_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


def lazy_response(render, action: str) -> Response:
    """
    Render a result whose queryset is evaluated only now.

    History and search hand back lazy querysets, so a database failure
    shows up while serializing. It is reported as PERSISTENCE_ERROR, the
    same as a failure inside the service.
    """
    try:
        with translate_database_errors(action):
            return Response(render())
    except PersistenceError as e:
        return error_response(ConversationService.handle_exception(e, action))


# =============================================================================
# Messages
# =============================================================================


class MessageCreateView(APIView):
    """Send a text or GIF message to another user."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="send_message",
        summary="Send a message",
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Invalid message"),
        },
        tags=["Chat - Messages"],
    )
    def post(self, request):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = get_conversation_service().send_message(
            sender_id=request.user.id,
            receiver_id=data["receiver_id"],
            content=data.get("content"),
            gif_url=data.get("gif_url"),
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data).data, status=status.HTTP_201_CREATED)


class MessageDetailView(APIView):
    """Edit or delete one of your own messages."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="edit_message",
        summary="Edit a message",
        request=MessageEditSerializer,
        responses={
            200: MessageSerializer,
            400: OpenApiResponse(description="Invalid content or GIF message"),
            403: OpenApiResponse(description="Not the sender"),
            404: OpenApiResponse(description="Message not found"),
        },
        tags=["Chat - Messages"],
    )
    def patch(self, request, pk):
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_conversation_service().edit_message(
            message_id=pk,
            requesting_user_id=request.user.id,
            new_content=serializer.validated_data["content"],
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data).data)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete a message",
        responses={
            200: MessageSerializer,
            403: OpenApiResponse(description="Not the sender"),
            404: OpenApiResponse(description="Message not found"),
        },
        tags=["Chat - Messages"],
    )
    def delete(self, request, pk):
        result = get_conversation_service().delete_message(
            message_id=pk,
            requesting_user_id=request.user.id,
        )
        if not result.success:
            return error_response(result)

        return Response(MessageSerializer(result.data).data)


# =============================================================================
# History and search
# =============================================================================


class ConversationHistoryView(APIView):
    """Messages exchanged with one user, most recent window first."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="conversation_history",
        summary="Get conversation history",
        parameters=[
            OpenApiParameter("before", OpenApiTypes.DATETIME, description="Only messages sent before this time"),
            OpenApiParameter("count", OpenApiTypes.INT, description="Number of messages (default 20)"),
            OpenApiParameter("sort", OpenApiTypes.STR, enum=["asc", "desc"], description="Order of the returned window"),
        ],
        responses={
            200: ConversationHistorySerializer,
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Conversations"],
    )
    def get(self, request, user_id):
        query = HistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        result = get_conversation_service().get_conversation_history(
            request.user.id,
            user_id,
            before=params.get("before"),
            limit=params["count"],
            sort=params["sort"],
        )
        if not result.success:
            return error_response(result)

        return lazy_response(
            lambda: ConversationHistorySerializer(result.data).data,
            "load conversation history",
        )


class MessageSearchView(APIView):
    """Search your own sent and received messages."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_messages",
        summary="Search messages",
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, description="Case-insensitive substring"),
        ],
        responses={200: MessageSerializer(many=True)},
        tags=["Chat - Conversations"],
    )
    def get(self, request):
        query = SearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = get_conversation_service().search_conversations(
            request.user.id, query.validated_data["q"]
        )
        if not result.success:
            return error_response(result)

        return lazy_response(
            lambda: MessageSerializer(result.data, many=True).data,
            "search messages",
        )


class ContactListView(APIView):
    """Other users with your unread count from each and their presence."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_contacts",
        summary="List contacts",
        responses={200: ContactSerializer(many=True)},
        tags=["Chat - Conversations"],
    )
    def get(self, request):
        result = get_conversation_service().list_contacts(request.user.id)
        if not result.success:
            return error_response(result)

        return Response(ContactSerializer(result.data, many=True).data)


# =============================================================================
# Focus and presence
# =============================================================================


class FocusView(APIView):
    """Open a conversation (marks it read) or close it with a null peer."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="change_focus",
        summary="Change open conversation",
        request=FocusSerializer,
        responses={
            200: FocusChangeSerializer,
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Presence"],
    )
    def post(self, request):
        serializer = FocusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_conversation_service().change_focus(
            request.user.id, serializer.validated_data["peer_id"]
        )
        if not result.success:
            return error_response(result)

        return Response(FocusChangeSerializer(result.data).data)


class PresenceView(APIView):
    """Set your own active flag."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="set_presence",
        summary="Set presence",
        request=PresenceSetSerializer,
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def post(self, request):
        serializer = PresenceSetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_conversation_service().set_presence(
            request.user.id, serializer.validated_data["is_active"]
        )
        if not result.success:
            return error_response(result)

        return Response(PresenceSerializer(result.data).data)


class StatusMessageView(APIView):
    """Update your status message."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="update_status_message",
        summary="Update status message",
        request=StatusMessageSerializer,
        responses={200: PresenceSerializer},
        tags=["Chat - Presence"],
    )
    def put(self, request):
        serializer = StatusMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_conversation_service().update_status_message(
            request.user.id, serializer.validated_data["status_message"]
        )
        if not result.success:
            return error_response(result)

        return Response(PresenceSerializer(result.data).data)


# =============================================================================
# Login / logout
# =============================================================================


class LoginView(TokenObtainPairView):
    """
    Issue a JWT pair and announce the login.

    Sends django's user_logged_in signal, which marks the user active
    (see chat.signals).
    """

    @extend_schema(operation_id="login", tags=["Auth"])
    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            raise InvalidToken(e.args[0]) from e

        user_logged_in.send(
            sender=serializer.user.__class__, request=request, user=serializer.user
        )
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class LogoutView(APIView):
    """Announce a logout, which marks the user inactive."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="logout",
        request=None,
        responses={204: None},
        tags=["Auth"],
    )
    def post(self, request):
        user_logged_out.send(
            sender=request.user.__class__, request=request, user=request.user
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
