"""
Serializers for chat API.

Read serializers:
    MessageSerializer: A stored message
    ConversationHistorySerializer: History window plus the peer's live flag
    ContactSerializer: One contact list row
    PresenceSerializer: A user's presence
    CounterChangeSerializer / FocusChangeSerializer: Focus change outcome

Write serializers:
    MessageCreateSerializer: Send a text or GIF message
    MessageEditSerializer: Replace a message's text
    HistoryQuerySerializer: Query parameters for conversation history
    SearchQuerySerializer: Query parameter for message search
    FocusSerializer: Open / close a conversation
    PresenceSetSerializer: Set own active flag
    StatusMessageSerializer: Update own status message

Write serializers only check shape (types, required fields, lengths); the
service layer applies the business rules and reports them with error codes.
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG, PRESENCE_CONFIG
from chat.models import Message


# =============================================================================
# Messages
# =============================================================================


class MessageSerializer(serializers.ModelSerializer):
    """Message as returned by the API and in realtime payloads."""

    sender_id = serializers.IntegerField(read_only=True)
    receiver_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Message
        fields = [
            "id",
            "sender_id",
            "receiver_id",
            "content",
            "gif_url",
            "timestamp",
            "edited_at",
        ]
        read_only_fields = fields


class MessageCreateSerializer(serializers.Serializer):
    """Send a message: ``content`` or ``gif_url``, never both."""

    receiver_id = serializers.IntegerField()
    content = serializers.CharField(
        required=False,
        allow_null=True,
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
    )
    gif_url = serializers.URLField(
        required=False,
        allow_null=True,
        max_length=MESSAGE_CONFIG.MAX_GIF_URL_LENGTH,
    )


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
    )


# =============================================================================
# History and search
# =============================================================================


class HistoryQuerySerializer(serializers.Serializer):
    """Query parameters for GET conversations/{user_id}/."""

    before = serializers.DateTimeField(required=False)
    count = serializers.IntegerField(
        required=False,
        min_value=1,
        max_value=MESSAGE_CONFIG.MAX_HISTORY_LIMIT,
        default=MESSAGE_CONFIG.DEFAULT_HISTORY_LIMIT,
    )
    sort = serializers.ChoiceField(
        choices=MESSAGE_CONFIG.SORT_CHOICES,
        required=False,
        default=MESSAGE_CONFIG.SORT_ASC,
    )


class ConversationHistorySerializer(serializers.Serializer):
    messages = MessageSerializer(many=True)
    peer_is_active = serializers.BooleanField()


class SearchQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, default="")


# =============================================================================
# Contacts, presence and focus
# =============================================================================


class ContactSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    display_name = serializers.CharField()
    email = serializers.EmailField()
    message_count = serializers.IntegerField()
    is_read = serializers.BooleanField()
    is_active = serializers.BooleanField()
    status_message = serializers.CharField()


class PresenceSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    is_active = serializers.BooleanField()
    status_message = serializers.CharField()


class PresenceSetSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class StatusMessageSerializer(serializers.Serializer):
    status_message = serializers.CharField(
        allow_blank=True,
        max_length=PRESENCE_CONFIG.MAX_STATUS_MESSAGE_LENGTH,
    )


class FocusSerializer(serializers.Serializer):
    """``peer_id`` null closes the open conversation."""

    peer_id = serializers.IntegerField(allow_null=True)


class CounterChangeSerializer(serializers.Serializer):
    sender_id = serializers.IntegerField()
    receiver_id = serializers.IntegerField()
    message_count = serializers.IntegerField()
    is_read = serializers.BooleanField()


class FocusChangeSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    peer_id = serializers.IntegerField(allow_null=True)
    previous_peer_id = serializers.IntegerField(allow_null=True)
    counters = CounterChangeSerializer(many=True)
