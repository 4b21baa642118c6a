"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Message moderation
- Unread counter inspection
- Presence inspection
"""

from django.contrib import admin

from chat.models import Message, UnreadMessageCount, UserPresence


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "sender",
        "receiver",
        "content_preview",
        "is_gif",
        "timestamp",
        "edited_at",
    ]
    list_filter = ["timestamp", "edited_at"]
    search_fields = ["content", "sender__username", "receiver__username"]
    readonly_fields = ["timestamp", "edited_at", "created_at", "updated_at"]
    raw_id_fields = ["sender", "receiver"]
    ordering = ["-timestamp"]

    @admin.display(description="Content")
    def content_preview(self, obj):
        if obj.is_gif:
            return obj.gif_url
        return obj.content[:50] + "..." if len(obj.content) > 50 else obj.content

    @admin.display(boolean=True, description="GIF")
    def is_gif(self, obj):
        return obj.is_gif


@admin.register(UnreadMessageCount)
class UnreadMessageCountAdmin(admin.ModelAdmin):
    """Admin interface for UnreadMessageCount model."""

    list_display = ["id", "sender", "receiver", "message_count", "is_read", "updated_at"]
    list_filter = ["is_read"]
    raw_id_fields = ["sender", "receiver"]
    readonly_fields = ["created_at", "updated_at"]


@admin.register(UserPresence)
class UserPresenceAdmin(admin.ModelAdmin):
    """Admin interface for UserPresence model."""

    list_display = ["user", "is_active", "focused_peer", "status_message", "updated_at"]
    list_filter = ["is_active"]
    search_fields = ["user__username", "status_message"]
    raw_id_fields = ["user", "focused_peer"]
    readonly_fields = ["created_at", "updated_at"]
