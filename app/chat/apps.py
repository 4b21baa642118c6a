"""
Chat application configuration.

This app provides:
- Direct (1:1) text and GIF messages
- Per-pair unread counters
- Presence, open-conversation focus and status messages
- Realtime fan-out of every change over Django Channels
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"

    def ready(self):
        """Connect the login / logout presence handlers."""
        from chat import signals  # noqa: F401
