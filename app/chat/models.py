"""
Chat system models.

Models:
    Message: A direct message from one user to another (text or GIF)
    UnreadMessageCount: Unread bookkeeping for one directed user pair
    UserPresence: A user's live flag, open conversation and status message

Counter orientation:
    The row (sender=A, receiver=B) holds the number of messages B has not
    read from A, i.e. B's inbox from A. Every reader and writer uses this
    one convention.

Design Decisions:
    - Deletion is physical; a deleted message leaves no row behind
    - Counter rows are created lazily and never deleted (reset to 0)
    - Presence rows are created lazily; a missing row reads as offline
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import BaseModel


class Message(BaseModel):
    """
    A direct message between two users.

    Exactly one of ``content`` / ``gif_url`` is set. ``timestamp`` is
    assigned by the server when the message is stored and never changes,
    edits only touch ``content`` and ``edited_at``.

    Fields:
        sender: Author, the only user allowed to edit or delete
        receiver: Recipient
        content: Text body (null for GIF messages)
        gif_url: GIF location (null for text messages)
        timestamp: Server creation time, non-decreasing per sender
        edited_at: Last edit time (null if never edited)
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="received_messages",
        help_text="User this message was sent to",
    )

    content = models.TextField(
        null=True,
        blank=True,
        help_text="Message text (null for GIF messages)",
    )

    gif_url = models.URLField(
        max_length=2048,
        null=True,
        blank=True,
        help_text="GIF URL (null for text messages)",
    )

    timestamp = models.DateTimeField(
        default=timezone.now,
        help_text="Server-assigned creation time",
    )

    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the content was last edited",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["timestamp", "id"]
        constraints = [
            # Text XOR GIF
            models.CheckConstraint(
                condition=(
                    Q(content__isnull=False, gif_url__isnull=True)
                    | Q(content__isnull=True, gif_url__isnull=False)
                ),
                name="chat_message_content_xor_gif",
            ),
            models.CheckConstraint(
                condition=~Q(sender=F("receiver")),
                name="chat_message_not_to_self",
            ),
        ]
        indexes = [
            # Conversation history in both directions
            models.Index(
                fields=["sender", "receiver", "-timestamp"],
                name="chat_msg_pair_time_idx",
            ),
            models.Index(
                fields=["receiver", "sender", "-timestamp"],
                name="chat_msg_pair_rev_time_idx",
            ),
        ]

    def __str__(self) -> str:
        if self.is_gif:
            preview = "[gif]"
        else:
            preview = (
                self.content[:50] + "..." if len(self.content) > 50 else self.content
            )
        return f"User {self.sender_id} -> User {self.receiver_id}: {preview}"

    @property
    def is_gif(self) -> bool:
        return self.gif_url is not None

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None


class UnreadMessageCount(BaseModel):
    """
    Unread counter for one directed pair.

    (sender=A, receiver=B) is how many of A's messages B has not read.
    ``is_read`` is True once B opened the conversation with A and no new
    message arrived from A since.
    """

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User whose messages are being counted",
    )

    receiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="unread_counts",
        help_text="User who has not read them yet",
    )

    message_count = models.PositiveIntegerField(
        default=0,
        help_text="Messages from sender not yet read by receiver",
    )

    is_read = models.BooleanField(
        default=False,
        help_text="Receiver has the conversation open and caught up",
    )

    class Meta:
        db_table = "chat_unread_message_count"
        ordering = ["receiver", "sender"]
        constraints = [
            models.UniqueConstraint(
                fields=["sender", "receiver"],
                name="unique_unread_count_pair",
            ),
        ]

    def __str__(self) -> str:
        flag = "read" if self.is_read else "unread"
        return (
            f"Unread({self.sender_id} -> {self.receiver_id}): "
            f"{self.message_count} [{flag}]"
        )


class UserPresence(BaseModel):
    """
    Live presence of a user.

    Fields:
        user: Owner of this presence row
        is_active: Logged in / online
        focused_peer: User whose conversation is currently open (nullable)
        status_message: Short free text shown next to the user
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="chat_presence",
        help_text="User this presence belongs to",
    )

    is_active = models.BooleanField(
        default=False,
        help_text="Whether the user is currently online",
    )

    focused_peer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="User whose conversation is open (null if none)",
    )

    status_message = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Free-text status shown to other users",
    )

    class Meta:
        db_table = "chat_user_presence"
        ordering = ["user"]
        verbose_name_plural = "user presence"

    def __str__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"Presence(user={self.user_id}, {state}, focus={self.focused_peer_id})"
