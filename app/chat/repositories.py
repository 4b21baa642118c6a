"""
Django ORM implementations of the chat store protocols.

Repositories:
    MessageRepository: MessageStore over chat.Message
    UnreadCounterRepository: UnreadCounterStore over chat.UnreadMessageCount
    PresenceRepository: PresenceStore over chat.UserPresence
    UserRepository: UserDirectory over the auth user model

Every database failure surfaces as core.exceptions.PersistenceError so the
service layer only has one store error to handle.

Locking:
    ``for_update`` opens a transaction, row-locks the record with
    select_for_update() (a no-op on SQLite) and saves it when the caller's
    block exits cleanly. Callers also hold the matching key in the
    chat.locks registry before entering.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.db.models import Max, Q

from chat.models import Message, UnreadMessageCount, UserPresence
from chat.types import PresenceSnapshot
from core.exceptions import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Generator, Iterable
    from datetime import datetime

    from django.db.models import QuerySet

logger = logging.getLogger(__name__)


@contextmanager
def translate_database_errors(action: str) -> Generator[None, None, None]:
    """Re-raise DatabaseError from the block as PersistenceError."""
    try:
        yield
    except DatabaseError as e:
        logger.error("Database error while trying to %s: %s", action, e)
        raise PersistenceError(
            f"Failed to {action}",
            details={"original_error": str(e)},
        ) from e


# =============================================================================
# Messages
# =============================================================================


class MessageRepository:
    """MessageStore backed by the chat_message table."""

    def insert(
        self,
        sender_id: int,
        receiver_id: int,
        content: str | None,
        gif_url: str | None,
        timestamp: datetime,
    ) -> Message:
        with translate_database_errors("store message"):
            return Message.objects.create(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                gif_url=gif_url,
                timestamp=timestamp,
            )

    def get(self, message_id: int) -> Message | None:
        with translate_database_errors("load message"):
            return Message.objects.filter(pk=message_id).first()

    def update_content(
        self, message: Message, content: str, edited_at: datetime
    ) -> Message:
        message.content = content
        message.edited_at = edited_at
        with translate_database_errors("update message"):
            message.save(update_fields=["content", "edited_at", "updated_at"])
        return message

    def delete(self, message: Message) -> None:
        with translate_database_errors("delete message"):
            Message.objects.filter(pk=message.pk).delete()

    def between(
        self,
        user_a: int,
        user_b: int,
        before: datetime,
        limit: int,
        descending: bool,
    ) -> QuerySet[Message]:
        newest_first = Message.objects.filter(
            Q(sender_id=user_a, receiver_id=user_b)
            | Q(sender_id=user_b, receiver_id=user_a),
            timestamp__lt=before,
        ).order_by("-timestamp", "-id")

        if descending:
            return newest_first[:limit]

        # Same window, flipped: pick the newest ``limit`` then order ascending
        window = newest_first.values("pk")[:limit]
        return Message.objects.filter(pk__in=window).order_by("timestamp", "id")

    def search(self, user_id: int, query: str, limit: int) -> QuerySet[Message]:
        return Message.objects.filter(
            Q(sender_id=user_id) | Q(receiver_id=user_id),
            content__icontains=query,
        ).order_by("-timestamp", "-id")[:limit]

    def latest_timestamp(self, sender_id: int) -> datetime | None:
        with translate_database_errors("read latest message timestamp"):
            return Message.objects.filter(sender_id=sender_id).aggregate(
                latest=Max("timestamp")
            )["latest"]


# =============================================================================
# Unread counters
# =============================================================================


class UnreadCounterRepository:
    """UnreadCounterStore backed by the chat_unread_message_count table."""

    def get(self, sender_id: int, receiver_id: int) -> UnreadMessageCount | None:
        with translate_database_errors("load unread counter"):
            return UnreadMessageCount.objects.filter(
                sender_id=sender_id, receiver_id=receiver_id
            ).first()

    @contextmanager
    def for_update(
        self, sender_id: int, receiver_id: int
    ) -> Generator[UnreadMessageCount, None, None]:
        with translate_database_errors("update unread counter"):
            with transaction.atomic():
                record, _ = UnreadMessageCount.objects.select_for_update().get_or_create(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    defaults={"message_count": 0, "is_read": False},
                )
                yield record
                record.save(update_fields=["message_count", "is_read", "updated_at"])

    def for_receiver(self, receiver_id: int) -> list[UnreadMessageCount]:
        with translate_database_errors("load unread counters"):
            return list(UnreadMessageCount.objects.filter(receiver_id=receiver_id))


# =============================================================================
# Presence
# =============================================================================


class PresenceRepository:
    """PresenceStore backed by the chat_user_presence table."""

    def get(self, user_id: int) -> PresenceSnapshot:
        with translate_database_errors("load presence"):
            presence = UserPresence.objects.filter(user_id=user_id).first()
        if presence is None:
            return PresenceSnapshot(user_id=user_id)
        return PresenceSnapshot.from_record(presence)

    def get_many(self, user_ids: Iterable[int]) -> dict[int, PresenceSnapshot]:
        user_ids = list(user_ids)
        with translate_database_errors("load presence"):
            rows = {
                presence.user_id: PresenceSnapshot.from_record(presence)
                for presence in UserPresence.objects.filter(user_id__in=user_ids)
            }
        return {
            user_id: rows.get(user_id, PresenceSnapshot(user_id=user_id))
            for user_id in user_ids
        }

    @contextmanager
    def for_update(self, user_id: int) -> Generator[UserPresence, None, None]:
        with translate_database_errors("update presence"):
            with transaction.atomic():
                presence, _ = UserPresence.objects.select_for_update().get_or_create(
                    user_id=user_id
                )
                yield presence
                presence.save(
                    update_fields=[
                        "is_active",
                        "focused_peer",
                        "status_message",
                        "updated_at",
                    ]
                )


# =============================================================================
# Users
# =============================================================================


class UserRepository:
    """UserDirectory over the configured auth user model."""

    def exists(self, user_id: int) -> bool:
        with translate_database_errors("look up user"):
            return get_user_model().objects.filter(pk=user_id).exists()

    def others(self, user_id: int) -> list:
        """Active accounts other than ``user_id``, oldest first."""
        with translate_database_errors("list users"):
            return list(
                get_user_model()
                .objects.filter(is_active=True)
                .exclude(pk=user_id)
                .order_by("pk")
            )


__all__ = [
    "MessageRepository",
    "UnreadCounterRepository",
    "PresenceRepository",
    "UserRepository",
    "translate_database_errors",
]
