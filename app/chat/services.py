"""
Conversation service: the entry point for every chat mutation and query.

Operations:
    send_message              store, notify, count
    edit_message              sender-only content change
    delete_message            sender-only removal, counter rollback
    get_conversation_history  window of messages between two users
    search_conversations      substring search over own messages
    change_focus              open / close a conversation
    list_contacts             other users with unread counts and presence
    set_presence              mark a user active / inactive
    update_status_message     change a user's status message

Every operation returns a ServiceResult and never raises for expected
failures. Error codes:
    VALIDATION_ERROR    bad input, nothing was written
    FORBIDDEN           caller does not own the message
    NOT_FOUND           message or peer does not exist
    PERSISTENCE_ERROR   store failure or lock timeout

Multi-step operations run as a pipeline (store -> publish -> ledger ->
publish). The first failing step ends the pipeline; what already happened
stays, e.g. a stored and announced message is not withdrawn when its
counter update fails. Sending is not idempotent: a client retry stores a
second message.

Usage:
    from chat.services import get_conversation_service

    service = get_conversation_service()
    result = service.send_message(request.user.id, peer_id, content="hi")
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from django.conf import settings
from django.utils import timezone

from chat.constants import LOCK_CONFIG, MESSAGE_CONFIG
from chat.ledger import UnreadCounterLedger
from chat.locks import KeyedLock, RedisKeyedLock
from chat.notifications import ChannelLayerPublisher, NotificationFanout
from chat.presence import PresenceTracker
from chat.repositories import (
    MessageRepository,
    PresenceRepository,
    UnreadCounterRepository,
    UserRepository,
)
from chat.types import ContactSummary, ConversationHistory, FocusChange
from core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import datetime

    from chat.models import Message
    from chat.protocols import (
        EventPublisher,
        LockRegistry,
        MessageStore,
        PresenceStore,
        UnreadCounterStore,
        UserDirectory,
    )
    from chat.types import PresenceSnapshot


class ConversationService(BaseService):
    """
    Direct message operations over injected stores.

    The ledger, presence tracker and fan-out are built from the injected
    collaborators, so one service instance sees one consistent set of
    stores and the shared lock registry.

    Args:
        messages: Message store
        counters: Unread counter store
        presence: Presence store
        users: User directory
        publisher: Realtime event transport
        locks: Process-wide keyed lock registry
        clock: Returns the current aware datetime
    """

    def __init__(
        self,
        messages: MessageStore,
        counters: UnreadCounterStore,
        presence: PresenceStore,
        users: UserDirectory,
        publisher: EventPublisher,
        locks: LockRegistry,
        clock: Callable[[], datetime] = timezone.now,
    ) -> None:
        self.messages = messages
        self.counters = counters
        self.users = users
        self.locks = locks
        self.clock = clock
        self.fanout = NotificationFanout(publisher)
        self.ledger = UnreadCounterLedger(counters, presence, locks)
        self.presence = PresenceTracker(presence, self.ledger, self.fanout, locks)

    # =========================================================================
    # Message mutations
    # =========================================================================

    def send_message(
        self,
        sender_id: int,
        receiver_id: int,
        content: str | None = None,
        gif_url: str | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a text or GIF message.

        Exactly one of ``content`` / ``gif_url`` must be given. The message
        is timestamped by the server and never earlier than the sender's
        previous message.

        Error codes:
            VALIDATION_ERROR: Missing ids, self-send, unknown receiver,
                both or neither body, empty or oversized body
            PERSISTENCE_ERROR: Store failure (message may already be stored
                if the counter update was the failing step)
        """
        missing = self.validate_required(sender_id=sender_id, receiver_id=receiver_id)
        if missing:
            return missing

        if sender_id == receiver_id:
            return ServiceResult.failure(
                "Cannot send a message to yourself",
                error_code="VALIDATION_ERROR",
            )

        try:
            content, gif_url = self._validate_body(content, gif_url)
        except ValidationError as e:
            return ServiceResult.from_exception(e)

        try:
            if not self.users.exists(receiver_id):
                return ServiceResult.failure(
                    "Receiver does not exist",
                    error_code="VALIDATION_ERROR",
                    errors={"receiver_id": ["Unknown user."]},
                )

            with self.locks.hold("sender", sender_id):
                timestamp = self._next_timestamp(sender_id)
                message = self.messages.insert(
                    sender_id, receiver_id, content, gif_url, timestamp
                )
        except PersistenceError as e:
            return self.handle_exception(e, "send_message")

        self.get_logger().debug(
            f"User {sender_id} sent message {message.pk} to user {receiver_id}"
        )
        self.fanout.new_message(message)

        try:
            change = self.ledger.on_message_sent(sender_id, receiver_id)
        except PersistenceError as e:
            return self.handle_exception(e, f"unread count after message {message.pk}")

        if change.changed:
            self.fanout.count_changed(change)
        return ServiceResult.success(message)

    def edit_message(
        self,
        message_id: int,
        requesting_user_id: int,
        new_content: str | None,
    ) -> ServiceResult[Message]:
        """
        Replace the text of a message. Only the sender may edit.

        ``timestamp`` stays as it was; ``edited_at`` records the edit.
        GIF messages cannot be edited into text messages.

        Error codes:
            NOT_FOUND, FORBIDDEN, VALIDATION_ERROR, PERSISTENCE_ERROR
        """
        try:
            message = self._owned_message(message_id, requesting_user_id, "edit")
            if message.is_gif:
                raise ValidationError("GIF messages cannot be edited")

            content = self._validate_content(new_content)
            message = self.messages.update_content(message, content, self.clock())
        except (NotFoundError, PermissionDeniedError, ValidationError) as e:
            return ServiceResult.from_exception(e)
        except PersistenceError as e:
            return self.handle_exception(e, "edit_message")

        self.get_logger().debug(
            f"User {requesting_user_id} edited message {message.pk}"
        )
        self.fanout.message_edited(message)
        return ServiceResult.success(message)

    def delete_message(
        self,
        message_id: int,
        requesting_user_id: int,
    ) -> ServiceResult[Message]:
        """
        Physically delete a message. Only the sender may delete.

        Returns the deleted message as it was. The receiver's unread count
        from the sender drops by one if it is above zero.

        Error codes:
            NOT_FOUND, FORBIDDEN, PERSISTENCE_ERROR
        """
        try:
            message = self._owned_message(message_id, requesting_user_id, "delete")
            self.messages.delete(message)
        except (NotFoundError, PermissionDeniedError) as e:
            return ServiceResult.from_exception(e)
        except PersistenceError as e:
            return self.handle_exception(e, "delete_message")

        self.get_logger().debug(
            f"User {requesting_user_id} deleted message {message.pk}"
        )
        self.fanout.message_deleted(message)

        try:
            change = self.ledger.on_message_deleted(
                message.sender_id, message.receiver_id
            )
        except PersistenceError as e:
            return self.handle_exception(
                e, f"unread count after deleting message {message.pk}"
            )

        if change.changed:
            self.fanout.count_changed(change)
        return ServiceResult.success(message)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_conversation_history(
        self,
        user_a: int,
        user_b: int,
        before: datetime | None = None,
        limit: int = MESSAGE_CONFIG.DEFAULT_HISTORY_LIMIT,
        sort: str = MESSAGE_CONFIG.SORT_ASC,
    ) -> ServiceResult[ConversationHistory]:
        """
        The ``limit`` most recent messages between two users before a point
        in time, ordered by ``sort``, plus whether ``user_b`` is online.

        The messages are returned lazily; calling again with the same
        arguments and no writes in between yields the same messages.

        Error codes:
            VALIDATION_ERROR: limit not positive, sort not asc/desc
            NOT_FOUND: user_b does not exist
            PERSISTENCE_ERROR
        """
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            return ServiceResult.failure(
                "limit must be a positive integer",
                error_code="VALIDATION_ERROR",
                errors={"limit": ["Must be greater than 0."]},
            )
        if sort not in MESSAGE_CONFIG.SORT_CHOICES:
            return ServiceResult.failure(
                "sort must be 'asc' or 'desc'",
                error_code="VALIDATION_ERROR",
                errors={"sort": [f"Invalid choice: {sort!r}."]},
            )

        try:
            self._require_user(user_b)
            messages = self.messages.between(
                user_a,
                user_b,
                before=before or self.clock(),
                limit=limit,
                descending=sort == MESSAGE_CONFIG.SORT_DESC,
            )
            peer_is_active = self.presence.is_active(user_b)
        except NotFoundError as e:
            return ServiceResult.from_exception(e)
        except PersistenceError as e:
            return self.handle_exception(e, "get_conversation_history")

        return ServiceResult.success(
            ConversationHistory(messages=messages, peer_is_active=peer_is_active)
        )

    def search_conversations(
        self, user_id: int, query: str | None
    ) -> ServiceResult[Iterable[Message]]:
        """
        Messages the user sent or received containing ``query``
        (case-insensitive), newest first. A blank query matches nothing.
        """
        query = (query or "").strip()
        if not query:
            return ServiceResult.success([])

        try:
            messages = self.messages.search(
                user_id, query, MESSAGE_CONFIG.SEARCH_MAX_RESULTS
            )
        except PersistenceError as e:
            return self.handle_exception(e, "search_conversations")
        return ServiceResult.success(messages)

    def list_contacts(self, user_id: int) -> ServiceResult[list[ContactSummary]]:
        """
        Every other user with the caller's unread count from them and
        their presence.
        """
        try:
            others = self.users.others(user_id)
            inbox = {
                record.sender_id: record
                for record in self.counters.for_receiver(user_id)
            }
            presence = self.presence.get_many(user.pk for user in others)
        except PersistenceError as e:
            return self.handle_exception(e, "list_contacts")

        contacts = []
        for user in others:
            counter = inbox.get(user.pk)
            peer = presence[user.pk]
            contacts.append(
                ContactSummary(
                    user_id=user.pk,
                    display_name=user.get_full_name() or user.get_username(),
                    email=user.email,
                    message_count=counter.message_count if counter else 0,
                    is_read=counter.is_read if counter else False,
                    is_active=peer.is_active,
                    status_message=peer.status_message,
                )
            )
        return ServiceResult.success(contacts)

    # =========================================================================
    # Presence and focus
    # =========================================================================

    def change_focus(
        self, user_id: int, peer_id: int | None
    ) -> ServiceResult[FocusChange]:
        """
        Open the conversation with ``peer_id`` (or close it with None).

        Opening marks everything from the peer read; the previously open
        conversation goes back to unread without changing its count.

        Error codes:
            VALIDATION_ERROR: peer is the user
            NOT_FOUND: peer does not exist
            PERSISTENCE_ERROR
        """
        if peer_id is not None and peer_id == user_id:
            return ServiceResult.failure(
                "Cannot open a conversation with yourself",
                error_code="VALIDATION_ERROR",
            )

        try:
            if peer_id is not None:
                self._require_user(peer_id)
            previous = self.presence.set_focus(user_id, peer_id)
            changes = self.ledger.on_focus_change(user_id, peer_id, previous)
        except NotFoundError as e:
            return ServiceResult.from_exception(e)
        except PersistenceError as e:
            return self.handle_exception(e, "change_focus")

        for change in changes:
            if change.changed:
                self.fanout.count_changed(change)

        return ServiceResult.success(
            FocusChange(
                user_id=user_id,
                peer_id=peer_id,
                previous_peer_id=previous,
                counters=changes,
            )
        )

    def set_presence(
        self, user_id: int, active: bool
    ) -> ServiceResult[PresenceSnapshot]:
        try:
            snapshot = self.presence.set_active(user_id, active)
        except PersistenceError as e:
            return self.handle_exception(e, "set_presence")
        return ServiceResult.success(snapshot)

    def update_status_message(
        self, user_id: int, text: str | None
    ) -> ServiceResult[PresenceSnapshot]:
        try:
            snapshot = self.presence.update_status_message(user_id, text or "")
        except ValidationError as e:
            return ServiceResult.from_exception(e)
        except PersistenceError as e:
            return self.handle_exception(e, "update_status_message")
        return ServiceResult.success(snapshot)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _owned_message(
        self, message_id: int, user_id: int, action: str
    ) -> Message:
        message = self.messages.get(message_id)
        if message is None:
            raise NotFoundError(
                "Message not found", details={"message_id": message_id}
            )
        if message.sender_id != user_id:
            raise PermissionDeniedError(
                f"You can only {action} your own messages",
                details={"message_id": message_id},
            )
        return message

    def _require_user(self, user_id: int) -> None:
        if not self.users.exists(user_id):
            raise NotFoundError("User not found", details={"user_id": user_id})

    def _next_timestamp(self, sender_id: int) -> datetime:
        """Now, or the sender's latest timestamp if the clock went backwards."""
        now = self.clock()
        latest = self.messages.latest_timestamp(sender_id)
        if latest is not None and latest > now:
            return latest
        return now

    @staticmethod
    def _validate_content(content: str | None) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Message content cannot be empty")
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message content must be at most "
                f"{MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters"
            )
        return content

    @classmethod
    def _validate_body(
        cls, content: str | None, gif_url: str | None
    ) -> tuple[str | None, str | None]:
        """Exactly one of text or GIF; returns the cleaned pair."""
        if content is not None and gif_url is not None:
            # A blank field next to a filled one counts as not sent
            if not content.strip():
                content = None
            elif not gif_url.strip():
                gif_url = None

        if (content is None) == (gif_url is None):
            raise ValidationError(
                "A message needs either content or a GIF, not both"
                if content is not None
                else "A message needs either content or a GIF"
            )

        if content is not None:
            return cls._validate_content(content), None

        gif_url = gif_url.strip()
        if not gif_url:
            raise ValidationError("GIF URL cannot be empty")
        if len(gif_url) > MESSAGE_CONFIG.MAX_GIF_URL_LENGTH:
            raise ValidationError(
                f"GIF URL must be at most {MESSAGE_CONFIG.MAX_GIF_URL_LENGTH} characters"
            )
        return None, gif_url


# =============================================================================
# Wiring
# =============================================================================


@lru_cache(maxsize=1)
def get_lock_registry() -> LockRegistry:
    """
    The process-wide lock registry, created on first use.

    Redis-backed when REDIS_URL is configured so every worker process
    shares the same locks; in-process otherwise.
    """
    timeout = getattr(
        settings,
        "CHAT_PAIR_LOCK_TIMEOUT_SECONDS",
        LOCK_CONFIG.DEFAULT_TIMEOUT_SECONDS,
    )
    if getattr(settings, "REDIS_URL", ""):
        return RedisKeyedLock(timeout=timeout)
    return KeyedLock(timeout=timeout)


def get_conversation_service() -> ConversationService:
    """A service over the ORM stores and the channel layer."""
    return ConversationService(
        messages=MessageRepository(),
        counters=UnreadCounterRepository(),
        presence=PresenceRepository(),
        users=UserRepository(),
        publisher=ChannelLayerPublisher(),
        locks=get_lock_registry(),
    )


__all__ = [
    "ConversationService",
    "get_conversation_service",
    "get_lock_registry",
]
