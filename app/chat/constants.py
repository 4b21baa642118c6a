"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, history windows)
- Presence (status message limits)
- Realtime fan-out (group and event names)
- Locking (per-pair wait bound)

Import example:
    from chat.constants import MESSAGE_CONFIG, EVENTS
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MAX_GIF_URL_LENGTH: Final[int] = 2048

    # History
    DEFAULT_HISTORY_LIMIT: Final[int] = 20
    MAX_HISTORY_LIMIT: Final[int] = 200
    SORT_ASC: Final[str] = "asc"
    SORT_DESC: Final[str] = "desc"
    SORT_CHOICES: Final[tuple] = ("asc", "desc")

    # Search
    SEARCH_MAX_RESULTS: Final[int] = 100


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence and status messages."""

    MAX_STATUS_MESSAGE_LENGTH: Final[int] = 150


# =============================================================================
# Realtime Configuration
# =============================================================================


class REALTIME_CONFIG:
    """Channel layer settings shared by the publisher and the consumer."""

    # Every connected client joins this group; events go to everyone
    BROADCAST_GROUP: Final[str] = "chat_broadcast"

    # Channel layer message type, dispatched to ChatConsumer.chat_event
    HANDLER_TYPE: Final[str] = "chat.event"


class EVENTS:
    """Event names sent to clients in the ``event`` field."""

    MESSAGE_NEW: Final[str] = "message.new"
    MESSAGE_EDITED: Final[str] = "message.edited"
    MESSAGE_DELETED: Final[str] = "message.deleted"
    UNREAD_COUNT_CHANGED: Final[str] = "unread.count_changed"
    PRESENCE_CHANGED: Final[str] = "presence.changed"
    STATUS_MESSAGE_UPDATED: Final[str] = "status_message.updated"


# =============================================================================
# Locking Configuration
# =============================================================================


class LOCK_CONFIG:
    """Defaults for the keyed lock registries."""

    # Overridden by settings.CHAT_PAIR_LOCK_TIMEOUT_SECONDS
    DEFAULT_TIMEOUT_SECONDS: Final[float] = 5.0

    # Redis keys expire on their own if a holder dies mid-section
    REDIS_TTL_SECONDS: Final[int] = 30
    REDIS_RETRY_INTERVAL_SECONDS: Final[float] = 0.05
