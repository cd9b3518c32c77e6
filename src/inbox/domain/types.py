"""Domain enumerations for the messaging console."""

from enum import StrEnum


class Direction(StrEnum):
    """Which way a message travelled relative to the owner identity."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class MessageState(StrEnum):
    """Per-message lifecycle state."""

    UNREAD = "UNREAD"
    READ = "READ"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"


class ConversationState(StrEnum):
    """Per-conversation lifecycle state, owned by the Record Source."""

    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    DELETED = "DELETED"


class MessageFilter(StrEnum):
    """Filters applied to the canonical message list of one conversation."""

    ALL = "all"
    ACTIVE = "active"
    BOOKMARKED = "bookmarked"
    ARCHIVED = "archived"
    DELETED = "deleted"


class ViewMode(StrEnum):
    """Which slice of the conversation list is displayed."""

    RECENT = "recent"
    ARCHIVED = "archived"
    BOOKMARKED = "bookmarked"


class RefreshDomain(StrEnum):
    """Independently refreshed data domains."""

    MESSAGES = "messages"
    CONVERSATIONS = "conversations"
    EVENTS = "events"
    NUMBERS = "numbers"


# Tag that marks a message as bookmarked.
FAVORITE_TAG = "Favorite"
