"""Domain types, models, and errors for the messaging console."""

from inbox.domain.errors import (
    FlushConflictError,
    InboxError,
    MalformedRecordError,
    RecordSourceError,
    TransientFetchError,
)
from inbox.domain.models import (
    EPOCH,
    ConversationPage,
    ConversationSummary,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
    is_readable_candidate,
    parse_timestamp,
)
from inbox.domain.types import (
    FAVORITE_TAG,
    ConversationState,
    Direction,
    MessageFilter,
    MessageState,
    RefreshDomain,
    ViewMode,
)

__all__ = [
    "EPOCH",
    "FAVORITE_TAG",
    "ConversationPage",
    "ConversationState",
    "ConversationSummary",
    "DeliveryEvent",
    "Direction",
    "FlushConflictError",
    "InboxError",
    "MalformedRecordError",
    "MarkRead",
    "MessageFilter",
    "MessageState",
    "PersistSelection",
    "RawMessage",
    "RecordSourceError",
    "RefreshDomain",
    "TransientFetchError",
    "ViewMode",
    "is_readable_candidate",
    "parse_timestamp",
]
