"""Pydantic v2 models for the records exchanged with the Record Source.

Raw records arrive as camelCase JSON; every field also accepts its snake_case
name so models can be built directly in Python.  Parsing is deliberately
lenient: a malformed field (timestamp, enum value, count, scalar type) is
logged and degraded to its default rather than rejecting the record.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from inbox.domain.errors import MalformedRecordError
from inbox.domain.types import (
    FAVORITE_TAG,
    ConversationState,
    Direction,
    MessageState,
)

logger = structlog.get_logger()

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

EnumT = TypeVar("EnumT", bound=Enum)


def parse_timestamp(value: Any, field: str = "timestamp") -> datetime | None:
    """Parse a raw timestamp into a timezone-aware UTC datetime.

    Accepts ``datetime`` objects (naive values are assumed UTC), ISO 8601
    strings (including a trailing ``Z``), and integer/float epoch
    milliseconds.

    Args:
        value: The raw value.  ``None`` and ``""`` mean "absent".
        field: Field name used in the error.

    Returns:
        The parsed datetime, or ``None`` when the value is absent.

    Raises:
        MalformedRecordError: If the value is present but unparseable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        raise MalformedRecordError(field, value)
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError) as exc:
            raise MalformedRecordError(field, value) from exc
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise MalformedRecordError(field, value) from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise MalformedRecordError(field, value)


def _lenient_timestamp(value: Any, field: str) -> datetime | None:
    try:
        return parse_timestamp(value, field)
    except MalformedRecordError as exc:
        logger.warning("malformed_timestamp", field=exc.field, value=repr(exc.value))
        return None


def _lenient_enum(enum_cls: type[EnumT], value: Any, default: Any, field: str) -> Any:
    """Match *value* against *enum_cls* case-insensitively, else return *default*."""
    if value is None or value == "":
        return default
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if member.value.lower() == wanted or member.name.lower() == wanted:
                return member
    logger.warning("malformed_enum_value", field=field, value=repr(value))
    return default


def _as_text(value: Any) -> str | None:
    """Coerce scalar JSON values to ``str``; ``None`` stays ``None``."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _aliases(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class RawMessage(BaseModel):
    """One raw message row as supplied by the Record Source.

    Several raw rows may describe the same logical message (optimistic
    write, provider confirmation, refetch).  See
    :func:`inbox.reconcile.engine.reconcile` for how they are merged.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    provider_message_id: str | None = Field(
        default=None,
        validation_alias=_aliases(
            "provider_message_id", "providerMessageId", "telnyxMessageId"
        ),
    )
    direction: Direction = Direction.INBOUND
    from_number: str = Field(default="", validation_alias=_aliases("from_number", "from"))
    to_number: str = Field(default="", validation_alias=_aliases("to_number", "to"))
    text: str | None = None
    status: str | None = None
    occurred_at: datetime | None = Field(
        default=None, validation_alias=_aliases("occurred_at", "occurredAt")
    )
    created_at: datetime | None = Field(
        default=None, validation_alias=_aliases("created_at", "createdAt")
    )
    read_at: datetime | None = Field(
        default=None, validation_alias=_aliases("read_at", "readAt")
    )
    state: MessageState = MessageState.UNREAD
    tags: frozenset[str] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def default_state_from_read_at(cls, data: Any) -> Any:
        """Default ``state`` to READ when a read timestamp exists, else UNREAD."""
        if not isinstance(data, dict):
            return data
        state = _lenient_enum(MessageState, data.get("state"), None, "state")
        if state is None:
            read_at = data.get("read_at", data.get("readAt"))
            state = MessageState.READ if read_at else MessageState.UNREAD
        return {**data, "state": state}

    @field_validator("occurred_at", "created_at", "read_at", mode="before")
    @classmethod
    def lenient_timestamps(cls, v: Any, info: ValidationInfo) -> datetime | None:
        """Degrade unparseable timestamps to ``None`` instead of failing."""
        return _lenient_timestamp(v, info.field_name or "timestamp")

    @field_validator("direction", mode="before")
    @classmethod
    def lenient_direction(cls, v: Any) -> Direction:
        """Match direction case-insensitively; unknown values count as inbound."""
        return _lenient_enum(Direction, v, Direction.INBOUND, "direction")

    @field_validator("provider_message_id", "id", mode="before")
    @classmethod
    def blank_ids_are_absent(cls, v: Any) -> str | None:
        """Treat empty identifiers as missing; numeric ids become strings."""
        if v == "":
            return None
        return _as_text(v)

    @field_validator("text", "status", mode="before")
    @classmethod
    def scalar_text(cls, v: Any) -> str | None:
        return _as_text(v)

    @field_validator("from_number", "to_number", mode="before")
    @classmethod
    def none_number_is_empty(cls, v: Any) -> str:
        """Missing identities become empty strings."""
        return _as_text(v) or ""

    @field_validator("tags", mode="before")
    @classmethod
    def lenient_tags(cls, v: Any) -> frozenset[str]:
        """A null tag column means no tags; a bare string is a single tag."""
        if v is None:
            return frozenset()
        if isinstance(v, str):
            return frozenset({v})
        if isinstance(v, list | tuple | set | frozenset):
            return frozenset(str(tag) for tag in v if tag is not None)
        logger.warning("malformed_tags", value=repr(v))
        return frozenset()

    @property
    def effective_time(self) -> datetime:
        """``occurred_at`` if present, else ``created_at``, else the epoch."""
        return self.occurred_at or self.created_at or EPOCH

    @property
    def signature(self) -> str:
        """Payload signature used to group rows without a provider id."""
        return f"{self.direction}|{self.from_number}|{self.to_number}|{self.text or ''}"

    @property
    def identity_key(self) -> str:
        """Row identity: storage id, else provider id (or signature) plus time."""
        if self.id:
            return self.id
        anchor = self.provider_message_id or self.signature
        return f"{anchor}|{self.effective_time.isoformat()}"

    @property
    def owner_number(self) -> str:
        """The console-side identity of the conversation this row belongs to."""
        return self.to_number if self.direction == Direction.INBOUND else self.from_number

    @property
    def counterparty(self) -> str:
        """The remote identity of the conversation this row belongs to."""
        return self.from_number if self.direction == Direction.INBOUND else self.to_number

    @property
    def is_favorite(self) -> bool:
        """Whether the message carries the bookmark tag."""
        return FAVORITE_TAG in self.tags


class ConversationSummary(BaseModel):
    """Per (owner, counterparty) summary row maintained by the Record Source."""

    model_config = ConfigDict(frozen=True)

    owner_number: str = Field(
        default="", validation_alias=_aliases("owner_number", "ownerNumber")
    )
    counterparty: str = ""
    last_message_at: datetime = Field(
        default=EPOCH, validation_alias=_aliases("last_message_at", "lastMessageAt")
    )
    last_message_text: str = Field(
        default="", validation_alias=_aliases("last_message_text", "lastMessageText")
    )
    unread_count: int = Field(
        default=0, validation_alias=_aliases("unread_count", "unreadCount")
    )
    state: ConversationState = ConversationState.ACTIVE
    bookmarked: bool = False

    @field_validator("last_message_at", mode="before")
    @classmethod
    def lenient_last_message_at(cls, v: Any) -> datetime:
        """Unparseable or missing timestamps sort as the epoch."""
        return _lenient_timestamp(v, "last_message_at") or EPOCH

    @field_validator("owner_number", "counterparty", "last_message_text", mode="before")
    @classmethod
    def none_text_is_empty(cls, v: Any) -> str:
        """A null column becomes an empty string."""
        return _as_text(v) or ""

    @field_validator("state", mode="before")
    @classmethod
    def lenient_state(cls, v: Any) -> ConversationState:
        return _lenient_enum(ConversationState, v, ConversationState.ACTIVE, "state")

    @field_validator("unread_count", mode="before")
    @classmethod
    def lenient_unread_count(cls, v: Any) -> int:
        if v is None:
            return 0
        try:
            return max(int(v), 0)
        except (TypeError, ValueError):
            logger.warning("malformed_unread_count", value=repr(v))
            return 0

    @field_validator("bookmarked", mode="before")
    @classmethod
    def lenient_bookmarked(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "yes")
        if v is None or isinstance(v, bool | int | float):
            return bool(v)
        logger.warning("malformed_bookmarked", value=repr(v))
        return False


class DeliveryEvent(BaseModel):
    """An asynchronous delivery/status callback concerning one message.

    Events without an id get one synthesised from the message they concern,
    their raw time and status, so they still take part in ordering.
    """

    model_config = ConfigDict(frozen=True)

    id: str = ""
    event_type: str = Field(default="", validation_alias=_aliases("event_type", "eventType"))
    status: str | None = None
    provider_message_id: str | None = Field(
        default=None,
        validation_alias=_aliases(
            "provider_message_id", "providerMessageId", "telnyxMessageId"
        ),
    )
    message_id: str | None = Field(
        default=None,
        validation_alias=_aliases("message_id", "messageId", "relatedMessageRef"),
    )
    occurred_at: datetime | None = Field(
        default=None, validation_alias=_aliases("occurred_at", "occurredAt")
    )
    created_at: datetime | None = Field(
        default=None, validation_alias=_aliases("created_at", "createdAt")
    )
    status_changed: bool = False

    @model_validator(mode="before")
    @classmethod
    def synthesize_missing_id(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("id") not in (None, ""):
            return data
        key = next(
            (
                data[name]
                for name in (
                    "provider_message_id",
                    "providerMessageId",
                    "telnyxMessageId",
                    "message_id",
                    "messageId",
                    "relatedMessageRef",
                )
                if data.get(name)
            ),
            "",
        )
        when = next(
            (
                data[name]
                for name in ("occurred_at", "occurredAt", "created_at", "createdAt")
                if data.get(name)
            ),
            "",
        )
        synthesized = f"{key}|{when}|{data.get('status') or ''}"
        logger.debug("event_id_synthesized", id=synthesized)
        return {**data, "id": synthesized}

    @field_validator("occurred_at", "created_at", mode="before")
    @classmethod
    def lenient_timestamps(cls, v: Any, info: ValidationInfo) -> datetime | None:
        """Degrade unparseable timestamps to ``None`` instead of failing."""
        return _lenient_timestamp(v, info.field_name or "timestamp")

    @field_validator("id", "status", "provider_message_id", "message_id", mode="before")
    @classmethod
    def scalar_text(cls, v: Any) -> str | None:
        """Numeric ids and statuses become strings; blanks count as absent."""
        return _as_text(v) or None

    @field_validator("event_type", mode="before")
    @classmethod
    def none_event_type_is_empty(cls, v: Any) -> str:
        return _as_text(v) or ""

    @property
    def effective_time(self) -> datetime:
        """``occurred_at`` if present, else ``created_at``, else the epoch."""
        return self.occurred_at or self.created_at or EPOCH

    @property
    def message_key(self) -> str:
        """Key of the message this event concerns."""
        return self.provider_message_id or self.message_id or self.id


class ConversationPage(BaseModel):
    """Result of a conversation-summary fetch for one owner."""

    model_config = ConfigDict(frozen=True)

    conversations: list[ConversationSummary] = Field(default_factory=list)
    selected_counterparty: str | None = Field(
        default=None,
        validation_alias=_aliases("selected_counterparty", "selectedCounterparty"),
    )

    @field_validator("selected_counterparty", mode="before")
    @classmethod
    def blank_suggestion_is_absent(cls, v: Any) -> str | None:
        return _as_text(v) or None


class PersistSelection(BaseModel):
    """Command: remember the (owner, counterparty) selection."""

    model_config = ConfigDict(frozen=True)

    owner: str
    counterparty: str


class MarkRead(BaseModel):
    """Command: mark a batch of messages read in one conversation."""

    model_config = ConfigDict(frozen=True)

    owner: str
    counterparty: str
    message_ids: tuple[str, ...]


def is_readable_candidate(message: RawMessage, owner: str | None, counterparty: str | None) -> bool:
    """Return True if *message* should be marked read once it becomes visible.

    Only inbound, ``UNREAD`` messages sent by the current counterparty to
    the current owner qualify.
    """
    return (
        message.direction == Direction.INBOUND
        and message.state == MessageState.UNREAD
        and bool(owner)
        and bool(counterparty)
        and message.to_number == owner
        and message.from_number == counterparty
    )
