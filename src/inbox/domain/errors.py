"""Domain-specific exception classes for the messaging console."""

from __future__ import annotations


class InboxError(Exception):
    """Base class for all domain errors in the messaging console."""


class TransientFetchError(InboxError):
    """Raised when a Record Source call fails for a retryable reason.

    Network failures, timeouts and server-side (5xx) responses all map here.
    Callers leave their previously projected state untouched and try again
    on the next scheduled refresh.

    Attributes:
        operation: The Record Source operation that failed.
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class RecordSourceError(InboxError):
    """Raised when the Record Source rejects a request (4xx)."""

    def __init__(self, operation: str, status_code: int, detail: str) -> None:
        self.operation = operation
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{operation} rejected with {status_code}: {detail}")


class MalformedRecordError(InboxError):
    """Raised when a raw record field cannot be parsed.

    Parsing code catches this and degrades the field instead of dropping
    the record.

    Attributes:
        field: Name of the offending field.
        value: The raw value that failed to parse.
    """

    def __init__(self, field: str, value: object) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Cannot parse {field!r} from {value!r}")


class FlushConflictError(InboxError):
    """Raised when the conversation context changed while a read flush was pending.

    Attributes:
        expected: The (owner, counterparty) pair the flush was issued for.
        actual: The pair that is current now.
    """

    def __init__(
        self,
        expected: tuple[str, str],
        actual: tuple[str | None, str | None],
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Read flush for {expected[0]}/{expected[1]} superseded by "
            f"{actual[0]}/{actual[1]}"
        )
