"""HTTP Record Source backed by the console server's REST routes.

Routes used:

- ``GET  /conversations?owner=``                        summaries + suggestion
- ``GET  /conversations/history?owner=&counterparty=``  raw message rows
- ``GET  /messages/events?owner=&counterparty=``        delivery events
- ``GET  /numbers/from``                                known owner numbers
- ``POST /conversations/mark-read``                     read receipts
- ``POST /conversations/selection``                     persisted selection
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from inbox.domain.errors import MalformedRecordError, RecordSourceError, TransientFetchError
from inbox.domain.models import (
    ConversationPage,
    ConversationSummary,
    DeliveryEvent,
    MarkRead,
    PersistSelection,
    RawMessage,
)
from inbox.resilience.retry import DEFAULT_ATTEMPTS, resilient_fetch

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_records(model: type[ModelT], items: Iterable[Any], kind: str) -> list[ModelT]:
    """Validate raw payload items into *model* instances.

    Field-level problems such as malformed timestamps or unknown enum values
    are degraded by the models themselves, so every JSON object yields a
    record.  Items that are not objects at all are logged and left out.

    Args:
        model: The pydantic model to build.
        items: Raw JSON values.
        kind: Record kind used in logs.

    Returns:
        The parsed records, in input order.

    Raises:
        MalformedRecordError: If an object still cannot be validated.
    """
    records: list[ModelT] = []
    for item in items:
        if not isinstance(item, Mapping):
            logger.error("malformed_record", kind=kind, value=repr(item)[:200])
            continue
        try:
            records.append(model.model_validate(dict(item)))
        except ValidationError as exc:
            raise MalformedRecordError(kind, exc.errors(include_url=False)) from exc
    return records


class HttpRecordSource:
    """Async HTTP client implementing :class:`~inbox.source.base.RecordSource`.

    Transport errors, timeouts, 5xx responses, and unreadable bodies raise
    :class:`TransientFetchError` and are retried; 4xx responses raise
    :class:`RecordSourceError` immediately.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_wait: float = 0.2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the console server.
            timeout: Per-request timeout in seconds.
            attempts: Attempts per call for transient failures.
            retry_wait: Initial backoff between attempts, in seconds.
            client: Pre-built ``httpx.AsyncClient`` (tests inject one with a
                mock transport).  When omitted the source owns its client.
        """
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._request = resilient_fetch(
            "record_source",
            attempts=attempts,
            initial_wait=retry_wait,
            max_wait=max(retry_wait * 10, retry_wait),
        )(self._request_once)

    async def __aenter__(self) -> HttpRecordSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Fetches
    # ------------------------------------------------------------------

    async def fetch_messages(self, owner: str, counterparty: str) -> list[RawMessage]:
        body = await self._request(
            "GET",
            "/conversations/history",
            operation="fetch_messages",
            params={"owner": owner, "counterparty": counterparty},
        )
        return parse_records(RawMessage, body.get("messages") or [], "message")

    async def fetch_events(self, owner: str, counterparty: str) -> list[DeliveryEvent]:
        body = await self._request(
            "GET",
            "/messages/events",
            operation="fetch_events",
            params={"owner": owner, "counterparty": counterparty},
        )
        return parse_records(DeliveryEvent, body.get("events") or [], "event")

    async def fetch_conversations(self, owner: str) -> ConversationPage:
        body = await self._request(
            "GET",
            "/conversations",
            operation="fetch_conversations",
            params={"owner": owner},
        )
        conversations = parse_records(
            ConversationSummary, body.get("conversations") or [], "conversation"
        )
        suggested = body.get("selectedCounterparty") or body.get("selected_counterparty")
        return ConversationPage(conversations=conversations, selected_counterparty=suggested)

    async def fetch_numbers(self) -> list[str]:
        body = await self._request("GET", "/numbers/from", operation="fetch_numbers")
        numbers: list[str] = []
        for item in body.get("numbers") or []:
            number = item.get("number") if isinstance(item, dict) else item
            if isinstance(number, str) and number and number not in numbers:
                numbers.append(number)
        return numbers

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def persist_selection(self, command: PersistSelection) -> None:
        await self._request(
            "POST",
            "/conversations/selection",
            operation="persist_selection",
            json={"owner": command.owner, "counterparty": command.counterparty},
        )

    async def mark_read(self, command: MarkRead) -> None:
        await self._request(
            "POST",
            "/conversations/mark-read",
            operation="mark_read",
            json={
                "owner": command.owner,
                "counterparty": command.counterparty,
                "ids": list(command.message_ids),
            },
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request_once(
        self, method: str, path: str, *, operation: str, **kwargs: Any
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TransientFetchError(operation, str(exc) or type(exc).__name__) from exc

        if response.status_code >= 500:
            raise TransientFetchError(operation, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise RecordSourceError(operation, response.status_code, response.text[:200])
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise TransientFetchError(operation, "response body is not JSON") from exc
        if not isinstance(body, dict):
            raise TransientFetchError(operation, "response body is not a JSON object")
        return body
