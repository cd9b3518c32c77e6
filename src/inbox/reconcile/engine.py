"""Reconciliation of duplicated raw message rows into one canonical sequence.

The same logical message typically shows up several times in the raw feed:
an optimistic local write, a row carrying the provider-assigned id, and the
copy returned by a later refetch.  ``reconcile`` collapses those into one
representative per logical message:

- Rows with a provider id are grouped by that id; the newest row wins.
- Rows without one are grouped by payload signature and then bucketed by
  time proximity.  A row within ``merge_window`` of the newest row of the
  latest bucket joins it; otherwise it opens a new bucket.

The function is pure.  Input order does not matter: rows are sorted by a
total key before any grouping happens.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from datetime import timedelta

from inbox.domain.models import RawMessage

# Identical payloads closer together than this are treated as one send.
MERGE_WINDOW = timedelta(milliseconds=120_000)


def _sort_key(message: RawMessage) -> tuple[object, ...]:
    return (
        message.effective_time,
        message.id or "",
        message.provider_message_id or "",
        message.signature,
        message.state.value,
        message.status or "",
    )


def _collapse_identified(messages: list[RawMessage]) -> list[RawMessage]:
    """Keep the newest row per provider id.  *messages* must be sorted."""
    latest: dict[str, RawMessage] = {}
    for message in messages:
        latest[str(message.provider_message_id)] = message
    return list(latest.values())


def _collapse_unidentified(
    messages: list[RawMessage], merge_window: timedelta
) -> list[RawMessage]:
    """Bucket same-signature rows by time proximity.  *messages* must be sorted."""
    buckets_by_signature: dict[str, list[RawMessage]] = defaultdict(list)
    for message in messages:
        buckets = buckets_by_signature[message.signature]
        for index in range(len(buckets) - 1, -1, -1):
            representative = buckets[index]
            delta = abs(message.effective_time - representative.effective_time)
            if delta <= merge_window:
                if message.effective_time >= representative.effective_time:
                    buckets[index] = message
                break
        else:
            buckets.append(message)
    return [rep for buckets in buckets_by_signature.values() for rep in buckets]


def reconcile(
    raw_messages: Iterable[RawMessage],
    merge_window: timedelta = MERGE_WINDOW,
) -> list[RawMessage]:
    """Merge duplicate raw rows into a canonical, time-ordered sequence.

    Args:
        raw_messages: Raw rows for one conversation, in any order.
        merge_window: Maximum distance between two identical payloads
            without a provider id for them to count as the same message.

    Returns:
        Canonical messages sorted ascending by effective time.  No two
        share an identity key.
    """
    ordered = sorted(raw_messages, key=_sort_key)
    if not ordered:
        return []

    identified = [m for m in ordered if m.provider_message_id]
    unidentified = [m for m in ordered if not m.provider_message_id]

    survivors = _collapse_identified(identified) + _collapse_unidentified(
        unidentified, merge_window
    )

    # A row can be eligible for both branches (same storage id seen with and
    # without a provider id); the later one wins.
    by_identity: dict[str, RawMessage] = {}
    for message in sorted(survivors, key=_sort_key):
        by_identity[message.identity_key] = message

    return sorted(by_identity.values(), key=_sort_key)

