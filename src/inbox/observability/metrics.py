"""Prometheus metrics for the messaging console core.

Provides:
- ``DUPLICATES_COLLAPSED``: raw message rows coalesced away by reconciliation.
- ``READ_RECEIPTS_FLUSHED``: message ids sent in mark-read batches.
- ``READ_FLUSHES_DISCARDED``: pending read batches dropped on a context change.
- ``REFRESH_FAILURES``: failed refreshes, labelled by data domain.
- ``STALE_REFRESHES_DISCARDED``: refresh results ignored because the
  selection context changed while they were in flight.

Counters are updated at the point the event happens, not by polling.
"""

from __future__ import annotations

from prometheus_client import Counter

DUPLICATES_COLLAPSED: Counter = Counter(
    "inbox_duplicates_collapsed_total",
    "Raw message rows merged into an existing canonical message",
)

READ_RECEIPTS_FLUSHED: Counter = Counter(
    "inbox_read_receipts_flushed_total",
    "Message ids included in mark-read batches",
)

READ_FLUSHES_DISCARDED: Counter = Counter(
    "inbox_read_flushes_discarded_total",
    "Pending read batches discarded because the conversation changed",
)

REFRESH_FAILURES: Counter = Counter(
    "inbox_refresh_failures_total",
    "Refreshes that failed and left the previous state in place",
    ["domain"],
)

STALE_REFRESHES_DISCARDED: Counter = Counter(
    "inbox_stale_refreshes_discarded_total",
    "Refresh results ignored because the selection context changed",
    ["domain"],
)
