"""Debounced read-receipt batching."""

from inbox.receipts.batcher import DEFAULT_DELAY_SECONDS, ReadReceiptBatcher

__all__ = [
    "DEFAULT_DELAY_SECONDS",
    "ReadReceiptBatcher",
]
