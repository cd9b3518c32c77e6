"""Reconciliation of the raw message feed into canonical records."""

from inbox.reconcile.engine import MERGE_WINDOW, reconcile
from inbox.reconcile.summaries import summarize_conversations

__all__ = [
    "MERGE_WINDOW",
    "reconcile",
    "summarize_conversations",
]
