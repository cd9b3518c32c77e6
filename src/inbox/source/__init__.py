"""Record Source boundary and its HTTP implementation."""

from inbox.source.base import RecordSource
from inbox.source.client import HttpRecordSource, parse_records

__all__ = [
    "HttpRecordSource",
    "RecordSource",
    "parse_records",
]
