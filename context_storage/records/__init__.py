"""Typed records persisted by the storages."""

from .base import Record, RecordArray
from .message import Message, MessageArray
from .usage import Usage, UsageArray, UsageRecord

__all__ = [
    "Message",
    "MessageArray",
    "Record",
    "RecordArray",
    "Usage",
    "UsageArray",
    "UsageRecord",
]
