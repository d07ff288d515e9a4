"""Sliding window truncation."""

from __future__ import annotations

from context_storage.records.message import MessageArray

from .base import TruncationStrategy


class SlidingWindowStrategy(TruncationStrategy):
    """Keeps the preserved messages plus the last ``keep_messages`` regular ones."""

    name = "sliding_window"

    def truncate(self, messages: MessageArray, threshold: int, current_tokens: int) -> MessageArray:
        preserved, regular = self.partition(messages)
        if len(regular) <= self.keep_messages:
            return messages

        _, kept = self.split_regular(regular)
        return MessageArray([*preserved, *kept])
