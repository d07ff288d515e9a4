"""Token budget truncation."""

from __future__ import annotations

from typing import Any

from clients.token_estimator import estimate_message_tokens
from context_storage.exceptions import ConfigurationError
from context_storage.records.message import MessageArray

from .base import TruncationStrategy


class TokenBudgetStrategy(TruncationStrategy):
    """Keeps the newest regular messages fitting ``threshold * target_percentage`` tokens.

    Preserved messages count against the budget but are never dropped.
    Token counts are estimated per message; assistant messages carrying
    usage count their completion tokens.
    """

    name = "token_budget"

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        return {"target_percentage": 0.75, "preserve_system": True}

    def validate(self) -> None:
        super().validate()
        target = self.config.get("target_percentage")
        if isinstance(target, bool) or not isinstance(target, (int, float)) or not 0 < target <= 1:
            msg = f"target_percentage must lie in (0, 1], got {target!r}"
            raise ConfigurationError(msg)

    def truncate(self, messages: MessageArray, threshold: int, current_tokens: int) -> MessageArray:
        target_tokens = int(threshold * self.get_config("target_percentage"))
        if current_tokens <= target_tokens:
            return messages

        preserved, regular = self.partition(messages)
        used = sum(estimate_message_tokens(message) for message in preserved)

        kept = []
        for message in reversed(regular):
            tokens = estimate_message_tokens(message)
            if used + tokens > target_tokens:
                break
            kept.append(message)
            used += tokens
        kept.reverse()

        if len(kept) == len(regular):
            return messages
        return MessageArray([*preserved, *kept])
