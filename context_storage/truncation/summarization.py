"""Summarization truncation."""

from __future__ import annotations

import logging
from typing import Any, Callable

from context_storage.exceptions import ConfigurationError
from context_storage.records.message import Message, MessageArray

from .base import Compressor, TruncationStrategy

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_TITLE = "Summary of previous conversation"


class SummarizationStrategy(TruncationStrategy):
    """Replaces the dropped regular messages with one summary message.

    The summary comes from a single compressor call and is inserted right
    after the preserved messages. When the compressor fails, a developer
    message noting how many messages were dropped takes its place.
    """

    name = "summarization"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        preserve: Callable[[Message], bool] | None = None,
        compressor: Compressor | None = None,
        **options: Any,
    ) -> None:
        """Initialize SummarizationStrategy.

        Args:
            config: Settings merged over ``default_config()``
            preserve: Predicate replacing the role-based preservation rule
            compressor: Object whose ``compress(messages)`` returns the summary
            **options: Settings merged over config

        Raises:
            ConfigurationError: If no compressor is given or a setting is invalid

        """
        self.compressor = compressor
        super().__init__(config, preserve, **options)

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        return {
            "keep_messages": 5,
            "preserve_system": True,
            "summary_title": DEFAULT_SUMMARY_TITLE,
        }

    def validate(self) -> None:
        super().validate()
        if self.compressor is None:
            msg = "SummarizationStrategy requires a compressor"
            raise ConfigurationError(msg)

    def truncate(self, messages: MessageArray, threshold: int, current_tokens: int) -> MessageArray:
        preserved, regular = self.partition(messages)
        if len(regular) <= self.keep_messages:
            return messages

        dropped, kept = self.split_regular(regular)
        summary = self.summarize(dropped)
        return MessageArray([*preserved, summary, *kept])

    def summarize(self, dropped: list[Message]) -> Message:
        """Compress the dropped messages, falling back to a placeholder.

        Args:
            dropped: Regular messages being removed

        Returns:
            Summary message

        """
        try:
            summary = self.compressor.compress(MessageArray(dropped))
        except Exception as e:
            logger.warning("Summarization of %d messages failed, using placeholder: %s", len(dropped), e)
            return self.placeholder(len(dropped))

        if isinstance(summary, str):
            summary = Message.developer(f"{self.get_config('summary_title')}:\n{summary}")
        if not isinstance(summary, Message):
            logger.warning("Compressor returned %s instead of a message, using placeholder", type(summary).__name__)
            return self.placeholder(len(dropped))
        return summary

    def placeholder(self, count: int) -> Message:
        title = self.get_config("summary_title", DEFAULT_SUMMARY_TITLE)
        return Message.developer(f"{title}: Previous conversation contained {count} messages.")
