"""Symbolization truncation."""

from __future__ import annotations

import logging
from typing import Any, Callable

from context_storage.exceptions import ConfigurationError
from context_storage.records.message import Message, MessageArray

from .base import Compressor, TruncationStrategy, symbol_line

logger = logging.getLogger(__name__)

DEFAULT_SYMBOL_TITLE = "Conversation symbols"
DEFAULT_BATCH_SIZE = 10


class SymbolizationStrategy(TruncationStrategy):
    """Replaces the dropped regular messages with one line per message.

    Dropped messages are sent to the compressor ``batch_size`` at a time.
    The compressor returns a message with one ``- [Role] symbol`` line per
    input message. A batch whose call fails, or whose line count does not
    match, falls back to content previews. Without a compressor every line
    is a preview. All lines end up in a single developer message.
    """

    name = "symbolization"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        preserve: Callable[[Message], bool] | None = None,
        compressor: Compressor | None = None,
        **options: Any,
    ) -> None:
        self.compressor = compressor
        super().__init__(config, preserve, **options)

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        return {
            "keep_messages": 5,
            "preserve_system": True,
            "batch_size": DEFAULT_BATCH_SIZE,
            "symbol_title": DEFAULT_SYMBOL_TITLE,
        }

    @property
    def batch_size(self) -> int:
        return int(self.get_config("batch_size", DEFAULT_BATCH_SIZE))

    def validate(self) -> None:
        super().validate()
        batch_size = self.config.get("batch_size")
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
            msg = f"batch_size must be a positive integer, got {batch_size!r}"
            raise ConfigurationError(msg)

    def truncate(self, messages: MessageArray, threshold: int, current_tokens: int) -> MessageArray:
        preserved, regular = self.partition(messages)
        if len(regular) <= self.keep_messages:
            return messages

        dropped, kept = self.split_regular(regular)
        lines = self.symbolize(dropped)
        symbols = Message.developer(f"{self.get_config('symbol_title')}:\n" + "\n".join(lines))
        return MessageArray([*preserved, symbols, *kept])

    def symbolize(self, dropped: list[Message]) -> list[str]:
        """Return one symbol line per dropped message, in order."""
        lines: list[str] = []
        for start in range(0, len(dropped), self.batch_size):
            batch = dropped[start : start + self.batch_size]
            lines.extend(self.symbolize_batch(batch, start // self.batch_size))
        return lines

    def symbolize_batch(self, batch: list[Message], batch_index: int = 0) -> list[str]:
        if self.compressor is None:
            return self.fallback_lines(batch)

        try:
            result = self.compressor.compress(MessageArray(batch))
        except Exception as e:
            logger.warning(
                "Symbolization of batch %d (%d messages) failed, using previews: %s",
                batch_index,
                len(batch),
                e,
            )
            return self.fallback_lines(batch)

        text = result.content_as_string() if isinstance(result, Message) else str(result)
        lines = [line for line in text.splitlines() if line.strip()]
        if len(lines) != len(batch):
            logger.warning(
                "Symbolizer returned %d lines for %d messages in batch %d, using previews",
                len(lines),
                len(batch),
                batch_index,
            )
            return self.fallback_lines(batch)
        return lines

    @staticmethod
    def fallback_lines(batch: list[Message]) -> list[str]:
        return [symbol_line(message) for message in batch]
