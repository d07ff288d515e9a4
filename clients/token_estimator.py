"""Token count estimation.

Character-based estimates for messages that carry no provider usage.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from context_storage.records.message import Message

# Overhead of the role and the message envelope
MESSAGE_OVERHEAD_TOKENS = 4


def _is_cjk(char: str) -> bool:
    code = ord(char)
    return (
        0x3040 <= code <= 0x309F  # Hiragana
        or 0x30A0 <= code <= 0x30FF  # Katakana
        or 0x4E00 <= code <= 0x9FFF  # CJK ideographs
        or 0x3400 <= code <= 0x4DBF  # CJK extension A
    )


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a text.

    Estimation:
    - CJK characters: about 1 character per token
    - Everything else: about 4 characters per token, rounded up

    Args:
        text: Text to estimate

    Returns:
        Estimated token count

    """
    if not text:
        return 0

    cjk_chars = sum(1 for char in text if _is_cjk(char))
    other_chars = len(text) - cjk_chars
    return cjk_chars + math.ceil(other_chars / 4)


def estimate_message_tokens(message: Message) -> int:
    """Estimate the tokens of one message.

    Assistant messages reporting usage count their completion tokens.

    Args:
        message: Message record

    Returns:
        Estimated token count

    """
    if message.role == "assistant" and message.usage is not None:
        return message.usage.completion_tokens
    return estimate_tokens(message.content_as_string())


def estimate_messages_tokens(messages: list[Message]) -> int:
    """Estimate the tokens of a message list including per-message overhead.

    Args:
        messages: Message records

    Returns:
        Estimated token count

    """
    total_tokens = 0
    for message in messages:
        total_tokens += MESSAGE_OVERHEAD_TOKENS
        total_tokens += estimate_message_tokens(message)
        if message.tool_calls:
            total_tokens += estimate_tokens(str(message.tool_calls))
    return total_tokens
