"""Truncation strategy base.

A strategy shrinks a chat history once its token count passes the
effective threshold::

    effective_threshold = threshold * (1 - buffer),  0 <= buffer < 1

Records are split into preserved ones (system and developer messages by
default) and regular ones. Preserved records always survive and come
first; regular records keep their relative order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Protocol

from context_storage.exceptions import ConfigurationError
from context_storage.records.message import ASSISTANT, PRESERVED_ROLES, USER, Message, MessageArray

if TYPE_CHECKING:
    from collections.abc import Sequence

PREVIEW_LENGTH = 50


class Compressor(Protocol):
    """Turns a range of messages into a single message."""

    def compress(self, messages: MessageArray) -> Message: ...


def effective_threshold(threshold: int, buffer: float) -> int:
    """Return the token count above which truncation runs.

    Args:
        threshold: Configured token budget
        buffer: Safety fraction in [0, 1)

    Returns:
        ``threshold * (1 - buffer)`` rounded down

    Raises:
        ConfigurationError: If buffer lies outside [0, 1) or threshold is negative

    """
    validate_buffer(buffer)
    if threshold < 0:
        msg = f"Truncation threshold must not be negative, got {threshold}"
        raise ConfigurationError(msg)
    # round() absorbs float noise such as 699.9999999999999
    return int(round(threshold * (1 - buffer), 6))


def needs_truncation(current_tokens: int, threshold: int, buffer: float) -> bool:
    return current_tokens > effective_threshold(threshold, buffer)


def validate_buffer(buffer: float) -> None:
    if not 0 <= buffer < 1:
        msg = f"Truncation buffer must lie in [0, 1), got {buffer}"
        raise ConfigurationError(msg)


def normalize_role(role: str) -> str:
    """Role label used in symbol lines."""
    if role == ASSISTANT:
        return "You"
    if role == USER:
        return "User"
    return role[:1].upper() + role[1:]


def basic_preview(content: str) -> str:
    if len(content) > PREVIEW_LENGTH:
        return content[:PREVIEW_LENGTH] + "..."
    return content


def symbol_line(message: Message, symbol: str | None = None, role: str | None = None) -> str:
    """Format one ``- [Role] symbol`` line, previewing the content when no symbol is given."""
    label = role or normalize_role(message.role)
    text = symbol if symbol else basic_preview(message.content_as_string())
    # Symbol lines are split on newlines later
    text = " ".join(text.split())
    return f"- [{label}] {text}"


class TruncationStrategy(ABC):
    """Base class of truncation strategies.

    Strategies hold configuration only and never keep state between calls.
    """

    name: ClassVar[str] = ""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        preserve: Callable[[Message], bool] | None = None,
        **options: Any,
    ) -> None:
        """Initialize the strategy.

        Args:
            config: Settings merged over ``default_config()``
            preserve: Predicate replacing the role-based preservation rule
            **options: Settings merged over config

        Raises:
            ConfigurationError: If a setting is invalid

        """
        self.config = {**self.default_config(), **(config or {}), **options}
        self.preserve = preserve
        self.validate()

    @classmethod
    def default_config(cls) -> dict[str, Any]:
        return {"keep_messages": 10, "preserve_system": True}

    def get_config(self, key: str, default: Any = None) -> Any:
        value = self.config.get(key)
        return default if value is None else value

    @property
    def keep_messages(self) -> int:
        return int(self.get_config("keep_messages", 0))

    def validate(self) -> None:
        keep = self.config.get("keep_messages")
        if keep is not None and (isinstance(keep, bool) or not isinstance(keep, int) or keep < 0):
            msg = f"keep_messages must be a non-negative integer, got {keep!r}"
            raise ConfigurationError(msg)

    def should_preserve(self, message: Message) -> bool:
        if self.preserve is not None:
            return bool(self.preserve(message))
        if not self.get_config("preserve_system", False):
            return False
        return message.role in PRESERVED_ROLES

    def partition(self, messages: MessageArray) -> tuple[list[Message], list[Message]]:
        """Split messages into preserved and regular ones, keeping order."""
        preserved = []
        regular = []
        for message in messages:
            if self.should_preserve(message):
                preserved.append(message)
            else:
                regular.append(message)
        return preserved, regular

    def split_regular(self, regular: Sequence[Message]) -> tuple[list[Message], list[Message]]:
        """Split regular messages into the dropped head and the kept tail."""
        cut = len(regular) - self.keep_messages
        return list(regular[:cut]), list(regular[cut:])

    @abstractmethod
    def truncate(self, messages: MessageArray, threshold: int, current_tokens: int) -> MessageArray:
        """Shrink a chat history.

        Args:
            messages: Chat history
            threshold: Effective token threshold that was exceeded
            current_tokens: Token count reported for the history

        Returns:
            The input array itself when nothing was dropped, otherwise a
            new array

        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config!r})"
