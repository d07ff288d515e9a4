"""LLM client base class.

Defines the abstract interface the compressors use to talk to an LLM
provider. Provider-specific clients live outside this package.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Abstract base class of LLM clients.

    A client keeps one conversation: a system prompt plus the user messages
    sent so far. ``get_response()`` asks the provider for the next reply.

    Token statistics hook:
    - set it with ``set_statistics_hook()``
    - subclasses call ``_invoke_statistics_hook()`` from ``get_response()``
    """

    def __init__(self) -> None:
        """Initialize the client."""
        self._statistics_hook: Callable[..., None] | None = None

    @abstractmethod
    def send_system_prompt(self, prompt: str) -> None:
        """Set the system prompt.

        Args:
            prompt: System prompt text

        """

    @abstractmethod
    def send_user_message(self, message: str) -> None:
        """Append a user message to the conversation.

        Args:
            message: User message text

        """

    @abstractmethod
    def get_response(self) -> tuple[str, list, int]:
        """Get the next response from the LLM.

        Returns:
            Tuple of (response text, function calls, tokens used)

        """

    def set_statistics_hook(self, hook: Callable[..., None] | None) -> None:
        """Set the token statistics hook.

        Args:
            hook: Called with ``llm_calls`` and ``tokens`` keyword arguments
                after every response. None disables it

        """
        self._statistics_hook = hook

    def _invoke_statistics_hook(self, tokens: int) -> None:
        """Call the statistics hook.

        Args:
            tokens: Tokens used by the response

        """
        if self._statistics_hook is not None:
            try:
                self._statistics_hook(llm_calls=1, tokens=tokens)
            except Exception:
                # Statistics failures must not break the LLM call
                logger.warning("Statistics hook failed", exc_info=True)
