"""LLM client interface and token estimation."""

from .llm_base import LLMClient
from .token_estimator import estimate_message_tokens, estimate_messages_tokens, estimate_tokens

__all__ = ["LLMClient", "estimate_message_tokens", "estimate_messages_tokens", "estimate_tokens"]
