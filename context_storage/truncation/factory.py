"""Truncation strategy factory."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from context_storage.exceptions import ConfigurationError

from .sliding_window import SlidingWindowStrategy
from .summarization import SummarizationStrategy
from .symbolization import SymbolizationStrategy
from .token_budget import TokenBudgetStrategy

if TYPE_CHECKING:
    from .base import Compressor, TruncationStrategy

STRATEGIES: dict[str, type[TruncationStrategy]] = {
    SlidingWindowStrategy.name: SlidingWindowStrategy,
    SummarizationStrategy.name: SummarizationStrategy,
    SymbolizationStrategy.name: SymbolizationStrategy,
    TokenBudgetStrategy.name: TokenBudgetStrategy,
}

# Keys of the truncation section that configure the Context, not the strategy
CONTEXT_KEYS = ("enabled", "strategy", "threshold", "buffer")


def build_truncation_strategy(
    config: dict[str, Any],
    compressor: Compressor | None = None,
) -> TruncationStrategy:
    """Create a strategy from a truncation configuration section.

    Args:
        config: Truncation section, e.g. ``{"strategy": "sliding_window",
            "keep_messages": 10}``
        compressor: Compressor for the summarization and symbolization
            strategies

    Returns:
        Configured strategy

    Raises:
        ConfigurationError: If the strategy name is unknown or its settings
            are invalid

    """
    name = config.get("strategy", SlidingWindowStrategy.name)
    strategy_class = STRATEGIES.get(name)
    if strategy_class is None:
        msg = f"Unknown truncation strategy: {name}"
        raise ConfigurationError(msg)

    options = {key: value for key, value in config.items() if key not in CONTEXT_KEYS}
    if strategy_class in (SummarizationStrategy, SymbolizationStrategy):
        return strategy_class(options, compressor=compressor)
    return strategy_class(options)
