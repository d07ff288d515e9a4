"""Chat history truncation strategies."""

from .base import (
    Compressor,
    TruncationStrategy,
    effective_threshold,
    needs_truncation,
    normalize_role,
    symbol_line,
)
from .factory import STRATEGIES, build_truncation_strategy
from .sliding_window import SlidingWindowStrategy
from .summarization import SummarizationStrategy
from .symbolization import SymbolizationStrategy
from .token_budget import TokenBudgetStrategy

__all__ = [
    "STRATEGIES",
    "Compressor",
    "SlidingWindowStrategy",
    "SummarizationStrategy",
    "SymbolizationStrategy",
    "TokenBudgetStrategy",
    "TruncationStrategy",
    "build_truncation_strategy",
    "effective_threshold",
    "needs_truncation",
    "normalize_role",
    "symbol_line",
]
