"""Session-scoped persistence and memory management for agents.

Storages hold ordered typed records behind a chain of storage drivers,
a Context groups the storages of one agent session, and truncation
strategies keep chat histories under a token budget.
"""

from .exceptions import CompressionError, ConfigurationError, ContextStorageError, OutOfRangeError
from .records import Message, MessageArray, Record, RecordArray, Usage, UsageArray, UsageRecord
from .identity import TEMP_SESSION_PREFIX, SessionIdentity, SessionIdentityArray, is_temporary
from .hooks import Hooks
from .drivers import (
    CacheStorage,
    FileStorage,
    InMemoryStorage,
    RelationalStorage,
    SimpleRelationalStorage,
    StorageDriver,
    build_drivers,
    get_storage_driver,
    register_driver,
)
from .storage_manager import FanOutResult, StorageManager
from .storage import Storage
from .identity_storage import IdentityStorage
from .chat_history_storage import ChatHistoryStorage
from .usage_storage import UsageStorage
from .truncation import (
    SlidingWindowStrategy,
    SummarizationStrategy,
    SymbolizationStrategy,
    TokenBudgetStrategy,
    TruncationStrategy,
    build_truncation_strategy,
    effective_threshold,
)
from .context import Context
from .context_query import ContextQuery
from .compressors import LLMSummarizer, LLMSymbolizer
from .config import load_config, setup_logger

__all__ = [
    "TEMP_SESSION_PREFIX",
    "CacheStorage",
    "ChatHistoryStorage",
    "CompressionError",
    "ConfigurationError",
    "Context",
    "ContextQuery",
    "ContextStorageError",
    "FanOutResult",
    "FileStorage",
    "Hooks",
    "IdentityStorage",
    "InMemoryStorage",
    "LLMSummarizer",
    "LLMSymbolizer",
    "Message",
    "MessageArray",
    "OutOfRangeError",
    "Record",
    "RecordArray",
    "RelationalStorage",
    "SessionIdentity",
    "SessionIdentityArray",
    "SimpleRelationalStorage",
    "SlidingWindowStrategy",
    "Storage",
    "StorageDriver",
    "StorageManager",
    "SummarizationStrategy",
    "SymbolizationStrategy",
    "TokenBudgetStrategy",
    "TruncationStrategy",
    "Usage",
    "UsageArray",
    "UsageRecord",
    "UsageStorage",
    "build_drivers",
    "build_truncation_strategy",
    "effective_threshold",
    "get_storage_driver",
    "is_temporary",
    "load_config",
    "register_driver",
    "setup_logger",
]
