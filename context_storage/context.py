"""Agent session context.

A Context owns the base identity of one agent session and every storage
registered for it. Bulk operations fan out to each storage independently:
one failing storage is logged and reported, the others still run.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from . import hooks as events
from .chat_history_storage import ChatHistoryStorage
from .drivers.factory import build_drivers
from .exceptions import ConfigurationError
from .identity import TEMP_SESSION_PREFIX, SessionIdentity, SessionIdentityArray
from .identity_storage import IdentityStorage
from .storage import DEFAULT_DRIVERS, Storage
from .storage_manager import StorageManager
from .truncation import base as truncation
from .truncation.factory import build_truncation_strategy
from .usage_storage import UsageStorage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .drivers.base import StorageDriver
    from .hooks import Hooks
    from .storage_manager import DriverSpec
    from .truncation.base import Compressor, TruncationStrategy

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Storage)

DEFAULT_TRUNCATION_THRESHOLD = 128000
DEFAULT_TRUNCATION_BUFFER = 0.2

# Storage classes whose driver chain can be set in the configuration
_STORAGE_SECTIONS = {
    ChatHistoryStorage.prefix: "default_history_storage",
    UsageStorage.prefix: "default_usage_storage",
}


class Context:
    """Storages of one agent session.

    Attributes:
        identity: Unscoped base identity of the session
        hooks: Optional event dispatcher shared with every storage
        default_drivers: Driver chain used by ``make()``
        identity_storage: Tracking list of registered identities

    """

    def __init__(
        self,
        identity: SessionIdentity,
        drivers: Iterable[DriverSpec] | None = None,
        hooks: Hooks | None = None,
        storage_drivers: dict[str, Iterable[DriverSpec]] | None = None,
        identity_drivers: Iterable[DriverSpec] | None = None,
        temp_session_prefix: str = TEMP_SESSION_PREFIX,
        truncation_strategy: TruncationStrategy | None = None,
        truncation_threshold: int = DEFAULT_TRUNCATION_THRESHOLD,
        truncation_buffer: float = DEFAULT_TRUNCATION_BUFFER,
    ) -> None:
        """Initialize the context.

        Args:
            identity: Base identity of the session
            drivers: Default driver chain. None uses one in-memory driver
            hooks: Optional event dispatcher
            storage_drivers: Driver chains per storage prefix, used by
                ``make()`` in place of the default chain
            identity_drivers: Driver chain of the identity tracking list.
                None uses the default chain
            temp_session_prefix: Chat name prefix of untracked sessions
            truncation_strategy: Strategy used by ``apply_truncation()``
            truncation_threshold: Token budget of the chat history
            truncation_buffer: Safety fraction in [0, 1)

        Raises:
            ConfigurationError: If a driver chain or truncation setting is invalid

        """
        self.identity = identity
        self.hooks = hooks
        # Resolved once so every storage made here shares the driver instances
        self.default_drivers: list[StorageDriver] = StorageManager(
            DEFAULT_DRIVERS if drivers is None else drivers,
        ).drivers
        self.storage_drivers: dict[str, list[StorageDriver]] = {
            prefix: StorageManager(chain).drivers for prefix, chain in (storage_drivers or {}).items()
        }
        self.identity_storage = IdentityStorage(
            identity,
            drivers=self.default_drivers if identity_drivers is None else identity_drivers,
            hooks=hooks,
            temp_session_prefix=temp_session_prefix,
        )
        self._storages: dict[str, Storage] = {}

        self.truncation_strategy = truncation_strategy
        self.truncation_threshold = DEFAULT_TRUNCATION_THRESHOLD
        self.truncation_buffer = DEFAULT_TRUNCATION_BUFFER
        self.set_truncation_threshold(truncation_threshold)
        self.set_truncation_buffer(truncation_buffer)

    @classmethod
    def from_config(
        cls,
        identity: SessionIdentity,
        config: dict[str, Any],
        hooks: Hooks | None = None,
        compressor: Compressor | None = None,
    ) -> Context:
        """Create a context from the configuration dictionary.

        Args:
            identity: Base identity of the session
            config: Whole configuration (see config.yaml)
            hooks: Optional event dispatcher
            compressor: Compressor for summarizing strategies

        Returns:
            New Context

        Raises:
            ConfigurationError: If the configuration is invalid

        """
        storage_config = config.get("context_storage", {})
        storage_drivers = {
            prefix: build_drivers(config, section)
            for prefix, section in _STORAGE_SECTIONS.items()
            if storage_config.get(section) is not None
        }

        truncation_config = storage_config.get("truncation", {})
        strategy = None
        if truncation_config.get("enabled", False):
            strategy = build_truncation_strategy(truncation_config, compressor=compressor)

        return cls(
            identity,
            drivers=build_drivers(config),
            hooks=hooks,
            storage_drivers=storage_drivers,
            temp_session_prefix=storage_config.get("temp_session_prefix", TEMP_SESSION_PREFIX),
            truncation_strategy=strategy,
            truncation_threshold=truncation_config.get("threshold", DEFAULT_TRUNCATION_THRESHOLD),
            truncation_buffer=truncation_config.get("buffer", DEFAULT_TRUNCATION_BUFFER),
        )

    # Registration

    def register(self, storage: Storage) -> Storage:
        """Register a storage under its prefix and track its identity.

        A storage already registered under the same prefix is replaced.

        Args:
            storage: Storage to register

        Returns:
            The registered storage

        """
        prefix = storage.storage_prefix()
        if prefix in self._storages and self._storages[prefix] is not storage:
            logger.debug("Replacing storage registered under %s", prefix)
        self._storages[prefix] = storage
        self.identity_storage.add_identity(storage.identity)
        self._dispatch(events.STORAGE_REGISTERED, storage=storage, prefix=prefix)
        return storage

    def make(self, storage_class: type[S], drivers: Iterable[DriverSpec] | None = None, **kwargs: Any) -> S:
        """Create and register a storage bound to this context's identity.

        Args:
            storage_class: Storage subclass
            drivers: Driver chain. None uses the chain configured for the
                storage prefix, then the default chain
            **kwargs: Extra constructor arguments of the storage class

        Returns:
            The registered storage

        """
        if drivers is None:
            drivers = self.storage_drivers.get(storage_class.storage_prefix(), self.default_drivers)
        storage = storage_class(self.identity, drivers, hooks=self.hooks, **kwargs)
        self.register(storage)
        return storage

    def get_storage(self, prefix_or_class: str | type[Storage]) -> Storage | None:
        return self._storages.get(self._prefix_of(prefix_or_class))

    def has(self, prefix_or_class: str | type[Storage]) -> bool:
        return self._prefix_of(prefix_or_class) in self._storages

    def storage_names(self) -> list[str]:
        return list(self._storages)

    def get_storages(self) -> dict[str, Storage]:
        return dict(self._storages)

    def chat_history(self) -> ChatHistoryStorage | None:
        return self.get_storage(ChatHistoryStorage)

    @staticmethod
    def _prefix_of(prefix_or_class: str | type[Storage]) -> str:
        if isinstance(prefix_or_class, str):
            return prefix_or_class
        return prefix_or_class.storage_prefix()

    # Tracking

    def get_tracked_keys(self) -> list[str]:
        return self.identity_storage.get_keys()

    def get_tracked_keys_by_prefix(self, prefix: str) -> list[str]:
        return self.identity_storage.get_keys_by_prefix(prefix)

    def get_tracked_identities(self) -> SessionIdentityArray:
        return self.identity_storage.get_identities()

    def get_tracked_identities_by_scope(self, scope: str) -> SessionIdentityArray:
        return self.identity_storage.get_identities_by_scope(scope)

    def remove_identity_from_tracking(self, key: str) -> bool:
        """Stop tracking a key and persist the tracking list."""
        removed = self.identity_storage.remove_by_key(key)
        if removed:
            self.identity_storage.save()
        return removed

    # Bulk operations

    def save(self) -> dict[str, bool]:
        """Save every registered storage and the tracking list.

        Returns:
            Success per storage prefix

        """
        self._dispatch(events.CONTEXT_SAVING)
        results = self._fan_out("save", lambda storage: storage.save())
        results[IdentityStorage.prefix] = self._run(IdentityStorage.prefix, "save", self.identity_storage.save)
        self._dispatch(events.CONTEXT_SAVED, results=results)
        return results

    def read(self) -> dict[str, bool]:
        """Reload every registered storage from its drivers.

        Returns:
            Success per storage prefix

        """
        self._dispatch(events.CONTEXT_READING)
        results = self._fan_out("read", lambda storage: storage.read() is not None)
        self._dispatch(events.CONTEXT_READ, results=results)
        return results

    def clear(self) -> dict[str, bool]:
        """Empty every registered storage. Nothing is written until save.

        Returns:
            Success per storage prefix

        """
        self._dispatch(events.CONTEXT_CLEARING)

        def clear(storage: Storage) -> bool:
            storage.clear()
            return True

        results = self._fan_out("clear", clear)
        self._dispatch(events.CONTEXT_CLEARED, results=results)
        return results

    def remove(self) -> dict[str, bool]:
        """Delete every registered storage from its drivers.

        The removed keys are dropped from the tracking list, which is then
        saved. Identities tracked by other sessions of the agent stay.

        Returns:
            Success per storage prefix

        """
        results = self._fan_out("remove", lambda storage: storage.remove())
        for storage in self._storages.values():
            if results.get(storage.storage_prefix()):
                self.identity_storage.remove_by_key(storage.key)
        results[IdentityStorage.prefix] = self._run(IdentityStorage.prefix, "save", self.identity_storage.save)
        return results

    def _fan_out(self, action: str, operation: Callable[[Storage], bool]) -> dict[str, bool]:
        return {
            prefix: self._run(prefix, action, lambda storage=storage: operation(storage))
            for prefix, storage in self._storages.items()
        }

    @staticmethod
    def _run(prefix: str, action: str, operation: Callable[[], bool]) -> bool:
        try:
            return bool(operation())
        except Exception:
            logger.warning("Storage %s failed to %s", prefix, action, exc_info=True)
            return False

    # Truncation

    def set_truncation_strategy(self, strategy: TruncationStrategy | None) -> None:
        self.truncation_strategy = strategy

    def set_truncation_threshold(self, threshold: int) -> None:
        """Set the token budget of the chat history.

        Raises:
            ConfigurationError: If the threshold is negative

        """
        if threshold < 0:
            msg = f"Truncation threshold must not be negative, got {threshold}"
            raise ConfigurationError(msg)
        self.truncation_threshold = int(threshold)

    def set_truncation_buffer(self, buffer: float) -> None:
        """Set the safety fraction taken off the threshold.

        Raises:
            ConfigurationError: If the buffer lies outside [0, 1)

        """
        truncation.validate_buffer(buffer)
        self.truncation_buffer = float(buffer)

    def effective_threshold(self) -> int:
        return truncation.effective_threshold(self.truncation_threshold, self.truncation_buffer)

    def apply_truncation(
        self,
        chat_history: ChatHistoryStorage | None = None,
        current_tokens: int | None = None,
    ) -> bool:
        """Truncate the chat history if it exceeds the effective threshold.

        Args:
            chat_history: Storage to truncate. Defaults to the registered
                chat history
            current_tokens: Token count of the history. Defaults to the
                last usage reported in the history

        Returns:
            True if the history was rewritten

        """
        if self.truncation_strategy is None:
            return False

        if chat_history is None:
            chat_history = self.chat_history()
            if chat_history is None:
                return False

        if current_tokens is None:
            current_tokens = chat_history.last_known_total_tokens()

        threshold = self.effective_threshold()
        if current_tokens <= threshold:
            return False

        messages = chat_history.get_messages()
        truncated = self.truncation_strategy.truncate(messages, threshold, current_tokens)
        if truncated is messages:
            return False

        chat_history.set(truncated)
        logger.info(
            "Truncated %s from %d to %d messages (%d tokens > %d)",
            chat_history.key,
            len(messages),
            len(truncated),
            current_tokens,
            threshold,
        )
        self._dispatch(
            events.AFTER_TRUNCATION,
            storage=chat_history,
            strategy=self.truncation_strategy,
            before=len(messages),
            after=len(truncated),
        )
        return True

    def _dispatch(self, event: str, **payload: Any) -> None:
        if self.hooks is not None:
            self.hooks.dispatch(event, context=self, **payload)

    def __repr__(self) -> str:
        return f"Context(identity={self.identity.key!r}, storages={self.storage_names()!r})"
