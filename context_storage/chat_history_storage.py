"""Chat history storage."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .records.message import Message, MessageArray
from .storage import Storage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .hooks import Hooks
    from .identity import SessionIdentity
    from .storage_manager import DriverSpec, StorageManager

logger = logging.getLogger(__name__)


class ChatHistoryStorage(Storage[Message]):
    """Ordered messages of one chat session.

    Message metadata is persisted only when ``store_meta`` is on.
    """

    prefix = "chatHistory"
    array_class = MessageArray

    def __init__(
        self,
        identity: SessionIdentity,
        drivers: Iterable[DriverSpec] | StorageManager | None = None,
        hooks: Hooks | None = None,
        store_meta: bool = False,
    ) -> None:
        super().__init__(identity, drivers, hooks)
        self.store_meta = store_meta
        self._usage_warned = False

    def identifier(self) -> str:
        return self.key

    def add_message(self, message: Message | dict[str, Any]) -> None:
        self.add(message)

    def get_messages(self) -> MessageArray:
        return self.get()

    def get_last_message(self) -> Message | None:
        return self.get_last()

    def to_list(self) -> list[dict[str, Any]]:
        self.ensure_loaded()
        return self._items.to_list()

    def to_list_with_meta(self) -> list[dict[str, Any]]:
        self.ensure_loaded()
        return self._items.to_list_with_meta()

    def _encode(self) -> list[dict[str, Any]]:
        if self.store_meta:
            return self._items.to_list_with_meta()
        return self._items.to_list()

    def read_from_memory(self) -> MessageArray:
        """Reload the messages from the drivers."""
        return self.read()

    def write_to_memory(self) -> bool:
        """Write the messages to the drivers even when nothing changed."""
        return self.save(force=True)

    def last_known_total_tokens(self) -> int:
        """Return the total tokens reported with the most recent usage.

        Returns:
            ``usage.total_tokens`` of the newest message carrying usage, or 0

        """
        self.ensure_loaded()
        for message in reversed(self._items.all()):
            if message.usage is not None:
                return message.usage.total_tokens or 0

        if len(self._items):
            # Called every turn, so only the first miss is a warning
            log = logger.debug if self._usage_warned else logger.warning
            log("No message in %s carries usage, assuming 0 tokens", self.key)
            self._usage_warned = True
        return 0
