"""Tracking of every identity registered in a Context.

All sessions of one agent share one tracking list, keyed only by the agent
name, which lets ContextQuery discover and clean up storages without an
agent instance.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from . import hooks as events
from .identity import TEMP_SESSION_PREFIX, SessionIdentity, SessionIdentityArray, is_temporary
from .storage import Storage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .hooks import Hooks
    from .storage_manager import DriverSpec, StorageManager

logger = logging.getLogger(__name__)


class IdentityStorage(Storage[SessionIdentity]):
    """Storage of the identities tracked for one agent."""

    prefix = "context"
    array_class = SessionIdentityArray

    def __init__(
        self,
        identity: SessionIdentity,
        drivers: Iterable[DriverSpec] | StorageManager | None = None,
        hooks: Hooks | None = None,
        temp_session_prefix: str = TEMP_SESSION_PREFIX,
    ) -> None:
        """Initialize IdentityStorage.

        Args:
            identity: Any identity of the agent. Only its agent name is kept
            drivers: Driver chain or StorageManager
            hooks: Optional event dispatcher
            temp_session_prefix: Chat name prefix of untracked sessions

        """
        super().__init__(SessionIdentity(agent_name=identity.agent_name), drivers, hooks)
        self.temp_session_prefix = temp_session_prefix

    def add_identity(self, identity: SessionIdentity) -> bool:
        """Track an identity.

        Temporary identities and keys already tracked are skipped.

        Args:
            identity: Scoped identity of a registered storage

        Returns:
            True if the identity was added

        """
        if is_temporary(identity, self.temp_session_prefix):
            logger.debug("Skipping temporary identity %s", identity.key)
            return False

        self.ensure_loaded()
        if self._items.has_key(identity.key):
            return False

        self._dispatch(events.IDENTITY_ADDING, identity=identity)
        self._items.add(identity)
        self._dirty = True
        self._dispatch(events.IDENTITY_ADDED, identity=identity)
        return True

    def remove_by_key(self, key: str) -> bool:
        """Stop tracking the identity with a key.

        Returns:
            True if an identity was removed

        """
        self.ensure_loaded()
        if not self._items.has_key(key):
            return False
        self._items.remove_by_key(key)
        self._dirty = True
        return True

    def has_key(self, key: str) -> bool:
        self.ensure_loaded()
        return self._items.has_key(key)

    def get_by_key(self, key: str) -> SessionIdentity | None:
        self.ensure_loaded()
        return self._items.get_by_key(key)

    def get_keys(self) -> list[str]:
        self.ensure_loaded()
        return self._items.get_keys()

    def get_identities(self) -> SessionIdentityArray:
        return self.get()

    def get_identities_by_scope(self, scope: str) -> SessionIdentityArray:
        self.ensure_loaded()
        return self._items.filter_by_scope(scope)

    def get_keys_by_prefix(self, prefix: str) -> list[str]:
        return [key for key in self.get_keys() if key.startswith(prefix)]
