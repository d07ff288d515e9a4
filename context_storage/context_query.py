"""Discovery and bulk cleanup of tracked storages.

ContextQuery reads the identity tracking list of an agent and works on the
storages it names, without needing a live Context or agent::

    ContextQuery.named("support", drivers).for_storage(ChatHistoryStorage).for_user("u1").remove()

Filter methods return a new query; terminal methods read the tracking list.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from .identity import SessionIdentity, SessionIdentityArray
from .identity_storage import IdentityStorage
from .storage import DEFAULT_DRIVERS
from .storage_manager import StorageManager

if TYPE_CHECKING:
    from collections.abc import Iterable

    from typing_extensions import Self

    from .storage import Storage
    from .storage_manager import DriverSpec

logger = logging.getLogger(__name__)

IdentityPredicate = Callable[[SessionIdentity], bool]


class ContextQuery:
    """Chainable query over the identities tracked for one agent."""

    def __init__(
        self,
        agent_name: str,
        drivers: Iterable[DriverSpec] | None = None,
        filters: list[IdentityPredicate] | None = None,
    ) -> None:
        """Initialize ContextQuery.

        Args:
            agent_name: Agent whose tracking list is queried
            drivers: Driver chain holding the tracking list and the
                storages. None uses one in-memory driver
            filters: Predicates every returned identity must satisfy

        """
        self.agent_name = agent_name
        self.storage_manager = StorageManager(DEFAULT_DRIVERS if drivers is None else drivers)
        self.filters: list[IdentityPredicate] = list(filters or [])
        self._identity_storage: IdentityStorage | None = None

    @classmethod
    def named(cls, agent_name: str, drivers: Iterable[DriverSpec] | None = None) -> ContextQuery:
        return cls(agent_name, drivers)

    @property
    def identity_storage(self) -> IdentityStorage:
        if self._identity_storage is None:
            self._identity_storage = IdentityStorage(
                SessionIdentity(agent_name=self.agent_name),
                self.storage_manager,
            )
            self._identity_storage.read()
        return self._identity_storage

    @property
    def drivers(self) -> list:
        return list(self.storage_manager.drivers)

    # Filters

    def _with_filter(self, predicate: IdentityPredicate) -> Self:
        query = type(self)(self.agent_name, self.storage_manager.drivers, [*self.filters, predicate])
        query._identity_storage = self._identity_storage
        return query

    def with_drivers(self, drivers: Iterable[DriverSpec]) -> Self:
        """Return the same query reading from another driver chain."""
        return type(self)(self.agent_name, drivers, self.filters)

    def for_storage(self, prefix_or_class: str | type[Storage]) -> Self:
        scope = prefix_or_class if isinstance(prefix_or_class, str) else prefix_or_class.storage_prefix()
        return self._with_filter(lambda identity: identity.scope == scope)

    def for_user(self, user_id: str) -> Self:
        return self._with_filter(lambda identity: identity.user_id == user_id)

    def for_chat(self, chat_name: str) -> Self:
        return self._with_filter(lambda identity: identity.chat_name == chat_name)

    def for_group(self, group: str) -> Self:
        return self._with_filter(lambda identity: identity.group == group)

    def filter(self, predicate: IdentityPredicate) -> Self:
        return self._with_filter(predicate)

    # Terminal methods

    def get_identities(self) -> SessionIdentityArray:
        identities = self.identity_storage.get_identities()
        for predicate in self.filters:
            identities = identities.filter(predicate)
        return identities

    def get_storage_keys(self) -> list[str]:
        return self.get_identities().get_keys()

    def get_chat_keys(self) -> list[str]:
        return self.for_storage("chatHistory").get_storage_keys()

    def count(self) -> int:
        return len(self.get_identities())

    def exists(self) -> bool:
        return self.count() > 0

    def is_empty(self) -> bool:
        return self.count() == 0

    def first(self) -> SessionIdentity | None:
        return self.get_identities().first()

    def last(self) -> SessionIdentity | None:
        return self.get_identities().last()

    def all(self) -> list[SessionIdentity]:
        return self.get_identities().all()

    def each(self, callback: Callable[[SessionIdentity], Any]) -> Self:
        for identity in self.get_identities():
            callback(identity)
        return self

    def map(self, callback: Callable[[SessionIdentity], Any]) -> list[Any]:
        return self.get_identities().map(callback)

    def clear(self) -> int:
        """Persist an empty record list for every matching storage.

        Returns:
            Number of storages cleared on at least one driver

        """
        count = 0
        for identity in self.get_identities():
            if self.storage_manager.write(identity, []).any_succeeded:
                count += 1
            else:
                logger.warning("Could not clear %s on any driver", identity.key)
        return count

    def remove(self) -> int:
        """Delete every matching storage and stop tracking it.

        Identities whose removal failed on some driver stay tracked so a
        later call can retry.

        Returns:
            Number of storages removed from every driver

        """
        count = 0
        identity_storage = self.identity_storage
        for identity in self.get_identities():
            if self.storage_manager.remove(identity):
                identity_storage.remove_by_key(identity.key)
                count += 1
            else:
                logger.warning("Could not remove %s from every driver, keeping it tracked", identity.key)
        identity_storage.save()
        return count

    def __repr__(self) -> str:
        return f"ContextQuery(agent_name={self.agent_name!r}, filters={len(self.filters)})"
