"""Session identity and storage key derivation.

A SessionIdentity names one agent session. Storages bind it to their own
scope with ``with_scope()`` so that the chat history, usage and any other
storage of the same session never share a key.

Key format (persisted, keep stable)::

    {scope}_{group or agent_name}_{user_id or chat_name or "default"}
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from typing_extensions import Self

from .records.base import Record, RecordArray

# Chat names starting with this prefix belong to throwaway sessions that
# must not be tracked by IdentityStorage
TEMP_SESSION_PREFIX = "__temp__"

DEFAULT_CHAT = "default"


@dataclass(frozen=True)
class SessionIdentity(Record):
    """Immutable identity of an agent session."""

    agent_name: str
    chat_name: str | None = None
    user_id: str | None = None
    group: str | None = None
    scope: str | None = None

    @property
    def key(self) -> str:
        """Storage key derived from the identity fields.

        Returns:
            Key string. An unscoped identity omits the scope segment

        """
        owner = self.group if self.group is not None else self.agent_name
        if self.user_id is not None:
            session = self.user_id
        elif self.chat_name is not None:
            session = self.chat_name
        else:
            session = DEFAULT_CHAT

        if self.scope is None:
            return f"{owner}_{session}"
        return f"{self.scope}_{owner}_{session}"

    def with_scope(self, scope: str) -> Self:
        """Return a copy of this identity bound to a scope."""
        return replace(self, scope=scope)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "scope": self.scope,
            "agent_name": self.agent_name,
            "chat_name": self.chat_name,
            "user_id": self.user_id,
            "group": self.group,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        if not data.get("agent_name"):
            msg = "SessionIdentity data requires agent_name"
            raise ValueError(msg)
        return cls(
            agent_name=data["agent_name"],
            chat_name=data.get("chat_name"),
            user_id=data.get("user_id"),
            group=data.get("group"),
            scope=data.get("scope"),
        )


def is_temporary(identity: SessionIdentity, prefix: str = TEMP_SESSION_PREFIX) -> bool:
    """Check whether an identity belongs to a temporary session.

    Args:
        identity: Identity to check
        prefix: Reserved chat name prefix

    Returns:
        True if the chat name starts with the prefix

    """
    return bool(prefix) and identity.chat_name is not None and identity.chat_name.startswith(prefix)


class SessionIdentityArray(RecordArray[SessionIdentity]):
    """Ordered identities, unique by key when filled through IdentityStorage."""

    record_classes = (SessionIdentity,)

    def has_key(self, key: str) -> bool:
        return self.has_item("key", key)

    def get_by_key(self, key: str) -> SessionIdentity | None:
        return self.get_item("key", key)

    def remove_by_key(self, key: str) -> SessionIdentityArray:
        return self.remove_item("key", key)

    def get_keys(self) -> list[str]:
        return self.map(lambda identity: identity.key)

    def filter_by_scope(self, scope: str) -> SessionIdentityArray:
        return self.filter(lambda identity: identity.scope == scope)
