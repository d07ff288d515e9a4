"""Chat message records."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from typing_extensions import Self

from .base import Record, RecordArray
from .usage import Usage

SYSTEM = "system"
DEVELOPER = "developer"
USER = "user"
ASSISTANT = "assistant"
TOOL = "tool"

# Roles kept by truncation strategies when preserve_system is on
PRESERVED_ROLES = (SYSTEM, DEVELOPER)


def _generate_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message(Record):
    """A single chat message.

    ``content`` is either plain text or a list of content parts
    (``{"type": "text", "text": ...}`` and similar). ``metadata`` is kept in
    memory and only persisted when the owning history asks for it, so it
    does not take part in equality.
    """

    role: str
    content: str | list[dict[str, Any]] | None = None
    message_id: str = field(default_factory=_generate_message_id)
    created_at: str = field(default_factory=_now_iso)
    tool_calls: list[dict[str, Any]] | None = None
    tool_call_id: str | None = None
    usage: Usage | None = None
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def system(cls, content: str, **kwargs: Any) -> Self:
        return cls(role=SYSTEM, content=content, **kwargs)

    @classmethod
    def developer(cls, content: str, **kwargs: Any) -> Self:
        return cls(role=DEVELOPER, content=content, **kwargs)

    @classmethod
    def user(cls, content: str | list[dict[str, Any]], **kwargs: Any) -> Self:
        return cls(role=USER, content=content, **kwargs)

    @classmethod
    def assistant(cls, content: str | None = None, **kwargs: Any) -> Self:
        return cls(role=ASSISTANT, content=content, **kwargs)

    @classmethod
    def tool_result(cls, content: str, tool_call_id: str, **kwargs: Any) -> Self:
        return cls(role=TOOL, content=content, tool_call_id=tool_call_id, **kwargs)

    def content_as_string(self) -> str:
        """Return the message content as text.

        Text parts of multi-part content are joined with newlines; other
        parts are rendered as JSON.

        Returns:
            Content text (empty string when there is no content)

        """
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content

        parts = []
        for part in self.content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
            else:
                parts.append(json.dumps(part, ensure_ascii=False))
        return "\n".join(parts)

    def to_dict(self, with_meta: bool = False) -> dict[str, Any]:
        """Convert the message to a dictionary.

        Args:
            with_meta: Include metadata in the result

        Returns:
            Dictionary without empty optional fields

        """
        data: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "message_id": self.message_id,
            "created_at": self.created_at,
        }
        if self.tool_calls is not None:
            data["tool_calls"] = self.tool_calls
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.usage is not None:
            data["usage"] = self.usage.to_dict()
        if self.extras:
            data["extras"] = self.extras
        if with_meta and self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        if "role" not in data:
            msg = "Message data requires a role"
            raise ValueError(msg)

        kwargs: dict[str, Any] = {}
        if data.get("message_id"):
            kwargs["message_id"] = data["message_id"]
        if data.get("created_at"):
            kwargs["created_at"] = data["created_at"]

        usage = data.get("usage")
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=data.get("tool_calls"),
            tool_call_id=data.get("tool_call_id"),
            usage=Usage.from_dict(usage) if isinstance(usage, dict) else None,
            metadata=dict(data.get("metadata") or {}),
            extras=dict(data.get("extras") or {}),
            **kwargs,
        )


class MessageArray(RecordArray[Message]):
    """Ordered chat messages."""

    record_classes = (Message,)

    def to_list_with_meta(self) -> list[dict[str, Any]]:
        return [message.to_dict(with_meta=True) for message in self]
