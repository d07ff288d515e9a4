"""Token usage records.

``Usage`` is what a provider reports for one response. ``UsageRecord``
stamps it with who produced it and when, so usage can be filtered and
aggregated per agent, user, group, model or provider.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from .base import Record, RecordArray

if TYPE_CHECKING:
    from context_storage.identity import SessionIdentity


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _generate_record_id() -> str:
    return f"usage_{secrets.token_hex(12)}"


@dataclass
class Usage(Record):
    """Token counts reported for a single LLM response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None

    def __post_init__(self) -> None:
        if self.total_tokens is None:
            self.total_tokens = self.prompt_tokens + self.completion_tokens

    def to_dict(self) -> dict[str, Any]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        total = data.get("total_tokens")
        return cls(
            prompt_tokens=int(data.get("prompt_tokens", 0)),
            completion_tokens=int(data.get("completion_tokens", 0)),
            total_tokens=int(total) if total is not None else None,
        )


@dataclass
class UsageRecord(Usage):
    """Usage stamped with identity, model and timestamp information."""

    agent_name: str = ""
    user_id: str | None = None
    group: str | None = None
    chat_name: str | None = None
    model_name: str = ""
    provider_name: str = ""
    recorded_at: str = field(default_factory=_now_iso)
    record_id: str = field(default_factory=_generate_record_id)

    @classmethod
    def from_usage(
        cls,
        usage: Usage,
        identity: SessionIdentity,
        model_name: str = "",
        provider_name: str = "",
    ) -> Self:
        """Create a record from a provider usage report.

        Args:
            usage: Reported token counts
            identity: Identity of the session that produced the usage
            model_name: Name of the model used
            provider_name: Provider label

        Returns:
            A new UsageRecord with a fresh id and timestamp

        """
        return cls(
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens,
            agent_name=identity.agent_name,
            user_id=identity.user_id,
            group=identity.group,
            chat_name=identity.chat_name,
            model_name=model_name,
            provider_name=provider_name,
        )

    def recorded_at_datetime(self) -> datetime:
        return _as_aware(datetime.fromisoformat(self.recorded_at))

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
            "agent_name": self.agent_name,
            "user_id": self.user_id,
            "group": self.group,
            "chat_name": self.chat_name,
            "model_name": self.model_name,
            "provider_name": self.provider_name,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        prompt_tokens = int(data.get("prompt_tokens", 0))
        completion_tokens = int(data.get("completion_tokens", 0))
        total = data.get("total_tokens")
        recorded_at = data.get("recorded_at")
        if isinstance(recorded_at, datetime):
            recorded_at = recorded_at.isoformat()

        kwargs: dict[str, Any] = {}
        if recorded_at:
            kwargs["recorded_at"] = recorded_at
        if data.get("record_id"):
            kwargs["record_id"] = data["record_id"]

        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=int(total) if total is not None else prompt_tokens + completion_tokens,
            agent_name=data.get("agent_name", ""),
            user_id=data.get("user_id"),
            group=data.get("group"),
            chat_name=data.get("chat_name"),
            model_name=data.get("model_name", ""),
            provider_name=data.get("provider_name", ""),
            **kwargs,
        )


def _as_aware(value: datetime) -> datetime:
    # Naive timestamps are treated as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_datetime(value: date | datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return _as_aware(value)


def _is_whole_day(value: date | datetime | str) -> bool:
    if isinstance(value, str):
        return len(value) == 10
    return not isinstance(value, datetime)


class UsageArray(RecordArray[UsageRecord]):
    """Ordered usage records with filtering and aggregation helpers."""

    record_classes = (UsageRecord,)

    def filter_by_agent(self, agent_name: str) -> UsageArray:
        return self.filter(lambda record: record.agent_name == agent_name)

    def filter_by_user(self, user_id: str | None) -> UsageArray:
        return self.filter(lambda record: record.user_id == user_id)

    def filter_by_group(self, group: str | None) -> UsageArray:
        return self.filter(lambda record: record.group == group)

    def filter_by_model(self, model_name: str) -> UsageArray:
        return self.filter(lambda record: record.model_name == model_name)

    def filter_by_provider(self, provider_name: str) -> UsageArray:
        return self.filter(lambda record: record.provider_name == provider_name)

    def filter_by_date_range(
        self,
        date_from: date | datetime | str,
        date_to: date | datetime | str | None = None,
    ) -> UsageArray:
        """Keep records recorded between two points in time.

        Both bounds are inclusive. A bound given as a calendar day covers
        that whole day.

        Args:
            date_from: Start of the range
            date_to: End of the range. None means no upper bound

        Returns:
            Filtered array

        """
        start = _to_datetime(date_from)
        end: datetime | None = None
        end_exclusive = False
        if date_to is not None:
            end = _to_datetime(date_to)
            if _is_whole_day(date_to):
                end += timedelta(days=1)
                end_exclusive = True

        def in_range(record: UsageRecord) -> bool:
            recorded = record.recorded_at_datetime()
            if recorded < start:
                return False
            if end is None:
                return True
            return recorded < end if end_exclusive else recorded <= end

        return self.filter(in_range)

    def filter_by_date(self, day: date | datetime | str) -> UsageArray:
        """Keep records recorded on one calendar day (UTC)."""
        target = _to_datetime(day).date()
        return self.filter(
            lambda record: record.recorded_at_datetime().astimezone(timezone.utc).date() == target,
        )

    def total_prompt_tokens(self) -> int:
        return sum(record.prompt_tokens for record in self)

    def total_completion_tokens(self) -> int:
        return sum(record.completion_tokens for record in self)

    def total_tokens(self) -> int:
        return sum(record.total_tokens or 0 for record in self)

    def aggregate(self) -> dict[str, int]:
        """Sum token counts over all records.

        Returns:
            Dictionary with record_count and the three token totals

        """
        return {
            "record_count": len(self),
            "prompt_tokens": self.total_prompt_tokens(),
            "completion_tokens": self.total_completion_tokens(),
            "total_tokens": self.total_tokens(),
        }

    def group_by(self, field_name: str) -> dict[str, dict[str, int]]:
        """Aggregate records per value of a field.

        Args:
            field_name: Attribute to group on (e.g. model_name, user_id)

        Returns:
            Mapping of field value to the aggregate of its records.
            Records without a value are grouped under "unknown"

        """
        groups: dict[str, UsageArray] = {}
        for record in self:
            value = getattr(record, field_name, None)
            group_key = str(value) if value is not None else "unknown"
            groups.setdefault(group_key, UsageArray()).add(record)
        return {group_key: records.aggregate() for group_key, records in groups.items()}

    def to_usage(self) -> Usage:
        """Collapse the records into one Usage."""
        return Usage(
            prompt_tokens=self.total_prompt_tokens(),
            completion_tokens=self.total_completion_tokens(),
            total_tokens=self.total_tokens(),
        )
