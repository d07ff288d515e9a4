"""Token usage storage.

Filters accepted by ``get_filtered_usage``, ``aggregate`` and ``group_by``:

=============== =============================================
agent_name      exact agent name
user_id         exact user id
group           exact group
model_name      exact model name
provider_name   exact provider label
date            calendar day (date, datetime or ISO string)
date_from       range start, inclusive
date_to         range end, inclusive (a day covers the whole day)
=============== =============================================
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .records.usage import Usage, UsageArray, UsageRecord
from .storage import Storage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .hooks import Hooks
    from .identity import SessionIdentity
    from .storage_manager import DriverSpec, StorageManager

logger = logging.getLogger(__name__)

_FIELD_FILTERS = {
    "agent_name": UsageArray.filter_by_agent,
    "user_id": UsageArray.filter_by_user,
    "group": UsageArray.filter_by_group,
    "model_name": UsageArray.filter_by_model,
    "provider_name": UsageArray.filter_by_provider,
    "date": UsageArray.filter_by_date,
}

_DATE_RANGE_FILTERS = ("date_from", "date_to")


class UsageStorage(Storage[UsageRecord]):
    """Usage records of one session."""

    prefix = "usage"
    array_class = UsageArray

    def __init__(
        self,
        identity: SessionIdentity,
        drivers: Iterable[DriverSpec] | StorageManager | None = None,
        hooks: Hooks | None = None,
        model_name: str = "",
        provider_name: str = "",
    ) -> None:
        """Initialize UsageStorage.

        Args:
            identity: Session identity
            drivers: Driver chain or StorageManager
            hooks: Optional event dispatcher
            model_name: Model stamped on records added with ``add_usage``
            provider_name: Provider stamped on records added with ``add_usage``

        """
        super().__init__(identity, drivers, hooks)
        self.model_name = model_name
        self.provider_name = provider_name

    def add_usage(
        self,
        usage: Usage | dict[str, Any],
        model_name: str | None = None,
        provider_name: str | None = None,
    ) -> UsageRecord:
        """Record the usage of one LLM response.

        Args:
            usage: Token counts reported by the provider
            model_name: Overrides the storage's model name
            provider_name: Overrides the storage's provider name

        Returns:
            The stored UsageRecord

        """
        if isinstance(usage, dict):
            usage = Usage.from_dict(usage)
        record = UsageRecord.from_usage(
            usage,
            self.identity,
            model_name=self.model_name if model_name is None else model_name,
            provider_name=self.provider_name if provider_name is None else provider_name,
        )
        self.add(record)
        return record

    def add_record(self, record: UsageRecord | dict[str, Any]) -> None:
        self.add(record)

    def get_usage_records(self) -> UsageArray:
        return self.get()

    def get_filtered_usage(self, filters: dict[str, Any] | None = None) -> UsageArray:
        """Return the records matching every filter.

        Args:
            filters: Filter names and values (see module docstring)

        Returns:
            Filtered records

        Raises:
            ValueError: If a filter name is unknown

        """
        records = self.get()
        filters = filters or {}

        unknown = set(filters) - set(_FIELD_FILTERS) - set(_DATE_RANGE_FILTERS)
        if unknown:
            msg = f"Unknown usage filters: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        for name, apply_filter in _FIELD_FILTERS.items():
            if name in filters:
                records = apply_filter(records, filters[name])

        if filters.get("date_from") is not None:
            records = records.filter_by_date_range(filters["date_from"], filters.get("date_to"))
        elif filters.get("date_to") is not None:
            records = records.filter_by_date_range("0001-01-01", filters["date_to"])

        return records

    def aggregate(self, filters: dict[str, Any] | None = None) -> dict[str, int]:
        return self.get_filtered_usage(filters).aggregate()

    def group_by(self, field_name: str, filters: dict[str, Any] | None = None) -> dict[str, dict[str, int]]:
        return self.get_filtered_usage(filters).group_by(field_name)
