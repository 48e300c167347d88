"""Append-only delivery history."""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol

from .errors import DuplicateRecordError
from .pricing import estimate_record_cost
from .types import DeliveryRecord, NormalizedRecipient

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 500


def as_utc(value: datetime) -> datetime:
    """Return *value* in UTC. Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DeliveryHistoryStore(Protocol):
    """Interface that every history backend must implement.

    Records are immutable once appended. ``recent`` orders by each record's
    own ``created_at`` so out-of-order appends from concurrent senders do
    not matter.
    """

    def append(self, record: DeliveryRecord) -> None: ...

    def get(self, record_id: str) -> DeliveryRecord | None: ...

    def recent(
        self,
        recipient: NormalizedRecipient | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[DeliveryRecord]: ...

    def summary(self, since: datetime | None = None) -> UsageSummary: ...


@dataclass(frozen=True, slots=True)
class UsageSummary:
    """Aggregate view of delivery history."""

    total: int = 0
    delivered: int = 0
    failed: int = 0
    fallbacks: int = 0
    estimated_cost: Decimal = Decimal("0")
    by_category: dict[str, int] = field(default_factory=dict)
    by_channel: dict[str, int] = field(default_factory=dict)


def summarize(records: Iterable[DeliveryRecord]) -> UsageSummary:
    total = delivered = fallbacks = 0
    cost = Decimal("0")
    by_category: Counter[str] = Counter()
    by_channel: Counter[str] = Counter()
    for record in records:
        total += 1
        by_category[record.category.value] += 1
        if record.delivered:
            delivered += 1
            by_channel[record.final_channel.value] += 1  # type: ignore[union-attr]
            cost += estimate_record_cost(record)
        if record.used_fallback:
            fallbacks += 1
    return UsageSummary(
        total=total,
        delivered=delivered,
        failed=total - delivered,
        fallbacks=fallbacks,
        estimated_cost=cost,
        by_category=dict(by_category),
        by_channel=dict(by_channel),
    )


def check_page(limit: int, offset: int) -> None:
    if limit <= 0 or limit > MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if offset < 0:
        raise ValueError("offset must not be negative")


class InMemoryHistoryStore:
    """Thread-safe in-process history, for tests and single-process deployments."""

    def __init__(self) -> None:
        self._records: dict[str, DeliveryRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def append(self, record: DeliveryRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise DuplicateRecordError(record.id)
            self._records[record.id] = record

    def get(self, record_id: str) -> DeliveryRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def recent(
        self,
        recipient: NormalizedRecipient | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[DeliveryRecord]:
        check_page(limit, offset)
        with self._lock:
            records = list(self._records.values())
        if recipient is not None:
            records = [r for r in records if r.recipient == recipient]
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return records[offset:offset + limit]

    def summary(self, since: datetime | None = None) -> UsageSummary:
        with self._lock:
            records = list(self._records.values())
        if since is not None:
            since = as_utc(since)
            records = [r for r in records if r.created_at >= since]
        return summarize(records)
