from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from agrilog_core.audit.types import SYSTEM_ACTOR, AuditRecord
from agrilog_core.compaction.types import (
    METHOD_AGGREGATE,
    METHOD_SAMPLE,
    METHOD_SUMMARIZE,
    CompactionPlan,
)
from agrilog_core.stores.interfaces import AuditRecordStore
from agrilog_core.time_utils import day_key, isoformat, month_key, utc_now

SAMPLE_INFO = "Random sampling of audit trails"

Strategy = Callable[..., CompactionPlan]


@dataclass
class _DayBucket:
    day: str
    action: str
    first: datetime
    last: datetime
    sample_details: dict[str, Any]
    count: int = 0
    actors: dict[str, None] = field(default_factory=dict)


@dataclass
class _MonthBucket:
    month: str
    first: datetime
    last: datetime
    total: int = 0
    actors: set[str] = field(default_factory=set)
    actions: dict[str, int] = field(default_factory=dict)


def _ids(records: Sequence[AuditRecord]) -> tuple[int, ...]:
    return tuple(record.id for record in records if record.id is not None)


def _ratio(original: int, derived: int) -> float:
    return round(original / derived, 2) if derived else 0.0


def summarize(
    records: Sequence[AuditRecord],
    *,
    store: AuditRecordStore,
    **_: object,
) -> CompactionPlan:
    buckets: dict[tuple[str, str], _DayBucket] = {}
    for record in records:
        key = (day_key(record.timestamp), record.action)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = _DayBucket(
                day=key[0],
                action=record.action,
                first=record.timestamp,
                last=record.timestamp,
                sample_details=record.details,
            )
            buckets[key] = bucket
        bucket.count += 1
        bucket.actors.setdefault(record.actor, None)
        bucket.first = min(bucket.first, record.timestamp)
        bucket.last = max(bucket.last, record.timestamp)

    derived = tuple(
        store.create(
            action=f"summary_{bucket.action}",
            actor=SYSTEM_ACTOR,
            timestamp=bucket.last,
            details={
                "original_action": bucket.action,
                "date": bucket.day,
                "total_occurrences": bucket.count,
                "unique_actors": list(bucket.actors),
                "time_range": {
                    "start": isoformat(bucket.first),
                    "end": isoformat(bucket.last),
                },
                "sample_details": bucket.sample_details,
            },
        )
        for bucket in buckets.values()
    )
    return CompactionPlan(
        delete_ids=_ids(records),
        derived=derived,
        method_details={
            "summary_count": len(derived),
            "compression_ratio": _ratio(len(records), len(derived)),
        },
    )


def aggregate(
    records: Sequence[AuditRecord],
    *,
    store: AuditRecordStore,
    **_: object,
) -> CompactionPlan:
    buckets: dict[str, _MonthBucket] = {}
    for record in records:
        key = month_key(record.timestamp)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = _MonthBucket(month=key, first=record.timestamp, last=record.timestamp)
            buckets[key] = bucket
        bucket.total += 1
        bucket.actors.add(record.actor)
        bucket.actions[record.action] = bucket.actions.get(record.action, 0) + 1
        bucket.first = min(bucket.first, record.timestamp)
        bucket.last = max(bucket.last, record.timestamp)

    derived = tuple(
        store.create(
            action="monthly_aggregate",
            actor=SYSTEM_ACTOR,
            timestamp=bucket.last,
            details={
                "month": bucket.month,
                "total_activities": bucket.total,
                "unique_actors": len(bucket.actors),
                "action_breakdown": dict(bucket.actions),
                "time_range": {
                    "start": isoformat(bucket.first),
                    "end": isoformat(bucket.last),
                },
            },
        )
        for bucket in buckets.values()
    )
    return CompactionPlan(
        delete_ids=_ids(records),
        derived=derived,
        method_details={
            "aggregate_count": len(derived),
            "compression_ratio": _ratio(len(records), len(derived)),
        },
    )


def sample(
    records: Sequence[AuditRecord],
    *,
    store: AuditRecordStore,
    sample_rate: float,
    rng: random.Random | None = None,
    **_: object,
) -> CompactionPlan:
    rng = rng or random.Random()
    total = len(records)
    sample_size = min(total, max(1, int(total * sample_rate)))
    chosen = set(rng.sample(range(total), sample_size))

    kept = sorted(
        (records[index] for index in chosen),
        key=lambda record: (record.timestamp, record.id or 0),
    )
    dropped = [record for index, record in enumerate(records) if index not in chosen]

    manifest = store.create(
        action="sampling_summary",
        actor=SYSTEM_ACTOR,
        timestamp=utc_now(),
        details={
            "sampling_rate": sample_rate,
            "original_count": total,
            "sampled_count": len(kept),
            "date_range": {
                "start": isoformat(records[0].timestamp),
                "end": isoformat(records[-1].timestamp),
            },
            "sample_info": SAMPLE_INFO,
        },
    )
    return CompactionPlan(
        delete_ids=_ids(dropped),
        derived=(manifest,),
        kept=tuple(kept),
        method_details={
            "sample_rate": sample_rate,
            "sampled_count": len(kept),
            "summary_added": True,
        },
    )


STRATEGIES: dict[str, Strategy] = {
    METHOD_SUMMARIZE: summarize,
    METHOD_AGGREGATE: aggregate,
    METHOD_SAMPLE: sample,
}


def get_strategy(method: str) -> Strategy | None:
    return STRATEGIES.get(method)
