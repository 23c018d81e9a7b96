from __future__ import annotations

from collections import Counter
from typing import Iterable


def rank_counts(
    values: Iterable[str],
    *,
    label: str,
    limit: int | None = None,
) -> list[dict[str, object]]:
    """Most frequent values first; ties keep first-seen order."""
    counts = Counter(values)
    return [{label: value, "count": count} for value, count in counts.most_common(limit)]
