from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

ORDER_ASC = "asc"
ORDER_DESC = "desc"


@dataclass(frozen=True)
class RecordFilter:
    """Predicate over audit records, interpreted by the store.

    Every populated field narrows the selection (logical AND). Within
    ``actions`` the values form an in-set match and within
    ``action_keywords`` a case-insensitive substring match on any keyword.
    Prefix fields match the start of the value and are case-sensitive.
    """

    before: datetime | None = None
    since: datetime | None = None
    until: datetime | None = None
    actions: tuple[str, ...] = ()
    action_keywords: tuple[str, ...] = ()
    actor: str | None = None
    actor_prefix: str | None = None
    exclude_actor_prefix: str | None = None
    exclude_action_prefix: str | None = None
    ids: tuple[int, ...] = ()

    @classmethod
    def older_than(cls, cutoff: datetime) -> "RecordFilter":
        return cls(before=cutoff)

    @classmethod
    def between(
        cls,
        since: datetime | None,
        until: datetime | None = None,
    ) -> "RecordFilter":
        return cls(since=since, until=until)

    def with_actions(self, actions: Iterable[str]) -> "RecordFilter":
        return replace(self, actions=tuple(actions))

    def with_action_keywords(self, keywords: Iterable[str]) -> "RecordFilter":
        return replace(self, action_keywords=tuple(keywords))

    def with_actor(self, actor: str | None) -> "RecordFilter":
        return replace(self, actor=actor)

    def with_actor_prefix(self, prefix: str) -> "RecordFilter":
        return replace(self, actor_prefix=prefix)

    def without_actor_prefix(self, prefix: str) -> "RecordFilter":
        return replace(self, exclude_actor_prefix=prefix)

    def without_action_prefix(self, prefix: str) -> "RecordFilter":
        return replace(self, exclude_action_prefix=prefix)
