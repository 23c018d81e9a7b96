from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from agrilog_core.time_utils import isoformat

SYSTEM_ACTOR = "System"


def actor_label(actor_id: object) -> str:
    return f"User {actor_id}"


@dataclass(frozen=True)
class AuditRecord:
    action: str
    actor: str
    timestamp: datetime
    details: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    @property
    def is_saved(self) -> bool:
        return self.id is not None

    def with_id(self, record_id: int) -> "AuditRecord":
        return replace(self, id=record_id)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "action": self.action,
            "actor": self.actor,
            "details": self.details,
            "timestamp": isoformat(self.timestamp),
        }


@dataclass(frozen=True)
class OperationResult:
    """Uniform outcome returned by every lifecycle, report and export call."""

    status: bool
    message: str
    data: dict[str, Any] | None = None

    @classmethod
    def success(cls, message: str, data: dict[str, Any]) -> "OperationResult":
        return cls(status=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str) -> "OperationResult":
        return cls(status=False, message=message, data=None)

    def to_dict(self) -> dict[str, object]:
        return {"status": self.status, "message": self.message, "data": self.data}
