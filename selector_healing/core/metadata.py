from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class HealingMethod(str, Enum):
    HEURISTIC = "heuristic"
    AI = "ai"
    MANUAL = "manual"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class HealingResult:
    original: str
    healed: str | None
    method: HealingMethod
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def succeeded(self) -> bool:
        return self.healed is not None

    @classmethod
    def failed(cls, original: str) -> HealingResult:
        return cls(original=original, healed=None, method=HealingMethod.FAILED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "original": self.original,
            "healed": self.healed,
            "method": self.method.value,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> HealingResult:
        return cls(
            original=str(payload["original"]),
            healed=payload.get("healed"),
            method=HealingMethod(payload.get("method", HealingMethod.FAILED.value)),
            timestamp=_parse_timestamp(payload.get("timestamp")),
        )


def _parse_timestamp(value: Any) -> datetime:
    if value is None:
        return _utcnow()
    # Epoch milliseconds, as written by older healed-selector files.
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, UTC)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
