from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from app.entitlements.types import KeyKind


class ActivationDecision(str, Enum):
    BIND = "BIND"
    ALREADY_OWNED = "ALREADY_OWNED"


@dataclass(frozen=True, slots=True)
class KeySnapshot:
    kind: KeyKind
    is_active: bool
    bound_email: str | None
    activated_at: datetime | None
    expires_at: datetime | None


@dataclass(slots=True)
class KeyActivationResult:
    key_id: int
    code: str
    kind: KeyKind
    target_course_id: int | None
    bound_email: str
    activated_at: datetime
    idempotent_replay: bool
    expires_at: datetime | None = None


@dataclass(slots=True)
class KeyStatistics:
    total: int
    activated: int
    unused: int
    deactivated: int
    activation_rate: int

    def as_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "activated": self.activated,
            "unused": self.unused,
            "deactivated": self.deactivated,
            "activation_rate": self.activation_rate,
        }
