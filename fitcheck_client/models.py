from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class Session:
    token: str | None = None
    user: dict[str, Any] = field(default_factory=dict)
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def is_valid(self, now: datetime) -> bool:
        return bool(self.token) and not self.is_expired(now)


@dataclass(frozen=True)
class ActionResult:
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> "ActionResult":
        return cls(success=True)

    @classmethod
    def failed(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)


@dataclass(frozen=True)
class MutationOutcome:
    success: bool
    error: str | None = None
    response: Any = None


@dataclass(frozen=True)
class GymReviewSummary:
    average_rating: float
    total_reviews: int
    popular_tags: list[tuple[str, int]] = field(default_factory=list)
