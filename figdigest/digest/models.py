"""Digest run data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from figdigest.activity.models import ActivityEvent


@dataclass(frozen=True)
class ScopeError:
    """A failure isolated to one team, project or file during traversal."""

    scope: str  # "team", "project" or "file"
    identifier: str
    error: str


@dataclass
class AccountResult:
    """Outcome of processing one account."""

    user_id: str
    account_name: str
    events: list[ActivityEvent] = field(default_factory=list)
    error: str | None = None
    scope_errors: list[ScopeError] = field(default_factory=list)
    completed_at: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DigestResult:
    """Response body of a digest run."""

    success: bool
    events_processed: int = 0
    accounts_processed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "eventsProcessed": self.events_processed,
            "accountsProcessed": self.accounts_processed,
            "errors": list(self.errors),
            "durationMs": self.duration_ms,
        }
