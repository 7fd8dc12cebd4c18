"""
Canonical activity model.

Plain frozen dataclasses, matching the figdigest config pattern.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any


class Action(StrEnum):
    """Known canonical actions. ``ActivityEvent.action`` also accepts any other string."""

    FILE_VERSION_CREATED = "FILE_VERSION_CREATED"
    COMMENT_ADDED = "COMMENT_ADDED"
    LIBRARY_PUBLISHED = "LIBRARY_PUBLISHED"
    FILE_CREATED = "FILE_CREATED"
    FILE_UPDATED = "FILE_UPDATED"


# Actions that count as the identity editing a file
EDIT_ACTIONS = frozenset({Action.FILE_VERSION_CREATED, Action.FILE_UPDATED})


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp. Naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ActivityEvent:
    """One edit or comment, normalized from a Figma record."""

    ts: str
    account: str
    project_id: str
    project_name: str
    file_key: str
    file_name: str
    action: str
    url: str
    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        parse_timestamp(self.ts)
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def timestamp(self) -> datetime:
        return parse_timestamp(self.ts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.ts,
            "account": self.account,
            "projectId": self.project_id,
            "projectName": self.project_name,
            "fileKey": self.file_key,
            "fileName": self.file_name,
            "userId": self.user_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "action": str(self.action),
            "url": self.url,
            "metadata": dict(self.metadata),
        }
