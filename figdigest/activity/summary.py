"""
Summary generator — renders ActivityEvents into Slack message payloads.

Per-event line:
    [FIGMA][work] 2026-01-15 10:30 – Website • alice – Commented on <url|"Home">

Daily recap: totals, then By Person (with per-action counts), By Project and
By Account sections, each sorted by descending event count. Ties keep the
order in which groups were first seen.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from figdigest.activity.models import Action, ActivityEvent, parse_timestamp

SOURCE_TAG = "FIGMA"
UNKNOWN_USER = "Unknown User"

GroupBy = Literal["user", "project", "account"]

ACTION_PHRASES: dict[str, str] = {
    Action.FILE_VERSION_CREATED: "Published new version of",
    Action.COMMENT_ADDED: "Commented on",
    Action.LIBRARY_PUBLISHED: "Published library",
    Action.FILE_CREATED: "Created",
    Action.FILE_UPDATED: "Updated",
}

# action → (singular, plural)
ACTION_NOUNS: dict[str, tuple[str, str]] = {
    Action.FILE_VERSION_CREATED: ("version", "versions"),
    Action.COMMENT_ADDED: ("comment", "comments"),
    Action.LIBRARY_PUBLISHED: ("library publish", "library publishes"),
    Action.FILE_CREATED: ("file created", "files created"),
    Action.FILE_UPDATED: ("file updated", "files updated"),
}


def format_timestamp(ts: str) -> str:
    """``YYYY-MM-DD HH:MM`` from the timestamp's own fields, no zone conversion."""
    return parse_timestamp(ts).strftime("%Y-%m-%d %H:%M")


def format_action(action: str) -> str:
    return ACTION_PHRASES.get(action, action)


def format_action_plural(action: str, count: int) -> str:
    nouns = ACTION_NOUNS.get(action)
    if nouns is None:
        return str(action).lower()
    return nouns[0] if count == 1 else nouns[1]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def generate_per_event_summaries(events: Sequence[ActivityEvent]) -> list[dict[str, str]]:
    """One Slack message per event."""
    summaries = []
    for event in events:
        user = event.user_name or UNKNOWN_USER
        link = f'<{event.url}|"{event.file_name}">' if event.url else f'"{event.file_name}"'
        text = (
            f"[{SOURCE_TAG}][{event.account}] {format_timestamp(event.ts)} – "
            f"{event.project_name} • {user} – {format_action(event.action)} {link}"
        )
        summaries.append({"text": text})
    return summaries


def group_events(events: Sequence[ActivityEvent], group_by: GroupBy) -> dict[str, list[ActivityEvent]]:
    """Group events by user, project or account, preserving first-seen order."""
    grouped: dict[str, list[ActivityEvent]] = {}
    for event in events:
        if group_by == "user":
            key = event.user_name or UNKNOWN_USER
        elif group_by == "project":
            key = event.project_name
        elif group_by == "account":
            key = event.account
        else:
            raise ValueError(f"Unknown grouping: {group_by}")
        grouped.setdefault(key, []).append(event)
    return grouped


def count_by_action(events: Sequence[ActivityEvent]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for event in events:
        counts[event.action] = counts.get(event.action, 0) + 1
    return counts


def _by_count(grouped: dict[str, list[ActivityEvent]]) -> list[tuple[str, list[ActivityEvent]]]:
    # sorted() is stable, so ties stay in encounter order
    return sorted(grouped.items(), key=lambda item: -len(item[1]))


def generate_daily_recap(events: Sequence[ActivityEvent], date_label: str) -> dict[str, str]:
    by_user = group_events(events, "user")
    by_project = group_events(events, "project")
    by_account = group_events(events, "account")

    account_word = "account" if len(by_account) == 1 else "accounts"
    lines = [
        f"📊 Figma Activity Recap - {date_label}",
        "",
        f"Total Events: {len(events)} across {len(by_account)} {account_word}",
        "",
        "By Person:",
    ]
    for user_name, user_events in _by_count(by_user):
        breakdown = ", ".join(
            f"{count} {format_action_plural(action, count)}"
            for action, count in count_by_action(user_events).items()
        )
        lines.append(f"• {user_name}: {_plural(len(user_events), 'event')} ({breakdown})")

    lines += ["", "By Project:"]
    for project_name, project_events in _by_count(by_project):
        lines.append(f"• {project_name}: {_plural(len(project_events), 'event')}")

    lines += ["", "By Account:"]
    for account_name, account_events in _by_count(by_account):
        lines.append(f"• {account_name}: {_plural(len(account_events), 'event')}")

    return {"text": "\n".join(lines) + "\n"}
