"""
Activity normalizer — Figma records to canonical ``ActivityEvent``s.

Deep links:
    {web}/file/{fileKey}
    {web}/file/{fileKey}?version-id=..&comment-id=..&node-id=..

Query parameters always appear in that order and are percent-encoded.
"""

from __future__ import annotations

from collections.abc import Iterable
from urllib.parse import quote

from figdigest.activity.models import Action, ActivityEvent, parse_timestamp
from figdigest.figma.models import FigmaComment, FigmaFile, FigmaProject, FigmaVersion

DEFAULT_WEB_URL = "https://www.figma.com"

# Provider event names → canonical actions; anything else passes through
ACTION_MAP: dict[str, str] = {
    "FILE_VERSION": Action.FILE_VERSION_CREATED,
    "COMMENT": Action.COMMENT_ADDED,
    "LIBRARY_PUBLISH": Action.LIBRARY_PUBLISHED,
    "FILE_CREATE": Action.FILE_CREATED,
    "FILE_UPDATE": Action.FILE_UPDATED,
}


def generate_deep_link(
    file_key: str,
    *,
    version_id: str | None = None,
    comment_id: str | None = None,
    node_id: str | None = None,
    web_url: str = DEFAULT_WEB_URL,
) -> str:
    """Build a link into the Figma file. Empty ``file_key`` gives ``""``."""
    if not file_key:
        return ""

    base = f"{web_url.rstrip('/')}/file/{quote(file_key, safe='')}"
    params = []
    if version_id:
        params.append(f"version-id={quote(str(version_id), safe='')}")
    if comment_id:
        params.append(f"comment-id={quote(str(comment_id), safe='')}")
    if node_id:
        params.append(f"node-id={quote(str(node_id), safe='')}")

    if not params:
        return base
    return f"{base}?{'&'.join(params)}"


def classify_action_type(event_type: str) -> str:
    return ACTION_MAP.get(event_type, event_type)


def normalize_version(
    version: FigmaVersion,
    file: FigmaFile,
    project: FigmaProject,
    account: str,
    *,
    web_url: str = DEFAULT_WEB_URL,
) -> ActivityEvent:
    user = version.user
    return ActivityEvent(
        ts=version.created_at,
        account=account,
        project_id=project.id,
        project_name=project.name,
        file_key=file.key,
        file_name=file.name,
        action=Action.FILE_VERSION_CREATED,
        url=generate_deep_link(file.key, version_id=version.id, web_url=web_url),
        user_id=user.id if user else None,
        user_name=user.handle if user else None,
        metadata={
            "versionId": version.id,
            "versionLabel": version.label,
            "versionDescription": version.description,
        },
    )


def normalize_comment(
    comment: FigmaComment,
    file: FigmaFile,
    project: FigmaProject,
    account: str,
    *,
    web_url: str = DEFAULT_WEB_URL,
) -> ActivityEvent:
    user = comment.user
    return ActivityEvent(
        ts=comment.created_at,
        account=account,
        project_id=project.id,
        project_name=project.name,
        file_key=file.key,
        file_name=file.name,
        action=Action.COMMENT_ADDED,
        url=generate_deep_link(file.key, comment_id=comment.id, web_url=web_url),
        user_id=user.id if user else None,
        user_name=user.handle if user else None,
        metadata={
            "commentId": comment.id,
            "commentMessage": comment.message,
            "parentId": comment.parent_id or None,
            "resolvedAt": comment.resolved_at,
        },
    )


def is_after(ts: str, since: str) -> bool:
    """True iff ``ts`` is strictly later than ``since``."""
    return parse_timestamp(ts) > parse_timestamp(since)


def filter_by_timestamp(events: Iterable[ActivityEvent], since: str) -> list[ActivityEvent]:
    """Keep events strictly newer than ``since``; equal timestamps are dropped."""
    cutoff = parse_timestamp(since)
    return [e for e in events if e.timestamp > cutoff]
