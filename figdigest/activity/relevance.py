"""
Relevance filter — keep only the events that matter to one identity.

Two passes over one account's events:

1. Collect the files the identity edited and the ids of comments it wrote.
2. Keep an event when it is the identity's own edit, the identity's own
   comment, any comment on a file the identity edited, or a direct reply
   (``metadata["parentId"]``) to one of the identity's comments.

Replies are matched one level deep only. Output keeps input order.
"""

from __future__ import annotations

from collections.abc import Sequence

from figdigest.activity.models import EDIT_ACTIONS, Action, ActivityEvent


def filter_events_for_identity(events: Sequence[ActivityEvent], identity_id: str | None) -> list[ActivityEvent]:
    """Return the subset of ``events`` relevant to ``identity_id``.

    Without an identity id there is nothing to filter against and every event
    is returned.
    """
    if not identity_id:
        return list(events)

    edited_files: set[str] = set()
    own_comment_ids: set[str] = set()

    for event in events:
        if event.user_id != identity_id:
            continue
        if event.action in EDIT_ACTIONS:
            edited_files.add(event.file_key)
        elif event.action == Action.COMMENT_ADDED:
            comment_id = event.metadata.get("commentId")
            if comment_id:
                own_comment_ids.add(comment_id)

    def is_relevant(event: ActivityEvent) -> bool:
        own = event.user_id == identity_id
        if event.action in EDIT_ACTIONS:
            return own
        if event.action != Action.COMMENT_ADDED:
            return False
        if own or event.file_key in edited_files:
            return True
        parent_id = event.metadata.get("parentId")
        return bool(parent_id) and parent_id in own_comment_ids

    return [e for e in events if is_relevant(e)]
