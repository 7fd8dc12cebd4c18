"""Activity test fixtures."""

import pytest

from figdigest.activity.models import Action, ActivityEvent


@pytest.fixture
def make_event():
    """Factory for ActivityEvents with sensible defaults."""

    def _make(
        action=Action.FILE_VERSION_CREATED,
        user_id="u1",
        user_name="Ana",
        file_key="file-a",
        ts="2026-01-15T10:30:00Z",
        **overrides,
    ):
        fields = {
            "ts": ts,
            "account": "work",
            "project_id": "p1",
            "project_name": "Website",
            "file_key": file_key,
            "file_name": "Home",
            "action": action,
            "url": f"https://www.figma.com/file/{file_key}",
            "user_id": user_id,
            "user_name": user_name,
        }
        fields.update(overrides)
        return ActivityEvent(**fields)

    return _make
