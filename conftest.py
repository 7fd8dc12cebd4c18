"""
Root-level shared test fixtures.

Provides an in-memory key-value store, a fresh encryption key per test, a
vault bound to both and a scripted Figma client factory. Inherited by every
subpackage test suite.
"""

from __future__ import annotations

import asyncio
import secrets

import pytest

from figdigest.config import reset_config
from figdigest.errors import FigmaAPIError
from figdigest.figma.models import FigmaComment, FigmaFile, FigmaProject, FigmaUser, FigmaVersion
from figdigest.vault.dal import CredentialVault
from figdigest.vault.models import Credential


class MemoryStore:
    """Dict-backed stand-in for RedisStore."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)
        self.sets.pop(key, None)

    async def set_add(self, set_key: str, member: str) -> None:
        self.sets.setdefault(set_key, set()).add(member)

    async def set_remove(self, set_key: str, member: str) -> None:
        members = self.sets.get(set_key)
        if members is not None:
            members.discard(member)
            if not members:
                del self.sets[set_key]

    async def set_members(self, set_key: str) -> set[str]:
        return set(self.sets.get(set_key, set()))

    async def close(self) -> None:
        pass

    def keys(self) -> set[str]:
        return set(self.values) | set(self.sets)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def encryption_key() -> str:
    return secrets.token_hex(32)


@pytest.fixture
def vault(encryption_key, store) -> CredentialVault:
    return CredentialVault(encryption_key, store)


@pytest.fixture
def make_credential(vault):
    """Factory for credentials whose PAT is encrypted with the test vault."""

    def _make(user_id="alice", account_name="work", pat="figd_test_pat", team_ids=("team-1",), **extra):
        return Credential(
            user_id=user_id,
            account_name=account_name,
            encrypted_secret=vault.encrypt(pat),
            team_ids=list(team_ids),
            created_at="2026-01-01T00:00:00Z",
            updated_at="2026-01-01T00:00:00Z",
            **extra,
        )

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove figdigest env vars that leak between tests."""
    for key in [
        "FIGDIGEST_ENCRYPTION_KEY",
        "FIGDIGEST_SLACK_WEBHOOK_URL",
        "FIGDIGEST_REDIS_URL",
        "FIGDIGEST_FIGMA_API_URL",
        "FIGDIGEST_FIGMA_WEB_URL",
        "FIGDIGEST_HTTP_TIMEOUT",
        "FIGDIGEST_LOOKBACK_HOURS",
        "FIGDIGEST_CONCURRENCY",
        "FIGDIGEST_WARNING_DAYS",
        "FIGDIGEST_DIGEST_FORMAT",
        "FIGDIGEST_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()


class FakeFigma:
    """Scripted FigmaClient double.

    ``projects``/``files``/``versions``/``comments`` map an id to the raw
    payload list; ``failures`` maps ``(method, id)`` to an exception.
    """

    def __init__(self, identity=None, projects=None, files=None, versions=None, comments=None, failures=None):
        self.identity = identity if identity is not None else {"id": "me", "handle": "Me"}
        self.projects = projects or {}
        self.files = files or {}
        self.versions = versions or {}
        self.comments = comments or {}
        self.failures = failures or {}
        self.calls: list[tuple] = []
        self.factory: FakeFigmaFactory | None = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    def _record(self, method, key, extra=None):
        self.calls.append((method, key) if extra is None else (method, key, extra))
        failure = self.failures.get((method, key))
        if failure is not None:
            raise failure

    async def get_identity(self):
        tracker = self.factory
        if tracker is not None:
            tracker.in_flight += 1
            tracker.max_in_flight = max(tracker.max_in_flight, tracker.in_flight)
        try:
            await asyncio.sleep(0.01)
            self._record("get_identity", None)
            if isinstance(self.identity, Exception):
                raise self.identity
            return FigmaUser.model_validate(self.identity)
        finally:
            if tracker is not None:
                tracker.in_flight -= 1

    async def list_team_projects(self, team_id):
        self._record("list_team_projects", team_id)
        return [FigmaProject.model_validate(p) for p in self.projects.get(team_id, [])]

    async def list_project_files(self, project_id):
        self._record("list_project_files", project_id)
        return [FigmaFile.model_validate(f) for f in self.files.get(project_id, [])]

    async def list_file_versions(self, file_key, since=None):
        self._record("list_file_versions", file_key, since)
        return [FigmaVersion.model_validate(v) for v in self.versions.get(file_key, [])]

    async def list_file_comments(self, file_key):
        self._record("list_file_comments", file_key)
        return [FigmaComment.model_validate(c) for c in self.comments.get(file_key, [])]


class FakeFigmaFactory:
    """Stands in for the FigmaClient constructor; dispatches on the PAT.

    Unknown PATs get a client whose ``/me`` call is rejected with 401.
    """

    def __init__(self) -> None:
        self.by_pat: dict[str, FakeFigma] = {}
        self.opened: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, pat: str, **kwargs) -> FakeFigma:
        fake = FakeFigma(**kwargs)
        fake.factory = self
        self.by_pat[pat] = fake
        return fake

    def __call__(self, pat: str, account_name: str) -> FakeFigma:
        self.opened.append((pat, account_name))
        fake = self.by_pat.get(pat)
        if fake is None:
            fake = FakeFigma(identity=FigmaAPIError("Invalid or expired PAT", 401, "", account_name, False))
            fake.factory = self
        return fake


@pytest.fixture
def figma() -> FakeFigmaFactory:
    return FakeFigmaFactory()
