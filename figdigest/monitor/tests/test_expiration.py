"""Tests for the PAT expiration monitor."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from figdigest.figma.models import FigmaUser
from figdigest.monitor.expiration import (
    NOT_FOUND,
    ExpirationMonitor,
    ExpirationStatus,
    Found,
    build_warning_message,
    days_until,
    extract_expiration,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def slack():
    return AsyncMock()


@pytest.fixture
def monitor(vault, slack, figma):
    return ExpirationMonitor(vault, slack, client_factory=figma, clock=lambda: NOW)


class TestExtractExpiration:
    @pytest.mark.parametrize("field", ["expires_at", "expiresAt", "expiration"])
    def test_each_candidate(self, field):
        assert extract_expiration({"id": "u1", field: "2026-01-17T00:00:00Z"}) == Found("2026-01-17T00:00:00Z")

    def test_first_candidate_wins(self):
        identity = {"expiresAt": "2026-02-01T00:00:00Z", "expires_at": "2026-01-20T00:00:00Z"}
        assert extract_expiration(identity) == Found("2026-01-20T00:00:00Z")

    def test_model_extra_fields(self):
        identity = FigmaUser.model_validate({"id": "u1", "expiration": "2026-01-20T00:00:00Z"})
        assert extract_expiration(identity) == Found("2026-01-20T00:00:00Z")

    def test_not_found(self):
        assert extract_expiration({"id": "u1"}) is NOT_FOUND


class TestDaysUntil:
    def test_rounds_up(self):
        assert days_until("2026-01-17T00:00:00Z", NOW) == 2
        assert days_until("2026-01-15T12:00:01Z", NOW) == 1

    def test_past(self):
        assert days_until("2026-01-14T12:00:00Z", NOW) == -1
        assert days_until("2026-01-15T12:00:00Z", NOW) == 0


class TestCheckExpiration:
    @pytest.mark.asyncio
    async def test_expiring_soon(self, monitor, figma):
        figma.add("pat", identity={"id": "u1", "expires_at": "2026-01-17T00:00:00Z"})
        status = await monitor.check_expiration("alice", "work", "pat")
        assert status == ExpirationStatus("alice", "work", "2026-01-17T00:00:00Z", 2, False, True)

    @pytest.mark.asyncio
    async def test_far_future(self, monitor, figma):
        figma.add("pat", identity={"id": "u1", "expires_at": "2026-03-01T00:00:00Z"})
        status = await monitor.check_expiration("alice", "work", "pat")
        assert status.needs_warning is False
        assert status.is_expired is False

    @pytest.mark.asyncio
    async def test_already_expired(self, monitor, figma):
        figma.add("pat", identity={"id": "u1", "expires_at": "2026-01-10T00:00:00Z"})
        status = await monitor.check_expiration("alice", "work", "pat")
        assert status.is_expired is True
        assert status.needs_warning is True

    @pytest.mark.asyncio
    async def test_unknown_expiry_no_warning(self, monitor, figma):
        figma.add("pat", identity={"id": "u1"})
        status = await monitor.check_expiration("alice", "work", "pat")
        assert status == ExpirationStatus("alice", "work", None, None, False, False)

    @pytest.mark.asyncio
    async def test_rejected_pat_reported_expired(self, monitor):
        status = await monitor.check_expiration("alice", "work", "unknown-pat")
        assert status == ExpirationStatus("alice", "work", None, None, True, True)


class TestCheckAll:
    @pytest.mark.asyncio
    async def test_returns_only_warnings(self, monitor, figma, vault, make_credential):
        figma.add("soon", identity={"id": "u1", "expires_at": "2026-01-16T00:00:00Z"})
        figma.add("fine", identity={"id": "u2", "expires_at": "2026-06-01T00:00:00Z"})
        await vault.save_credential(make_credential(account_name="a", pat="soon"))
        await vault.save_credential(make_credential(account_name="b", pat="fine"))

        statuses = await monitor.check_all_credentials()
        assert [s.account_name for s in statuses] == ["a"]

    @pytest.mark.asyncio
    async def test_unreadable_secret_reported_expired(self, monitor, vault, make_credential):
        await vault.save_credential(make_credential(account_name="broken").model_copy(
            update={"encrypted_secret": "00:11:22"}
        ))
        [status] = await monitor.check_all_credentials()
        assert status.account_name == "broken"
        assert status.is_expired is True
        assert status.expires_at is None


class TestNotify:
    @pytest.mark.asyncio
    async def test_empty_posts_nothing(self, monitor, slack):
        await monitor.post_consolidated_warnings([])
        slack.post_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_and_notify_posts_once(self, monitor, figma, vault, slack, make_credential):
        figma.add("soon", identity={"id": "u1", "expires_at": "2026-01-16T00:00:00Z"})
        await vault.save_credential(make_credential(account_name="a", pat="soon"))
        await vault.save_credential(make_credential(account_name="b", pat="revoked"))

        statuses = await monitor.check_and_notify()

        assert len(statuses) == 2
        slack.post_message.assert_awaited_once()
        text = slack.post_message.await_args.args[0]["text"]
        assert "URGENT" in text
        assert "WARNING" in text

    @pytest.mark.asyncio
    async def test_nothing_to_report(self, monitor, slack):
        assert await monitor.check_and_notify() == []
        slack.post_message.assert_not_awaited()


class TestWarningMessage:
    def test_sections(self):
        text = build_warning_message([
            ExpirationStatus("alice", "work", None, None, True, True),
            ExpirationStatus("bob", "client", "2026-01-17T00:00:00Z", 2, False, True),
        ])
        urgent, warning = text.split("\n\n\n")
        assert urgent.startswith("🚨 URGENT: Expired Figma PATs")
        assert "• User: alice, Account: work" in urgent
        assert warning.startswith("⚠️ WARNING: Figma PATs Expiring Soon")
        assert "Expires: 2026-01-17T00:00:00Z (2 days remaining)" in warning

    def test_only_expiring(self):
        text = build_warning_message([ExpirationStatus("bob", "client", "2026-01-17T00:00:00Z", 2, False, True)])
        assert "URGENT" not in text

    def test_to_dict(self):
        status = ExpirationStatus("bob", "client", "2026-01-17T00:00:00Z", 2, False, True)
        assert status.to_dict() == {
            "userId": "bob",
            "accountName": "client",
            "expiresAt": "2026-01-17T00:00:00Z",
            "daysUntilExpiry": 2,
            "isExpired": False,
            "needsWarning": True,
        }
