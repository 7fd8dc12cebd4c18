"""
Digest orchestrator — one full polling run across every stored account.

Flow:
  vault.list_all_credentials
  → accounts in batches of ``concurrency`` (each batch awaited as a whole)
      decrypt PAT → /me → since = cursor or now - lookback
      → teams → projects → files (sequential)
      → versions (server-side since) + comments (client-side since)
      → normalize → relevance filter for the account's own identity
  → merge → summaries → Slack
  → PAT expiration monitor
  → advance cursors of accounts that completed

A failure inside one account never touches its siblings; a failure inside one
team, project or file is recorded as a ScopeError and traversal continues.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import TypeVar

import httpx

from figdigest.activity.models import ActivityEvent, parse_timestamp
from figdigest.activity.normalizer import (
    DEFAULT_WEB_URL,
    filter_by_timestamp,
    is_after,
    normalize_comment,
    normalize_version,
)
from figdigest.activity.relevance import filter_events_for_identity
from figdigest.activity.summary import generate_daily_recap, generate_per_event_summaries
from figdigest.config import Config, get_config
from figdigest.digest.models import AccountResult, DigestResult, ScopeError
from figdigest.errors import ConfigError, ErrorClassification
from figdigest.figma.client import FigmaClient
from figdigest.figma.models import FigmaFile, FigmaProject
from figdigest.log import log_classified, redact_text
from figdigest.monitor.expiration import ExpirationMonitor
from figdigest.notify.slack import SlackPoster
from figdigest.store import KVStore, RedisStore
from figdigest.vault.dal import CredentialVault
from figdigest.vault.models import Credential

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 3
DEFAULT_LOOKBACK_HOURS = 24

T = TypeVar("T")


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _error_text(error: BaseException) -> str:
    return redact_text(str(error) or type(error).__name__)


class DigestOrchestrator:
    """Coordinates fetching, filtering, summarizing and delivery for one run."""

    def __init__(
        self,
        vault: CredentialVault,
        slack: SlackPoster,
        monitor: ExpirationMonitor | None = None,
        *,
        client_factory: Callable[[str, str], FigmaClient] = FigmaClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        lookback_hours: int = DEFAULT_LOOKBACK_HOURS,
        digest_format: str = "per-event",
        web_url: str = DEFAULT_WEB_URL,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.vault = vault
        self.slack = slack
        self.monitor = monitor
        self.client_factory = client_factory
        self.concurrency = max(1, concurrency)
        self.lookback_hours = lookback_hours
        self.digest_format = digest_format
        self.web_url = web_url
        self.clock = clock

    # ── Run ──

    async def run(self) -> DigestResult:
        started = time.monotonic()
        logger.info("Digest run started")

        credentials = await self.vault.list_all_credentials()
        logger.info("Found %d accounts to process", len(credentials))

        results = await self.process_accounts(credentials) if credentials else []

        errors: list[str] = []
        events: list[ActivityEvent] = []
        succeeded: list[AccountResult] = []
        for result in results:
            if result.ok:
                succeeded.append(result)
                events.extend(result.events)
            else:
                errors.append(f"{result.account_name}: {result.error}")

        delivered = await self._deliver(events, errors)

        if self.monitor is not None:
            try:
                await self.monitor.check_and_notify()
            except Exception as e:
                log_classified(logger, "PAT expiration check failed", e, ErrorClassification.PARTIAL)
                errors.append(f"expiration check: {_error_text(e)}")

        if delivered:
            for result in succeeded:
                await self._advance_cursor(result, errors)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Digest run finished: %d events, %d/%d accounts, %d errors, %dms",
            len(events),
            len(succeeded),
            len(credentials),
            len(errors),
            duration_ms,
        )
        return DigestResult(
            success=not errors,
            events_processed=len(events),
            accounts_processed=len(succeeded),
            errors=errors,
            duration_ms=duration_ms,
        )

    async def _deliver(self, events: list[ActivityEvent], errors: list[str]) -> bool:
        if not events:
            return True
        if self.digest_format == "daily-recap":
            messages = [generate_daily_recap(events, self.clock().astimezone(UTC).date().isoformat())]
        else:
            messages = generate_per_event_summaries(events)

        logger.info("Delivering %d messages for %d events", len(messages), len(events))
        try:
            await self.slack.post_messages(messages)
        except Exception as e:
            log_classified(logger, "Digest delivery failed", e, ErrorClassification.FATAL)
            errors.append(f"delivery: {_error_text(e)}")
            return False
        return True

    async def _advance_cursor(self, result: AccountResult, errors: list[str]) -> None:
        try:
            await self.vault.set_cursor(result.user_id, result.account_name, result.completed_at or _iso(self.clock()))
        except Exception as e:
            log_classified(
                logger,
                "Cursor update failed",
                e,
                ErrorClassification.PARTIAL,
                user_id=result.user_id,
                account_name=result.account_name,
            )
            errors.append(f"{result.account_name}: cursor update failed: {_error_text(e)}")

    # ── Accounts ──

    async def process_accounts(self, credentials: Sequence[Credential]) -> list[AccountResult]:
        """Process accounts in fixed-size batches, each batch awaited as a whole."""
        results: list[AccountResult] = []
        for start in range(0, len(credentials), self.concurrency):
            batch = credentials[start : start + self.concurrency]
            outcomes = await asyncio.gather(
                *(self.process_account(c) for c in batch),
                return_exceptions=True,
            )
            for credential, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    results.append(
                        AccountResult(credential.user_id, credential.account_name, error=_error_text(outcome))
                    )
                else:
                    results.append(outcome)
        return results

    async def process_account(self, credential: Credential) -> AccountResult:
        """Fetch and filter one account's activity. Never raises."""
        user_id, account_name = credential.user_id, credential.account_name
        logger.debug("Processing account %s/%s (%d teams)", user_id, account_name, len(credential.team_ids))

        try:
            pat = self.vault.decrypt(credential.encrypted_secret)
            async with self.client_factory(pat, account_name) as figma:
                identity = await figma.get_identity()
                cursor = await self.vault.get_cursor(user_id, account_name)
                since = cursor or _iso(self.clock() - timedelta(hours=self.lookback_hours))
                logger.debug("Fetching %s/%s activity since %s", user_id, account_name, since)

                events, scope_errors = await self.collect_activity(figma, credential, since)
        except Exception as e:
            log_classified(
                logger,
                "Account processing failed",
                e,
                ErrorClassification.PARTIAL,
                user_id=user_id,
                account_name=account_name,
            )
            return AccountResult(user_id, account_name, error=_error_text(e))

        relevant = filter_events_for_identity(events, identity.id)
        logger.info(
            "Account %s/%s: %d events, %d relevant, %d scope errors",
            user_id,
            account_name,
            len(events),
            len(relevant),
            len(scope_errors),
        )
        return AccountResult(
            user_id,
            account_name,
            events=relevant,
            scope_errors=scope_errors,
            completed_at=_iso(self.clock()),
        )

    # ── Traversal ──

    async def collect_activity(
        self,
        figma: FigmaClient,
        credential: Credential,
        since: str,
    ) -> tuple[list[ActivityEvent], list[ScopeError]]:
        """Walk team → project → file sequentially, isolating failures per scope."""
        events: list[ActivityEvent] = []
        scope_errors: list[ScopeError] = []
        account_name = credential.account_name

        if not credential.team_ids:
            logger.warning("No team ids configured for %s; nothing to track", account_name)
            return events, scope_errors

        async def guarded(scope: str, identifier: str, call: Callable[[], Awaitable[T]]) -> T | None:
            try:
                return await call()
            except Exception as e:
                log_classified(
                    logger,
                    f"Failed to process {scope}",
                    e,
                    ErrorClassification.PARTIAL,
                    account_name=account_name,
                    scope=scope,
                    identifier=identifier,
                )
                scope_errors.append(ScopeError(scope, identifier, _error_text(e)))
                return None

        for team_id in credential.team_ids:
            projects = await guarded("team", team_id, functools.partial(figma.list_team_projects, team_id))
            for project in projects or []:
                files = await guarded("project", project.id, functools.partial(figma.list_project_files, project.id))
                for file in files or []:
                    file_events = await guarded(
                        "file",
                        file.key,
                        functools.partial(self._file_events, figma, file, project, account_name, since),
                    )
                    events.extend(file_events or [])

        return events, scope_errors

    async def _file_events(
        self,
        figma: FigmaClient,
        file: FigmaFile,
        project: FigmaProject,
        account_name: str,
        since: str,
    ) -> list[ActivityEvent]:
        if file.last_modified and parse_timestamp(file.last_modified) <= parse_timestamp(since):
            return []

        versions = await figma.list_file_versions(file.key, since=since)
        version_events = [
            normalize_version(v, file, project, account_name, web_url=self.web_url) for v in versions
        ]

        comments = await figma.list_file_comments(file.key)
        comment_events = [
            normalize_comment(c, file, project, account_name, web_url=self.web_url)
            for c in comments
            if is_after(c.created_at, since)
        ]

        return filter_by_timestamp(version_events, since) + comment_events


async def run_digest(
    cfg: Config | None = None,
    *,
    store: KVStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> tuple[int, DigestResult]:
    """Top-level digest entrypoint. Returns ``(http_status, result)``; never raises.

    500 is returned only when mandatory configuration is missing or invalid,
    before any account is touched. Partial failures still return 200.
    """
    started = time.monotonic()

    def elapsed() -> int:
        return int((time.monotonic() - started) * 1000)

    if cfg is None:
        try:
            cfg = get_config()
        except ConfigError as e:
            log_classified(logger, "Invalid digest configuration", e, ErrorClassification.FATAL)
            return 500, DigestResult(success=False, errors=[_error_text(e)], duration_ms=elapsed())

    missing = cfg.validate_for_digest()
    if missing:
        errors = [f"Missing {name} environment variable" for name in missing]
        for message in errors:
            logger.error(message)
        return 500, DigestResult(success=False, errors=errors, duration_ms=elapsed())

    owns_http = http_client is None
    http = http_client or httpx.AsyncClient(timeout=cfg.figma.timeout_seconds)
    owned_store: RedisStore | None = None
    try:
        if store is None:
            store = owned_store = RedisStore.from_url(cfg.redis.url)
        vault = CredentialVault(cfg.encryption_key, store)
        slack = SlackPoster(cfg.slack_webhook_url, http_client=http)
    except (ConfigError, ValueError) as e:
        log_classified(logger, "Invalid digest configuration", e, ErrorClassification.FATAL)
        if owns_http:
            await http.aclose()
        if owned_store is not None:
            await owned_store.close()
        return 500, DigestResult(success=False, errors=[_error_text(e)], duration_ms=elapsed())

    client_factory = functools.partial(FigmaClient, base_url=cfg.figma.api_url, http_client=http)
    monitor = ExpirationMonitor(
        vault,
        slack,
        client_factory=client_factory,
        warning_threshold_days=cfg.digest.warning_threshold_days,
    )
    orchestrator = DigestOrchestrator(
        vault,
        slack,
        monitor,
        client_factory=client_factory,
        concurrency=cfg.digest.concurrency,
        lookback_hours=cfg.digest.lookback_hours,
        digest_format=cfg.digest.format,
        web_url=cfg.figma.web_url,
    )

    try:
        result = await orchestrator.run()
    except Exception as e:
        log_classified(logger, "Digest run failed", e, ErrorClassification.FATAL)
        result = DigestResult(success=False, errors=[_error_text(e)])
    finally:
        if owns_http:
            await http.aclose()
        if owned_store is not None:
            await owned_store.close()

    result.duration_ms = elapsed()
    return 200, result
