"""
PAT expiration monitor.

Re-validates every stored credential against ``/me`` and reports the ones
that are expired or expire within the warning threshold (default 3 days).
A credential that cannot be checked at all is reported as expired.

Expiry lookup tries a fixed list of field names once, in order:
``expires_at``, ``expiresAt``, ``expiration``. The result is ``Found(value)``
or ``NOT_FOUND``; an identity without any of them raises no warning.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from figdigest.activity.models import parse_timestamp
from figdigest.errors import ErrorClassification
from figdigest.figma.client import FigmaClient
from figdigest.log import log_classified
from figdigest.notify.slack import SlackPoster
from figdigest.vault.dal import CredentialVault

logger = logging.getLogger(__name__)

EXPIRATION_FIELDS = ("expires_at", "expiresAt", "expiration")
DEFAULT_WARNING_DAYS = 3
MS_PER_DAY = 86_400_000


@dataclass(frozen=True)
class Found:
    value: str


class NotFound:
    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = NotFound()

ExpirationLookup = Found | NotFound


def extract_expiration(identity: BaseModel | Mapping[str, Any]) -> ExpirationLookup:
    """Find the expiry value on an identity payload."""
    data = identity.model_dump() if isinstance(identity, BaseModel) else identity
    for name in EXPIRATION_FIELDS:
        value = data.get(name)
        if value:
            return Found(str(value))
    return NOT_FOUND


def days_until(expires_at: str, now: datetime) -> int:
    delta_ms = (parse_timestamp(expires_at) - now).total_seconds() * 1000
    return math.ceil(delta_ms / MS_PER_DAY)


@dataclass(frozen=True)
class ExpirationStatus:
    user_id: str
    account_name: str
    expires_at: str | None
    days_until_expiry: int | None
    is_expired: bool
    needs_warning: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "accountName": self.account_name,
            "expiresAt": self.expires_at,
            "daysUntilExpiry": self.days_until_expiry,
            "isExpired": self.is_expired,
            "needsWarning": self.needs_warning,
        }


class ExpirationMonitor:
    """Checks PAT expiry for every stored credential and posts warnings."""

    def __init__(
        self,
        vault: CredentialVault,
        slack: SlackPoster,
        *,
        client_factory: Callable[[str, str], FigmaClient] = FigmaClient,
        warning_threshold_days: int = DEFAULT_WARNING_DAYS,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.vault = vault
        self.slack = slack
        self.client_factory = client_factory
        self.warning_threshold_days = warning_threshold_days
        self.clock = clock

    async def check_expiration(self, user_id: str, account_name: str, pat: str) -> ExpirationStatus:
        """Check one PAT. Any failure is reported as expired."""
        try:
            async with self.client_factory(pat, account_name) as figma:
                identity = await figma.get_identity()
            lookup = extract_expiration(identity)

            if isinstance(lookup, NotFound):
                logger.info("No expiry reported for %s/%s", user_id, account_name)
                return ExpirationStatus(user_id, account_name, None, None, False, False)

            days = days_until(lookup.value, self.clock())
        except Exception as e:
            log_classified(
                logger,
                "PAT check failed, assuming expired",
                e,
                ErrorClassification.PARTIAL,
                user_id=user_id,
                account_name=account_name,
            )
            return ExpirationStatus(user_id, account_name, None, None, True, True)

        status = ExpirationStatus(
            user_id=user_id,
            account_name=account_name,
            expires_at=lookup.value,
            days_until_expiry=days,
            is_expired=days <= 0,
            needs_warning=days <= self.warning_threshold_days,
        )
        if status.needs_warning:
            logger.warning(
                "PAT for %s/%s expires %s (%d days, expired=%s)",
                user_id,
                account_name,
                status.expires_at,
                days,
                status.is_expired,
            )
        return status

    async def check_all_credentials(self) -> list[ExpirationStatus]:
        """Check every stored credential; return only those needing a warning."""
        credentials = await self.vault.list_all_credentials()
        logger.info("Checking PAT expiry for %d accounts", len(credentials))

        warnings = []
        for credential in credentials:
            try:
                pat = self.vault.decrypt(credential.encrypted_secret)
            except Exception as e:
                log_classified(
                    logger,
                    "Stored PAT unreadable, assuming expired",
                    e,
                    ErrorClassification.PARTIAL,
                    user_id=credential.user_id,
                    account_name=credential.account_name,
                )
                warnings.append(
                    ExpirationStatus(credential.user_id, credential.account_name, None, None, True, True)
                )
                continue

            status = await self.check_expiration(credential.user_id, credential.account_name, pat)
            if status.needs_warning:
                warnings.append(status)

        logger.info("PAT expiry check done: %d of %d need warnings", len(warnings), len(credentials))
        return warnings

    async def post_consolidated_warnings(self, statuses: Sequence[ExpirationStatus]) -> None:
        """Post one message covering every expired and expiring PAT."""
        if not statuses:
            return
        await self.slack.post_message({"text": build_warning_message(statuses)})

    async def check_and_notify(self) -> list[ExpirationStatus]:
        statuses = await self.check_all_credentials()
        if statuses:
            await self.post_consolidated_warnings(statuses)
        return statuses


def build_warning_message(statuses: Sequence[ExpirationStatus]) -> str:
    expired = [s for s in statuses if s.is_expired]
    expiring = [s for s in statuses if not s.is_expired and s.needs_warning]

    sections = []
    if expired:
        lines = ["🚨 URGENT: Expired Figma PATs", ""]
        for s in expired:
            lines.append(f"• User: {s.user_id}, Account: {s.account_name}")
            if s.expires_at:
                lines.append(f"  Expired: {s.expires_at}")
        lines += [
            "",
            "Action required: Please update these PATs immediately to continue receiving activity updates.",
        ]
        sections.append("\n".join(lines))

    if expiring:
        lines = ["⚠️ WARNING: Figma PATs Expiring Soon", ""]
        for s in expiring:
            lines.append(f"• User: {s.user_id}, Account: {s.account_name}")
            if s.expires_at:
                remaining = f" ({s.days_until_expiry} days remaining)" if s.days_until_expiry is not None else ""
                lines.append(f"  Expires: {s.expires_at}{remaining}")
        lines += ["", "Action required: Please renew these PATs before they expire."]
        sections.append("\n".join(lines))

    return "\n\n\n".join(sections) + "\n"
