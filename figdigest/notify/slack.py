"""
Slack delivery via incoming webhook.

- post_message: up to 3 attempts; retries on 5xx and transport errors with
  exponential backoff (1s, 2s); any 4xx fails immediately.
- post_messages: strictly sequential, 1s pause between messages to stay under
  Slack's per-webhook rate limit.

The webhook URL is a secret: it never appears in logs or error messages.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from figdigest.errors import ConfigError, ErrorClassification, SlackDeliveryError
from figdigest.log import log_classified, redact_text

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
BASE_BACKOFF_SECONDS = 1.0
MESSAGE_INTERVAL_SECONDS = 1.0


class SlackPoster:
    """Posts ``{"text": ...}`` payloads to one Slack webhook."""

    def __init__(
        self,
        webhook_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        if not webhook_url:
            raise ConfigError("Slack webhook URL is required")
        self._webhook_url = webhook_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self.max_attempts = max_attempts

    def __repr__(self) -> str:
        return "SlackPoster(webhook_url=[REDACTED])"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def _scrub(self, text: str) -> str:
        return redact_text(text.replace(self._webhook_url, "[REDACTED]"))

    async def post_message(self, message: dict) -> None:
        """Deliver one message, retrying transient failures."""
        for attempt in range(1, self.max_attempts + 1):
            backoff = BASE_BACKOFF_SECONDS * 2 ** (attempt - 1)
            is_last = attempt == self.max_attempts
            logger.debug("Posting Slack message (attempt %d/%d)", attempt, self.max_attempts)

            try:
                response = await self._client.post(self._webhook_url, json=message)
            except httpx.HTTPError as e:
                detail = self._scrub(str(e) or type(e).__name__)
                if is_last:
                    error = SlackDeliveryError(f"Slack webhook failed after {attempt} attempts: {detail}")
                    log_classified(logger, "Slack delivery failed", error, ErrorClassification.FATAL, attempt=attempt)
                    raise error from None
                log_classified(
                    logger,
                    "Slack webhook network error, retrying",
                    SlackDeliveryError(detail),
                    ErrorClassification.RECOVERABLE,
                    attempt=attempt,
                    backoff_seconds=backoff,
                )
                await self._sleep(backoff)
                continue

            if response.is_success:
                logger.info("Slack message posted (attempt %d)", attempt)
                return

            status = response.status_code
            body = self._scrub(response.text)
            if status >= 500 and not is_last:
                logger.warning(
                    "Slack webhook returned %d, retrying in %.0fs (attempt %d/%d)",
                    status,
                    backoff,
                    attempt,
                    self.max_attempts,
                )
                await self._sleep(backoff)
                continue

            error = SlackDeliveryError(f"Slack webhook failed: {status} - {body}", status=status, response_body=body)
            log_classified(logger, "Slack delivery failed", error, ErrorClassification.FATAL, attempt=attempt)
            raise error

    async def post_messages(self, messages: Sequence[dict]) -> None:
        """Deliver messages one at a time, pausing between them."""
        for index, message in enumerate(messages):
            await self.post_message(message)
            if index < len(messages) - 1:
                await self._sleep(MESSAGE_INTERVAL_SECONDS)

    async def post_pat_warning(
        self,
        user_name: str,
        account_name: str,
        expires_at: str,
        days_until_expiry: int,
    ) -> None:
        """Post an expiry warning for a single account."""
        if days_until_expiry <= 0:
            text = (
                "🚨 URGENT: Figma PAT Expired\n\n"
                f"User: {user_name}\n"
                f"Account: {account_name}\n"
                f"Expired: {expires_at}\n\n"
                "Action required: Please update your PAT immediately to continue "
                "receiving activity updates."
            )
        else:
            text = (
                "⚠️ WARNING: Figma PAT Expiring Soon\n\n"
                f"User: {user_name}\n"
                f"Account: {account_name}\n"
                f"Expires: {expires_at}\n"
                f"Days remaining: {days_until_expiry}\n\n"
                "Action required: Please renew your PAT before it expires."
            )
        await self.post_message({"text": text})
