"""
Figma REST API client.

Every typed call goes through ``FigmaClient.request``, which classifies each
failure exactly once and raises ``FigmaAPIError``:

    429            → recoverable, retry_after from Retry-After (default 60s)
    401 / 403      → fatal (invalid or expired PAT)
    5xx            → recoverable
    other non-2xx  → fatal, status + raw body kept
    network error  → recoverable, status 0

The client never retries; retry policy belongs to the caller.

Usage:
    async with FigmaClient(pat, "work") as figma:
        me = await figma.get_identity()
        projects = await figma.list_team_projects("123")
"""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from figdigest.errors import ErrorClassification, FigmaAPIError
from figdigest.figma.models import (
    FigmaComment,
    FigmaFile,
    FigmaFileMeta,
    FigmaProject,
    FigmaUser,
    FigmaVersion,
)
from figdigest.log import log_classified

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.figma.com/v1"
DEFAULT_RETRY_AFTER = 60


def _retry_after_seconds(response: httpx.Response) -> int:
    raw = response.headers.get("Retry-After")
    if not raw:
        return DEFAULT_RETRY_AFTER
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_RETRY_AFTER


class FigmaClient:
    """Authenticated Figma API wrapper for one account."""

    def __init__(
        self,
        access_token: str,
        account_name: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token
        self.account_name = account_name
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def __repr__(self) -> str:
        return f"FigmaClient(account_name={self.account_name!r}, base_url={self.base_url!r})"

    async def __aenter__(self) -> FigmaClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "X-Figma-Token": self._access_token,
            "Content-Type": "application/json",
        }

    def _error(
        self,
        message: str,
        response: httpx.Response,
        *,
        recoverable: bool,
        endpoint: str,
        duration_ms: int,
        retry_after: int | None = None,
    ) -> FigmaAPIError:
        error = FigmaAPIError(
            message,
            response.status_code,
            response.text,
            self.account_name,
            recoverable,
            retry_after=retry_after,
        )
        log_classified(
            logger,
            "Figma API request failed",
            error,
            ErrorClassification.RECOVERABLE if recoverable else ErrorClassification.FATAL,
            account_name=self.account_name,
            endpoint=endpoint,
            status=response.status_code,
            duration_ms=duration_ms,
        )
        return error

    async def request(self, endpoint: str) -> Any:
        """GET ``endpoint`` (relative to the API base) and return decoded JSON."""
        url = f"{self.base_url}{endpoint}"
        started = time.monotonic()
        logger.debug("Figma API request %s for %s", endpoint, self.account_name)

        try:
            response = await self._client.get(url, headers=self._headers())
        except httpx.HTTPError as e:
            error = FigmaAPIError(
                f"Network error: {e}", 0, "", self.account_name, True
            )
            log_classified(
                logger,
                "Figma API network error",
                error,
                ErrorClassification.RECOVERABLE,
                account_name=self.account_name,
                endpoint=endpoint,
            )
            raise error from e

        duration_ms = int((time.monotonic() - started) * 1000)
        status = response.status_code

        if status == 429:
            wait = _retry_after_seconds(response)
            raise self._error(
                f"Rate limit exceeded. Retry after {wait} seconds",
                response,
                recoverable=True,
                endpoint=endpoint,
                duration_ms=duration_ms,
                retry_after=wait,
            )
        if status in (401, 403):
            raise self._error(
                "Invalid or expired PAT",
                response,
                recoverable=False,
                endpoint=endpoint,
                duration_ms=duration_ms,
            )
        if status >= 500:
            raise self._error(
                "Figma API temporary failure",
                response,
                recoverable=True,
                endpoint=endpoint,
                duration_ms=duration_ms,
            )
        if not response.is_success:
            raise self._error(
                f"Figma API request failed: {status} {response.reason_phrase}",
                response,
                recoverable=False,
                endpoint=endpoint,
                duration_ms=duration_ms,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self._error(
                "Figma API returned a malformed body",
                response,
                recoverable=False,
                endpoint=endpoint,
                duration_ms=duration_ms,
            ) from e

        logger.info(
            "Figma API request %s ok for %s (%d, %dms)",
            endpoint,
            self.account_name,
            status,
            duration_ms,
        )
        return data

    # ── Typed operations ──

    async def get_identity(self) -> FigmaUser:
        """Return the identity behind the PAT (``/me``)."""
        data = await self.request("/me")
        # Some responses nest the identity under "user"
        user = data.get("user") if isinstance(data, dict) and isinstance(data.get("user"), dict) else data
        if not isinstance(user, dict) or not user.get("id"):
            raise FigmaAPIError(
                "Invalid identity response from Figma API",
                200,
                str(data)[:500],
                self.account_name,
                False,
            )
        return FigmaUser.model_validate(user)

    async def list_team_projects(self, team_id: str) -> list[FigmaProject]:
        data = await self.request(f"/teams/{quote(str(team_id), safe='')}/projects")
        return [FigmaProject.model_validate(p) for p in data.get("projects") or []]

    async def list_project_files(self, project_id: str) -> list[FigmaFile]:
        data = await self.request(f"/projects/{quote(str(project_id), safe='')}/files")
        return [FigmaFile.model_validate(f) for f in data.get("files") or []]

    async def list_file_versions(self, file_key: str, since: str | None = None) -> list[FigmaVersion]:
        """List versions of a file, filtered server side by ``since`` (ISO 8601)."""
        endpoint = f"/files/{quote(file_key, safe='')}/versions"
        if since:
            endpoint += f"?since={quote(since, safe='')}"
        data = await self.request(endpoint)
        return [FigmaVersion.model_validate(v) for v in data.get("versions") or []]

    async def list_file_comments(self, file_key: str) -> list[FigmaComment]:
        data = await self.request(f"/files/{quote(file_key, safe='')}/comments")
        return [FigmaComment.model_validate(c) for c in data.get("comments") or []]

    async def get_file_meta(self, file_key: str) -> FigmaFileMeta:
        data = await self.request(
            f"/files/{quote(file_key, safe='')}?fields=name,last_modified,thumbnail_url,version"
        )
        return FigmaFileMeta.model_validate(data)
