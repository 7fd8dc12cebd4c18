"""
Error taxonomy for figdigest.

Classification decides what a caller does with a failure:
  - recoverable — rate limit, 5xx, network; the caller may retry with backoff
  - fatal       — invalid credential, malformed response, missing config
  - partial     — a per-account/project/file failure isolated at its own scope
"""

from __future__ import annotations

from enum import StrEnum


class ErrorClassification(StrEnum):
    RECOVERABLE = "recoverable"
    FATAL = "fatal"
    PARTIAL = "partial"


class FigDigestError(Exception):
    """Base class for all figdigest errors."""


class ConfigError(FigDigestError):
    """Mandatory configuration is missing or invalid."""


class VaultError(FigDigestError):
    """Base class for credential vault failures."""


class FormatError(VaultError):
    """Stored ciphertext is malformed."""


class AuthError(VaultError):
    """Ciphertext failed authentication (tampered data or wrong key)."""


class FigmaAPIError(FigDigestError):
    """A classified failure from the Figma REST API.

    ``status`` is 0 for transport/network errors. ``retry_after`` is only set
    for HTTP 429 and is expressed in seconds.
    """

    def __init__(
        self,
        message: str,
        status: int,
        response_body: str,
        account_name: str,
        recoverable: bool,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.response_body = response_body
        self.account_name = account_name
        self.recoverable = recoverable
        self.retry_after = retry_after

    @property
    def classification(self) -> ErrorClassification:
        return ErrorClassification.RECOVERABLE if self.recoverable else ErrorClassification.FATAL


class SlackDeliveryError(FigDigestError):
    """Slack webhook delivery failed after all permitted attempts."""

    def __init__(self, message: str, status: int | None = None, response_body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.response_body = response_body


class AccountExistsError(FigDigestError):
    """An account with this name is already linked for the user."""


class AccountNotFoundError(FigDigestError):
    """No account with this name is linked for the user."""
