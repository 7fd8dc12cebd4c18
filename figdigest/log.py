"""
Logging setup with secret redaction.

Every module logs through ``logging.getLogger(__name__)``. ``configure_logging``
attaches a ``RedactingFilter`` to the root handlers so PATs, encrypted blobs and
webhook URLs are scrubbed from messages, arguments, ``extra`` context and
formatted tracebacks before anything is written.

Usage:
    from figdigest.log import configure_logging, log_classified
    configure_logging("INFO")
    log_classified(logger, "Account failed", exc, "partial", account_name="work")
"""

from __future__ import annotations

import logging
import re
import sys
from typing import Any

from figdigest.errors import ErrorClassification

REDACTED = "[REDACTED]"

# Exact (case-insensitive) key names whose values are always replaced
SENSITIVE_KEYS = frozenset(
    {
        "pat",
        "token",
        "password",
        "secret",
        "authorization",
        "webhook",
        "webhook_url",
        "webhookurl",
        "slack_webhook_url",
        "access_token",
        "accesstoken",
        "encrypted_pat",
        "encryptedpat",
        "encrypted_secret",
        "encryption_key",
        "x-figma-token",
    }
)

SENSITIVE_PATTERNS = [
    re.compile(r"figd_[A-Za-z0-9_-]+"),
    re.compile(r"token[\"'\s:=]+[A-Za-z0-9_-]{20,}", re.IGNORECASE),
    re.compile(r"https://hooks\.slack\.com/services/[A-Za-z0-9/]+", re.IGNORECASE),
    re.compile(r"authorization[\"'\s:=]+[A-Za-z0-9_-]+", re.IGNORECASE),
    re.compile(r"bearer\s+[A-Za-z0-9._-]+", re.IGNORECASE),
]

# Attributes every LogRecord has; anything else arrived via ``extra``
_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


def is_sensitive_key(key: str) -> bool:
    return key.lower() in SENSITIVE_KEYS


def redact_text(text: str) -> str:
    for pattern in SENSITIVE_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def sanitize(value: Any) -> Any:
    """Recursively redact secrets from strings, dicts, lists and tuples."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        clean: dict[Any, Any] = {}
        for key, item in value.items():
            if isinstance(key, str) and is_sensitive_key(key):
                clean[key] = [REDACTED] * len(item) if isinstance(item, list) else REDACTED
            else:
                clean[key] = sanitize(item)
        return clean
    if isinstance(value, list):
        return [sanitize(v) for v in value]
    if isinstance(value, tuple):
        return tuple(sanitize(v) for v in value)
    if isinstance(value, BaseException):
        return redact_text(str(value))
    return value


class RedactingFilter(logging.Filter):
    """Scrub secrets from every part of a log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)
        if record.args:
            record.args = sanitize(record.args)

        for key in list(record.__dict__):
            if key in _STANDARD_ATTRS:
                continue
            if is_sensitive_key(key):
                setattr(record, key, REDACTED)
            else:
                setattr(record, key, sanitize(record.__dict__[key]))

        if record.exc_info and not record.exc_text:
            record.exc_text = redact_text(logging.Formatter().formatException(record.exc_info))
        elif record.exc_text:
            record.exc_text = redact_text(record.exc_text)
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Configure root logging with redaction and return the package logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    redacting = RedactingFilter()
    for handler in logging.root.handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redacting)

    return logging.getLogger("figdigest")


def log_classified(
    logger: logging.Logger,
    message: str,
    error: BaseException,
    classification: ErrorClassification | str,
    **context: Any,
) -> None:
    """Log an error tagged with its classification.

    Only fatal errors carry a traceback; recoverable and partial failures are
    expected operating conditions.
    """
    classification = ErrorClassification(classification)
    logger.error(
        "%s [%s]: %s",
        message,
        classification.value,
        redact_text(str(error)),
        extra={"classification": classification.value, "context": sanitize(context)},
        exc_info=error if classification is ErrorClassification.FATAL else None,
    )
