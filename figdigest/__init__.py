"""figdigest — Figma activity digests for Slack across many linked accounts."""

__version__ = "0.1.0"
