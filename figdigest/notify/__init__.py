"""Outbound notifications."""

from figdigest.notify.slack import SlackPoster

__all__ = ["SlackPoster"]
