"""Credential health monitoring."""

from figdigest.monitor.expiration import ExpirationMonitor, ExpirationStatus

__all__ = ["ExpirationMonitor", "ExpirationStatus"]
