"""Digest orchestration."""

from figdigest.digest.orchestrator import DigestOrchestrator, run_digest

__all__ = ["DigestOrchestrator", "run_digest"]
