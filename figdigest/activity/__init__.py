"""Activity normalization, relevance filtering and summaries."""

from figdigest.activity.models import Action, ActivityEvent

__all__ = ["Action", "ActivityEvent"]
