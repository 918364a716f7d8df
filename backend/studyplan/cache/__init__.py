"""In-memory registries shared across backend services."""

from .session_cache import PlanSessionCache, session_cache

__all__ = ["PlanSessionCache", "session_cache"]
