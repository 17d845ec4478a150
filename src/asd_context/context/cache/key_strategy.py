"""Cache key computation for injection requests."""

from __future__ import annotations

from asd_context.context.models import CacheKey

_MISSING = "none"


def compute_cache_key(agent_type: str, spec_id: str | None, task_id: str | None) -> CacheKey:
    """Key a request by agent type and the spec/task it targets (``"none"`` when absent)."""
    return (agent_type, spec_id or _MISSING, task_id or _MISSING)


def format_cache_key(key: CacheKey) -> str:
    """Human-readable form used in stats and logs: ``agent-spec-task``."""
    return "-".join(key)
