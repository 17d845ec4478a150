"""Bundle caching: key strategy and the in-memory TTL cache."""

from __future__ import annotations

from asd_context.context.cache.key_strategy import compute_cache_key, format_cache_key
from asd_context.context.cache.memory import BundleCache

__all__ = [
    "BundleCache",
    "compute_cache_key",
    "format_cache_key",
]
