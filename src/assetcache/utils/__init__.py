"""Utility modules for the asset cache."""

from assetcache.utils.performance import (
    Debouncer,
    Paginator,
    process_in_chunks,
    throttle,
)

__all__ = [
    "Debouncer",
    "Paginator",
    "process_in_chunks",
    "throttle",
]
