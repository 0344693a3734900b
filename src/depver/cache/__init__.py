"""
Cache package for registry results.

This package provides:
- TTL cache (kv_cache.py): bounded in-memory cache with per-ecosystem TTLs
- Key builders (keys.py): deterministic keys per operation
"""

from depver.cache.keys import latest_key, package_key
from depver.cache.kv_cache import TTLCache

__all__ = [
    "TTLCache",
    "latest_key",
    "package_key",
]
