"""Local cache for prompts stored in GitHub Gists.

Key components:
- CacheManager: On-disk index and prompt body persistence
- CachedStore: Remote-first Store decorator with cache fallback
"""

from promptvault.cache.cached_store import CachedStore, ReadSource
from promptvault.cache.manager import CacheManager

__all__ = [
    "CacheManager",
    "CachedStore",
    "ReadSource",
]
