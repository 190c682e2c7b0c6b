"""缓存模块

使用示例:
    from yrbac.cache import PermissionCache, MemoryBackend

    cache = PermissionCache(backend=MemoryBackend(maxsize=5000, ttl=120))
    engine = PermissionEngine.from_store(store, cache=cache)
"""

from .backends import CacheStats, CacheBackend, MemoryBackend
from .permission_cache import PermissionCache
from .decorators import cached_result

__all__ = [
    "CacheStats",
    "CacheBackend",
    "MemoryBackend",
    "PermissionCache",
    "cached_result",
]
