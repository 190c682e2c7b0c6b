"""缓存后端模块

提供权限缓存的存储后端接口与内存实现。
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cachetools import TTLCache

from ..log import get_logger

logger = get_logger("yrbac.cache")


@dataclass
class CacheStats:
    """缓存统计信息"""
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    
    @property
    def hit_rate(self) -> float:
        """命中率"""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0
    
    @property
    def total_requests(self) -> int:
        return self.hits + self.misses
    
    def record_hit(self):
        self.hits += 1
    
    def record_miss(self):
        self.misses += 1
    
    def record_invalidation(self, count: int = 1):
        self.invalidations += count
    
    def reset(self):
        self.hits = 0
        self.misses = 0
        self.invalidations = 0
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "total_requests": self.total_requests,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class CacheBackend(ABC):
    """缓存后端抽象基类
    
    值为 None 表示未命中，因此后端不存储 None。
    """
    
    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """获取缓存值"""
        pass
    
    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """设置缓存值"""
        pass
    
    @abstractmethod
    def delete(self, key: str) -> bool:
        """删除缓存"""
        pass
    
    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """删除指定前缀的全部缓存，返回删除数量"""
        pass
    
    @abstractmethod
    def clear(self) -> None:
        """清空所有缓存"""
        pass
    
    @abstractmethod
    def get_stats(self) -> Dict[str, Any]:
        """获取统计信息"""
        pass


class MemoryBackend(CacheBackend):
    """内存缓存后端
    
    基于 cachetools.TTLCache 实现，支持自动过期。
    TTLCache 本身不是线程安全的，锁只覆盖单次字典操作。
    
    使用示例:
        backend = MemoryBackend(maxsize=10000, ttl=300)
        backend.set("user:perms:7", permission_set)
        value = backend.get("user:perms:7")
    """
    
    def __init__(
        self,
        maxsize: int = 10000,
        ttl: int = 300,
        enable_stats: bool = True
    ):
        """
        Args:
            maxsize: 最大缓存条目数
            ttl: 过期时间（秒）
            enable_stats: 是否启用统计
        """
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._default_ttl = ttl
        self._maxsize = maxsize
        self._lock = threading.RLock()
        self._stats = CacheStats() if enable_stats else None
        
        logger.debug(f"MemoryBackend initialized: maxsize={maxsize}, ttl={ttl}")
    
    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._cache.get(key)
        if self._stats:
            if value is None:
                self._stats.record_miss()
            else:
                self._stats.record_hit()
        return value
    
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        # TTLCache 只支持统一过期时间，ttl 参数仅为接口兼容
        if value is None:
            return
        with self._lock:
            self._cache[key] = value
    
    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                if self._stats:
                    self._stats.record_invalidation()
                return True
            return False
    
    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
            for key in keys:
                self._cache.pop(key, None)
        if keys and self._stats:
            self._stats.record_invalidation(len(keys))
        return len(keys)
    
    def keys(self, prefix: str = ""):
        """列出（未过期的）缓存键，主要用于调试与测试"""
        with self._lock:
            return [k for k in list(self._cache.keys()) if k.startswith(prefix)]
    
    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
        if self._stats:
            self._stats.record_invalidation()
        logger.info("MemoryBackend cleared")
    
    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = {
                "backend": "memory",
                "size": len(self._cache),
                "maxsize": self._maxsize,
                "ttl": self._default_ttl,
            }
        if self._stats:
            stats.update(self._stats.to_dict())
        return stats
    
    def reset_stats(self) -> None:
        if self._stats:
            self._stats.reset()


__all__ = [
    "CacheStats",
    "CacheBackend",
    "MemoryBackend",
]
