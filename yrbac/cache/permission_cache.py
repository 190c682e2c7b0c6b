"""
权限缓存

在角色权限、用户权限、数据范围计算结果前面加一层读穿缓存，并在每次
写操作后由显式调用的失效钩子清除受影响的键。

缓存键格式:
    user:perms:{user_id}              用户聚合权限
    user:roles:{user_id}              用户有效角色标识
    user:scope:{user_id}              用户有效数据范围
    user:depts:{user_id}              用户可访问部门
    role:perms:{role_id}:{scope}      角色权限
    dept:tree:{dept_id}               部门及下级部门

一致性:
    每次失效都会先递增代次号。未命中时记下加载开始时的代次号，加载完成后
    只有代次号未变才写入缓存，因此失效调用返回之后开始的读取一定能看到新数据，
    而解析过程中不持有任何锁。

使用示例:
    cache = PermissionCache(maxsize=10000, ttl=300)
    key = cache.make_key(PermissionCache.USER_PERMISSIONS, 7)
    value = cache.get_or_load(key, lambda: aggregator.load(7))

    cache.evict(keys=[key], reason="user 7 roles changed")
    print(cache.get_cache_info())
"""

import threading
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from ..log import get_logger
from .backends import CacheBackend, CacheStats, MemoryBackend

logger = get_logger("yrbac.cache")


class PermissionCache:
    """权限缓存管理器"""

    USER_PERMISSIONS = "user:perms"
    USER_ROLES = "user:roles"
    USER_DATA_SCOPE = "user:scope"
    USER_DEPTS = "user:depts"
    ROLE_PERMISSIONS = "role:perms"
    DEPT_TREE = "dept:tree"

    # 以用户为主体的命名空间
    USER_NAMESPACES = (USER_PERMISSIONS, USER_ROLES, USER_DATA_SCOPE, USER_DEPTS)

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        maxsize: int = 10000,
        ttl: int = 300,
        enable_stats: bool = True,
        track_role_members: bool = True,
    ):
        """
        Args:
            backend: 缓存后端，默认使用 MemoryBackend
            maxsize: 最大缓存条目数（仅默认后端使用）
            ttl: 过期时间（秒，仅默认后端使用）
            enable_stats: 是否启用统计
            track_role_members: 是否维护角色 -> 用户索引；关闭后角色变更会清空全部用户缓存
        """
        self._backend = backend or MemoryBackend(maxsize=maxsize, ttl=ttl, enable_stats=False)
        self._ttl = ttl
        self._track_role_members = track_role_members
        self._lock = threading.Lock()
        self._generation = 0
        self._role_members: Dict[Any, Set[Any]] = {}
        self._stats = CacheStats() if enable_stats else None
        self._skipped_writes = 0

        logger.debug(
            f"PermissionCache initialized: backend={type(self._backend).__name__}, "
            f"ttl={ttl}, track_role_members={track_role_members}"
        )

    @classmethod
    def from_settings(cls, settings: Any, backend: Optional[CacheBackend] = None) -> "PermissionCache":
        """根据 CacheSettings 创建"""
        return cls(
            backend=backend,
            maxsize=settings.maxsize,
            ttl=settings.ttl,
            enable_stats=settings.enable_stats,
            track_role_members=settings.track_role_members,
        )

    # ==================== 键 ====================

    @staticmethod
    def make_key(namespace: str, *parts: Any) -> str:
        """生成缓存键，枚举取其值"""
        values = [namespace]
        for part in parts:
            values.append(str(part.value if isinstance(part, Enum) else part))
        return ":".join(values)

    def user_keys(self, user_id: Any) -> List[str]:
        """某个用户的全部缓存键"""
        return [self.make_key(ns, user_id) for ns in self.USER_NAMESPACES]

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    @property
    def tracks_role_members(self) -> bool:
        return self._track_role_members

    # ==================== 读取 ====================

    def get(self, key: str) -> Optional[Any]:
        value = self._backend.get(key)
        if self._stats:
            if value is None:
                self._stats.record_miss()
            else:
                self._stats.record_hit()
        return value

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        """读穿缓存

        未命中时调用 loader；加载期间发生过失效则结果只返回不写入。
        loader 抛出的异常原样向上传播，不会写入缓存。
        """
        value = self.get(key)
        if value is not None:
            return value

        started_at = self._generation
        value = loader()
        self._store_if_current(key, value, started_at)
        return value

    def _store_if_current(self, key: str, value: Any, started_at: int) -> None:
        if value is None:
            return
        with self._lock:
            if self._generation != started_at:
                self._skipped_writes += 1
                logger.debug(f"Skip caching {key}: evicted while loading")
                return
            self._backend.set(key, value, self._ttl)

    # ==================== 角色成员索引 ====================

    def remember_role_members(self, user_id: Any, role_ids: Iterable[Any]) -> None:
        """记录用户持有的角色，供角色变更时精确失效"""
        if not self._track_role_members:
            return
        with self._lock:
            for role_id in role_ids:
                self._role_members.setdefault(role_id, set()).add(user_id)

    def forget_user(self, user_id: Any) -> None:
        """从角色成员索引中移除用户，下次加载该用户时重新记录"""
        with self._lock:
            for role_id in list(self._role_members):
                members = self._role_members[role_id]
                members.discard(user_id)
                if not members:
                    del self._role_members[role_id]

    def users_of_role(self, role_id: Any) -> Set[Any]:
        with self._lock:
            return set(self._role_members.get(role_id, ()))

    # ==================== 失效 ====================

    def evict(
        self,
        keys: Iterable[str] = (),
        prefixes: Iterable[str] = (),
        reason: str = "",
    ) -> None:
        """失效指定键和前缀

        先递增代次号，再删除。删除过程中出错时记录错误并清空整个缓存，
        保证不会留下部分失效的状态；清空也失败时异常向上传播。
        """
        keys = list(keys)
        prefixes = list(prefixes)
        with self._lock:
            self._generation += 1

        try:
            removed = 0
            for key in keys:
                if self._backend.delete(key):
                    removed += 1
            for prefix in prefixes:
                removed += self._backend.delete_prefix(prefix)
        except Exception as e:
            logger.error(f"Cache eviction failed ({reason}): {e}; clearing whole cache")
            self._clear()
            return

        if self._stats:
            self._stats.record_invalidation()
        logger.info(f"Cache evicted: {reason or 'manual'} ({removed} entries)")

    def evict_user(self, user_id: Any, reason: str = "") -> None:
        """失效用户的全部缓存，并把用户移出角色成员索引"""
        self.forget_user(user_id)
        self.evict(keys=self.user_keys(user_id), reason=reason or f"user {user_id}")

    def evict_role(self, role_id: Any, user_namespaces: Iterable[str] = (), reason: str = "") -> None:
        """失效角色权限，以及持有该角色的用户在指定命名空间下的缓存

        未维护角色成员索引时，按前缀清空这些命名空间下的全部用户缓存。
        """
        user_namespaces = list(user_namespaces) or [self.USER_PERMISSIONS, self.USER_ROLES]
        prefixes = [self.make_key(self.ROLE_PERMISSIONS, role_id) + ":"]
        keys: List[str] = []

        if self._track_role_members:
            for user_id in self.users_of_role(role_id):
                keys.extend(self.make_key(ns, user_id) for ns in user_namespaces)
        else:
            prefixes.extend(ns + ":" for ns in user_namespaces)

        self.evict(keys=keys, prefixes=prefixes, reason=reason or f"role {role_id}")

    def evict_namespaces(self, *namespaces: str, reason: str = "") -> None:
        self.evict(prefixes=[ns + ":" for ns in namespaces], reason=reason)

    def evict_all(self) -> None:
        """清空全部缓存（管理端刷新）"""
        with self._lock:
            self._generation += 1
        self._clear()
        if self._stats:
            self._stats.record_invalidation()
        logger.info("Permission cache cleared")

    def _clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._role_members.clear()
        self._backend.clear()

    # ==================== 统计 ====================

    def get_cache_info(self) -> Dict[str, Any]:
        """获取缓存信息"""
        info: Dict[str, Any] = {
            "generation": self._generation,
            "tracked_roles": len(self._role_members),
            "skipped_writes": self._skipped_writes,
            "backend": self._backend.get_stats(),
        }
        if self._stats:
            info["stats"] = self._stats.to_dict()
        return info

    @property
    def stats(self) -> Optional[CacheStats]:
        return self._stats

    def reset_stats(self) -> None:
        if self._stats:
            self._stats.reset()
        self._skipped_writes = 0


__all__ = ["PermissionCache"]
