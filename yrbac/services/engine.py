"""
权限引擎 - 门面

PermissionEngine 组装角色解析、用户聚合、数据范围解析与缓存，对外提供：
    - 权限解析与判断: resolve_user_permissions / has_permission / has_any_permission /
      has_all_permissions / has_menu_permission / has_role
    - 数据范围: effective_data_scope / has_access_to_dept / accessible_dept_ids
    - 失效钩子: on_user_roles_changed / on_role_menus_changed / on_role_depts_changed /
      on_hierarchy_changed / on_user_data_scope_changed / on_user_changed / on_role_changed / evict_all
    - 预热: warm_up

写操作代码在每次写入后调用对应钩子；钩子返回后开始的读取一定能看到新数据。

使用示例:
    from yrbac import PermissionEngine, InMemoryRbacStore

    store = InMemoryRbacStore()
    engine = PermissionEngine.from_store(store)     # 自动注册为存储的写操作监听器

    engine.has_permission(7, "system:user:list")
    engine.accessible_dept_ids(7)

    # 自行实现存储时
    engine = PermissionEngine(
        users=my_users, roles=my_roles, menus=my_menus, depts=my_depts,
        settings=load_settings("config/rbac.yaml"),
    )
    # 在角色菜单写入后
    engine.on_role_menus_changed(role_id)
"""

from typing import Any, FrozenSet, Iterable, List, Optional, Sequence

from ..cache import PermissionCache
from ..config import RbacSettings
from ..enums import DataScope, HierarchyKind, PermissionScope
from ..log import get_logger
from ..permission_set import PermissionSet
from ..stores.base import DeptHierarchy, MenuHierarchy, RoleLookup, UserDataScopeLookup, UserLookup
from ..types import DeptId, MenuId, PermissionCode, RoleId, UserId
from .aggregator import PermissionAggregator
from .data_scope import DataScopeResolver, ScopeRule, build_scope_rules
from .role_resolver import RolePermissionResolver

logger = get_logger("yrbac.service.engine")


class PermissionEngine:
    """权限解析引擎"""

    def __init__(
        self,
        users: UserLookup,
        roles: RoleLookup,
        menus: MenuHierarchy,
        depts: DeptHierarchy,
        overrides: Optional[UserDataScopeLookup] = None,
        settings: Optional[RbacSettings] = None,
        cache: Optional[PermissionCache] = None,
        scope_rules: Optional[Sequence[ScopeRule]] = None,
    ):
        """
        Args:
            users / roles / menus / depts: 查询接口
            overrides: 用户级数据权限覆盖查询，可选
            settings: 引擎配置，默认 RbacSettings()
            cache: 权限缓存；不传时按配置创建，配置关闭缓存时不使用缓存
            scope_rules: 默认数据范围规则链；不传时按配置构造
        """
        self.settings = settings or RbacSettings()
        self.users = users
        self.roles = roles
        self.menus = menus
        self.depts = depts

        if cache is None and self.settings.cache.enabled:
            cache = PermissionCache.from_settings(self.settings.cache)
        self.cache = cache

        inheritance = self.settings.inheritance
        self.role_resolver = RolePermissionResolver(
            roles, menus, depts,
            strategy=inheritance.effective_strategy,
            cache=cache,
        )
        self.aggregator = PermissionAggregator(
            users, roles, menus, self.role_resolver,
            merge_strategy=inheritance.default_merge_strategy,
            cache=cache,
        )
        data_scope = self.settings.data_scope
        self.data_scope_resolver = DataScopeResolver(
            users, roles, depts, overrides,
            rules=scope_rules if scope_rules is not None else build_scope_rules(data_scope),
            fallback=data_scope.parsed_fallback_scope,
            cache=cache,
        )

        logger.info(
            f"PermissionEngine initialized: strategy={inheritance.effective_strategy.value}, "
            f"merge={inheritance.default_merge_strategy.value}, cache={'on' if cache else 'off'}"
        )

    @classmethod
    def from_store(
        cls,
        store: Any,
        settings: Optional[RbacSettings] = None,
        cache: Optional[PermissionCache] = None,
        scope_rules: Optional[Sequence[ScopeRule]] = None,
        listen: bool = True,
    ) -> "PermissionEngine":
        """由提供 users / roles / menus / depts / data_scopes 视图的存储创建

        listen 为 True 且存储支持 add_listener 时，引擎注册为其写操作监听器。
        """
        engine = cls(
            users=store.users,
            roles=store.roles,
            menus=store.menus,
            depts=store.depts,
            overrides=getattr(store, "data_scopes", None),
            settings=settings,
            cache=cache,
            scope_rules=scope_rules,
        )
        if listen and hasattr(store, "add_listener"):
            store.add_listener(engine)
        return engine

    # ==================== 权限解析 ====================

    def resolve_user_permissions(self, user_id: UserId) -> PermissionSet:
        return self.aggregator.resolve(user_id)

    def role_permissions(
        self,
        role_id: RoleId,
        scope: PermissionScope = PermissionScope.ALL,
    ) -> PermissionSet:
        return self.role_resolver.resolve(role_id, scope)

    def is_super_admin(self, user_id: UserId) -> bool:
        return self.users.is_super_admin(user_id)

    def _admin_passes(self, user_id: UserId) -> bool:
        """启用 admin_auto_inherit_all 时，有效的超级管理员直接通过权限判断"""
        if not self.settings.inheritance.admin_auto_inherit_all:
            return False
        if not self.users.is_super_admin(user_id):
            return False
        user = self.users.find_by_id(user_id)
        return user is not None and user.is_active

    # ==================== 权限检查 ====================

    def has_permission(self, user_id: UserId, code: PermissionCode) -> bool:
        if user_id is None or not code:
            return False
        if self._admin_passes(user_id):
            return True
        return self.aggregator.has_permission(user_id, code)

    def has_any_permission(self, user_id: UserId, codes: Iterable[PermissionCode]) -> bool:
        codes = [c for c in (codes or []) if c]
        if user_id is None or not codes:
            return False
        if self._admin_passes(user_id):
            return True
        return self.aggregator.has_any_permission(user_id, codes)

    def has_all_permissions(self, user_id: UserId, codes: Iterable[PermissionCode]) -> bool:
        codes = list(codes or [])
        if user_id is None or not codes or not all(codes):
            return False
        if self._admin_passes(user_id):
            return True
        return self.aggregator.has_all_permissions(user_id, codes)

    def has_menu_permission(self, user_id: UserId, menu_id: MenuId) -> bool:
        if user_id is None or menu_id is None:
            return False
        if self._admin_passes(user_id):
            return True
        return self.aggregator.has_menu_permission(user_id, menu_id)

    # ==================== 角色 ====================

    def get_user_role_keys(self, user_id: UserId) -> FrozenSet[str]:
        """用户有效角色的角色标识（用户未启用时为空）"""
        if self.cache is None:
            return self._load_role_keys(user_id)
        key = self.cache.make_key(PermissionCache.USER_ROLES, user_id)
        return self.cache.get_or_load(key, lambda: self._load_role_keys(user_id))

    def _load_role_keys(self, user_id: UserId) -> FrozenSet[str]:
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            return frozenset()
        roles = self.aggregator.active_roles(user_id)
        return frozenset(role.role_key for role in roles if role.role_key)

    def has_role(self, user_id: UserId, role_key: str) -> bool:
        if user_id is None or not role_key:
            return False
        return role_key in self.get_user_role_keys(user_id)

    # ==================== 数据范围 ====================

    def effective_data_scope(self, user_id: UserId) -> DataScope:
        return self.data_scope_resolver.effective_data_scope(user_id)

    def has_access_to_dept(self, user_id: UserId, dept_id: DeptId) -> bool:
        if user_id is None:
            return False
        return self.data_scope_resolver.has_access_to_dept(user_id, dept_id)

    def accessible_dept_ids(self, user_id: UserId) -> FrozenSet[DeptId]:
        if user_id is None:
            return frozenset()
        return self.data_scope_resolver.accessible_dept_ids(user_id)

    def dept_and_children_ids(self, dept_id: DeptId) -> FrozenSet[DeptId]:
        return self.data_scope_resolver.dept_and_children_ids(dept_id)

    def parent_dept_ids(self, dept_id: DeptId) -> List[DeptId]:
        return self.data_scope_resolver.parent_dept_ids(dept_id)

    # ==================== 失效钩子 ====================

    def on_user_roles_changed(self, user_id: UserId) -> None:
        """用户-角色关联变更"""
        if self.cache is None:
            return
        self.cache.evict_user(user_id, reason=f"user {user_id} roles changed")

    def on_user_changed(self, user_id: UserId) -> None:
        """用户资料变更（状态、部门、类型等）"""
        if self.cache is None:
            return
        self.cache.evict_user(user_id, reason=f"user {user_id} changed")

    def on_user_data_scope_changed(self, user_id: UserId) -> None:
        """用户级数据权限覆盖变更"""
        if self.cache is None:
            return
        self.cache.evict(
            keys=[
                self.cache.make_key(PermissionCache.USER_DATA_SCOPE, user_id),
                self.cache.make_key(PermissionCache.USER_DEPTS, user_id),
            ],
            reason=f"user {user_id} data scope changed",
        )

    def on_role_menus_changed(self, role_id: RoleId) -> None:
        """角色-菜单关联变更：失效该角色及持有该角色的用户权限"""
        if self.cache is None:
            return
        self.cache.evict_role(
            role_id,
            user_namespaces=[PermissionCache.USER_PERMISSIONS],
            reason=f"role {role_id} menus changed",
        )

    def on_role_depts_changed(self, role_id: RoleId) -> None:
        """角色-部门关联变更

        角色权限中的自定义部门、持有者的权限缓存都要失效；用户自定义部门
        列表可能由存储按角色汇总，部门相关的用户缓存全部清除。
        """
        if self.cache is None:
            return
        self.cache.evict_role(
            role_id,
            user_namespaces=[PermissionCache.USER_PERMISSIONS],
            reason=f"role {role_id} depts changed",
        )
        self.cache.evict_namespaces(
            PermissionCache.USER_DATA_SCOPE,
            PermissionCache.USER_DEPTS,
            reason=f"role {role_id} depts changed",
        )

    def on_role_changed(self, role_id: RoleId) -> None:
        """角色本身变更（状态、数据范围、删除）"""
        if self.cache is None:
            return
        self.cache.evict_role(
            role_id,
            user_namespaces=[PermissionCache.USER_PERMISSIONS, PermissionCache.USER_ROLES],
            reason=f"role {role_id} changed",
        )
        self.cache.evict_namespaces(
            PermissionCache.USER_DATA_SCOPE,
            PermissionCache.USER_DEPTS,
            reason=f"role {role_id} changed",
        )

    def on_hierarchy_changed(self, kind: Optional[HierarchyKind] = None) -> None:
        """菜单树或部门树变更

        Args:
            kind: MENU 清除菜单相关缓存，DEPT 清除部门相关缓存，None 两者都清除
        """
        if self.cache is None:
            return
        kind = HierarchyKind(kind) if kind is not None else None
        namespaces = []
        if kind in (None, HierarchyKind.MENU):
            namespaces += [PermissionCache.ROLE_PERMISSIONS, PermissionCache.USER_PERMISSIONS]
        if kind in (None, HierarchyKind.DEPT):
            namespaces += [PermissionCache.DEPT_TREE, PermissionCache.USER_DEPTS]
        self.cache.evict_namespaces(
            *namespaces,
            reason=f"{kind.value if kind else 'all'} hierarchy changed",
        )

    def evict_all(self) -> None:
        """清空全部权限缓存"""
        if self.cache is None:
            return
        self.cache.evict_all()

    # ==================== 预热 ====================

    def warm_up(self, user_ids: Iterable[UserId]) -> int:
        """预先加载用户权限与可访问部门

        Returns:
            成功加载的用户数（不存在或未启用的用户不计入）
        """
        loaded = 0
        for user_id in user_ids:
            user = self.users.find_by_id(user_id)
            if user is None or not user.is_active:
                continue
            self.resolve_user_permissions(user_id)
            self.accessible_dept_ids(user_id)
            loaded += 1
        logger.info(f"Permission cache warmed up: {loaded} users")
        return loaded

    def get_cache_info(self) -> dict:
        if self.cache is None:
            return {"enabled": False}
        info = self.cache.get_cache_info()
        info["enabled"] = True
        return info


__all__ = ["PermissionEngine"]
