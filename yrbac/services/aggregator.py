"""
权限引擎 - 用户权限聚合

计算用户在全部有效角色上的权限并集，并对合并后的菜单再做一次 ADDITIVE
展开，使不同角色分别授予的父菜单与子菜单在合并视图中保持一致。再次展开
从各角色直接授予的菜单出发，不会因为合并结果中的祖先目录而放开整棵目录。

权限判断全部基于聚合结果做集合成员判断，不会按权限标识逐个查询存储。
"""

from typing import Iterable, List, Optional, Sequence

from ..cache import PermissionCache, cached_result
from ..enums import InheritanceStrategy, MergeStrategy, PermissionScope
from ..hierarchy import inherit_permissions
from ..log import get_logger
from ..permission_set import PermissionSet
from ..stores.base import MenuHierarchy, RoleLookup, UserLookup
from ..types import PermissionCode, Role, UserId
from .role_resolver import RolePermissionResolver

logger = get_logger("yrbac.service.aggregator")


class PermissionAggregator:
    """用户权限聚合器

    使用示例:
        aggregator = PermissionAggregator(store.users, store.roles, store.menus, role_resolver)

        perms = aggregator.resolve(7)
        aggregator.has_all_permissions(7, ["x:view", "x:edit"])
    """

    def __init__(
        self,
        users: UserLookup,
        roles: RoleLookup,
        menus: MenuHierarchy,
        role_resolver: RolePermissionResolver,
        merge_strategy: MergeStrategy = MergeStrategy.UNION,
        cache: Optional[PermissionCache] = None,
    ):
        self.users = users
        self.roles = roles
        self.menus = menus
        self.role_resolver = role_resolver
        self.merge_strategy = MergeStrategy(merge_strategy)
        self.cache = cache

    # ==================== 角色 ====================

    def active_roles(self, user_id: UserId) -> List[Role]:
        """用户的有效角色（正常且未删除），按排序号排列

        启用缓存时记录用户分配的全部角色（含未启用的），角色重新启用时也能精确失效。
        """
        assigned = self.roles.find_roles_of_user(user_id)
        if self.cache is not None:
            self.cache.remember_role_members(user_id, [role.id for role in assigned])
        roles = [role for role in assigned if role.is_active]
        return sorted(roles, key=lambda r: (r.role_sort, r.id))

    def merge_roles(
        self,
        roles: Sequence[Role],
        strategy: MergeStrategy = MergeStrategy.UNION,
        scope: PermissionScope = PermissionScope.ALL,
    ) -> PermissionSet:
        """按指定策略合并多个角色的权限

        只有未启用的角色不参与合并。有效角色即使没有授予任何权限也参与，
        交集合并时会使结果为空。
        """
        sets = [
            self.role_resolver.resolve(role.id, scope)
            for role in roles
            if role.is_active
        ]
        return PermissionSet.merge_all(sets, strategy)

    # ==================== 聚合 ====================

    @cached_result(PermissionCache.USER_PERMISSIONS)
    def resolve(self, user_id: UserId) -> PermissionSet:
        """计算用户权限

        Returns:
            权限集合；用户不存在、已停用或没有有效角色时为空集

        Raises:
            StoreUnavailableException: 存储查询失败
        """
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            logger.debug(f"User {user_id} missing or inactive, resolved to empty set")
            return PermissionSet.empty()

        roles = self.active_roles(user_id)
        if not roles:
            logger.debug(f"User {user_id} has no active roles")
            return PermissionSet.empty()

        merged = self.merge_roles(roles, self.merge_strategy, PermissionScope.ALL)
        result = inherit_permissions(merged, InheritanceStrategy.ADDITIVE, self.menus)

        logger.debug(
            f"User permissions resolved: user={user_id}, "
            f"roles={[role.id for role in roles]}, result={result!r}"
        )
        return result

    # ==================== 权限检查 ====================

    def has_permission(self, user_id: UserId, code: PermissionCode) -> bool:
        if not code:
            return False
        return self.resolve(user_id).has_permission(code)

    def has_any_permission(self, user_id: UserId, codes: Iterable[PermissionCode]) -> bool:
        """拥有任一权限即返回 True；权限列表为空返回 False"""
        codes = [c for c in codes if c]
        if not codes:
            return False
        return self.resolve(user_id).has_any_permission(codes)

    def has_all_permissions(self, user_id: UserId, codes: Iterable[PermissionCode]) -> bool:
        """拥有全部权限才返回 True；权限列表为空返回 False"""
        codes = list(codes)
        if not codes or not all(codes):
            return False
        return self.resolve(user_id).has_all_permissions(codes)

    def has_menu_permission(self, user_id: UserId, menu_id: int) -> bool:
        if menu_id is None:
            return False
        return self.resolve(user_id).has_menu(menu_id)


__all__ = ["PermissionAggregator"]
