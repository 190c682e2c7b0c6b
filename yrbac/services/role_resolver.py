"""
权限引擎 - 角色权限解析

计算单个角色的权限集合：
    1. 角色不存在、已停用或已删除时返回空集
    2. 读取角色关联的菜单，只保留正常、未删除且类型属于所需范围的菜单
    3. 由这些菜单构造菜单编号与权限标识
    4. 读取角色数据范围，自定义数据权限时附带角色关联的部门
    5. 按继承策略展开菜单，并按展开后的菜单重新计算权限标识

结果按 (角色编号, 范围) 缓存。
"""

from typing import Optional

from ..cache import PermissionCache, cached_result
from ..enums import DataScope, InheritanceStrategy, PermissionScope
from ..hierarchy import inherit_permissions
from ..log import get_logger
from ..permission_set import PermissionSet
from ..stores.base import DeptHierarchy, MenuHierarchy, RoleLookup
from ..types import RoleId

logger = get_logger("yrbac.service.role")


class RolePermissionResolver:
    """角色权限解析器

    使用示例:
        resolver = RolePermissionResolver(store.roles, store.menus, store.depts)

        perms = resolver.resolve(10)                                  # 全部
        buttons = resolver.resolve(10, PermissionScope.BUTTON_ONLY)   # 仅按钮
    """

    def __init__(
        self,
        roles: RoleLookup,
        menus: MenuHierarchy,
        depts: DeptHierarchy,
        strategy: InheritanceStrategy = InheritanceStrategy.ADDITIVE,
        cache: Optional[PermissionCache] = None,
    ):
        self.roles = roles
        self.menus = menus
        self.depts = depts
        self.strategy = InheritanceStrategy(strategy)
        self.cache = cache

    @cached_result(PermissionCache.ROLE_PERMISSIONS)
    def resolve(
        self,
        role_id: RoleId,
        scope: PermissionScope = PermissionScope.ALL,
    ) -> PermissionSet:
        """计算角色权限

        Args:
            role_id: 角色编号
            scope: 权限范围（按菜单类型过滤）

        Returns:
            权限集合；角色不存在或未启用时为空集

        Raises:
            StoreUnavailableException: 存储查询失败
        """
        scope = PermissionScope(scope)
        role = self.roles.find_by_id(role_id)
        if role is None or not role.is_active:
            logger.debug(f"Role {role_id} missing or inactive, resolved to empty set")
            return PermissionSet.empty()

        menus = [
            menu for menu in self.menus.menus_of_role(role_id)
            if menu.is_active and scope.accepts(menu.menu_type)
        ]
        permissions = PermissionSet.from_menus(menus)

        data_scopes = set()
        custom_dept_ids = set()
        if role.data_scope:
            data_scope = DataScope.from_code(role.data_scope)
            data_scopes.add(data_scope)
            if data_scope is DataScope.CUSTOM:
                custom_dept_ids.update(self.depts.dept_ids_of_role(role_id))
                if not custom_dept_ids:
                    logger.warning(
                        f"Role {role_id} has CUSTOM data scope but no departments, "
                        f"treated as no department access"
                    )

        permissions = permissions.replace(
            data_scopes=data_scopes,
            custom_dept_ids=custom_dept_ids,
        )
        result = inherit_permissions(permissions, self.strategy, self.menus)

        logger.debug(
            f"Role permissions resolved: role={role_id}, scope={scope.value}, "
            f"strategy={self.strategy.value}, result={result!r}"
        )
        return result


__all__ = ["RolePermissionResolver"]
