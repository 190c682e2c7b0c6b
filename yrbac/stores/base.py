"""
权限引擎 - 协作存储接口

引擎只通过下面几个窄接口读取数据，持久化方式由实现方决定。
查询失败时实现方应抛出 StoreUnavailableException，而不是返回空结果。
"""

from typing import List, Optional, Protocol, runtime_checkable

from ..types import Dept, DeptId, Menu, MenuId, Role, RoleId, User, UserDataScope, UserId


@runtime_checkable
class UserLookup(Protocol):
    """用户查询"""

    def find_by_id(self, id: UserId) -> Optional[User]:
        ...

    def is_super_admin(self, id: UserId) -> bool:
        ...


@runtime_checkable
class RoleLookup(Protocol):
    """角色查询"""

    def find_by_id(self, id: RoleId) -> Optional[Role]:
        ...

    def find_roles_of_user(self, user_id: UserId) -> List[Role]:
        """用户已分配的角色（不做状态过滤，由引擎过滤）"""
        ...


@runtime_checkable
class MenuHierarchy(Protocol):
    """菜单树查询"""

    def find_by_id(self, id: MenuId) -> Optional[Menu]:
        ...

    def children_of(self, id: MenuId) -> List[Menu]:
        """直接子菜单（不含已删除）"""
        ...

    def menus_of_role(self, role_id: RoleId) -> List[Menu]:
        """角色关联的菜单（不做状态过滤，由引擎过滤）"""
        ...

    def find_all(self) -> List[Menu]:
        ...


@runtime_checkable
class DeptHierarchy(Protocol):
    """部门树查询"""

    def find_by_id(self, id: DeptId) -> Optional[Dept]:
        ...

    def children_of(self, id: DeptId) -> List[Dept]:
        """直接下级部门（不含已删除）"""
        ...

    def dept_ids_of_role(self, role_id: RoleId) -> List[DeptId]:
        """角色自定义数据权限关联的部门"""
        ...

    def custom_dept_ids_of_user(self, user_id: UserId) -> List[DeptId]:
        """用户的自定义数据权限部门列表"""
        ...

    def find_all(self) -> List[Dept]:
        ...


@runtime_checkable
class UserDataScopeLookup(Protocol):
    """用户级数据权限覆盖查询"""

    def find_data_scope_override(self, user_id: UserId) -> Optional[UserDataScope]:
        ...


class MutationListener(Protocol):
    """存储写操作后的通知接口（PermissionEngine 实现）"""

    def on_user_roles_changed(self, user_id: UserId) -> None:
        ...

    def on_role_menus_changed(self, role_id: RoleId) -> None:
        ...

    def on_role_depts_changed(self, role_id: RoleId) -> None:
        ...

    def on_hierarchy_changed(self, kind=None) -> None:
        ...

    def on_user_data_scope_changed(self, user_id: UserId) -> None:
        ...


__all__ = [
    "UserLookup",
    "RoleLookup",
    "MenuHierarchy",
    "DeptHierarchy",
    "UserDataScopeLookup",
    "MutationListener",
]
