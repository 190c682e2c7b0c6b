"""
权限引擎 - 内存存储

基于字典的存储实现，适用于测试、演示和数据量较小的场景。

InMemoryRbacStore 持有全部数据，并通过五个视图对象分别实现各查询接口
（菜单树和部门树的方法同名，不能由同一个对象实现）：
    - store.users: UserLookup
    - store.roles: RoleLookup
    - store.menus: MenuHierarchy
    - store.depts: DeptHierarchy
    - store.data_scopes: UserDataScopeLookup

每个写操作完成后都会显式通知监听器（通常是 PermissionEngine），由其失效相关缓存。

使用示例:
    store = InMemoryRbacStore()
    store.save_menu(Menu(id=1, menu_type="M", menu_name="系统管理"))
    store.save_menu(Menu(id=2, parent_id=1, perms="system:user:list"))
    store.save_role(Role(id=10, role_key="ops", data_scope="3"))
    store.assign_role_menus(10, [2])
    store.save_user(User(id=7, user_name="alice", dept_id=100))
    store.assign_user_roles(7, [10])

    engine = PermissionEngine.from_store(store)
    engine.has_permission(7, "system:user:list")   # True
"""

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ..enums import DataScope, HierarchyKind, Status
from ..hierarchy import ensure_no_circular_reference
from ..log import get_logger
from ..types import (
    Dept,
    DeptId,
    Menu,
    MenuId,
    Role,
    RoleId,
    User,
    UserDataScope,
    UserId,
)
from .base import MutationListener

logger = get_logger("yrbac.store")


class _UserView:
    def __init__(self, store: "InMemoryRbacStore"):
        self._store = store

    def find_by_id(self, id: UserId) -> Optional[User]:
        return self._store._users.get(id)

    def is_super_admin(self, id: UserId) -> bool:
        if id in self._store.super_admin_ids:
            return True
        user = self._store._users.get(id)
        if user is None:
            return False
        return user.is_admin or user.user_name in self._store.super_admin_names


class _RoleView:
    def __init__(self, store: "InMemoryRbacStore"):
        self._store = store

    def find_by_id(self, id: RoleId) -> Optional[Role]:
        return self._store._roles.get(id)

    def find_roles_of_user(self, user_id: UserId) -> List[Role]:
        with self._store._lock:
            role_ids = sorted(self._store._user_roles.get(user_id, ()))
            return [self._store._roles[r] for r in role_ids if r in self._store._roles]


class _MenuView:
    def __init__(self, store: "InMemoryRbacStore"):
        self._store = store

    def find_by_id(self, id: MenuId) -> Optional[Menu]:
        return self._store._menus.get(id)

    def children_of(self, id: MenuId) -> List[Menu]:
        with self._store._lock:
            children = [
                m for m in self._store._menus.values()
                if m.parent_id == id and not m.del_flag
            ]
        return sorted(children, key=lambda m: (m.order_num, m.id))

    def menus_of_role(self, role_id: RoleId) -> List[Menu]:
        with self._store._lock:
            menu_ids = sorted(self._store._role_menus.get(role_id, ()))
            return [self._store._menus[m] for m in menu_ids if m in self._store._menus]

    def find_all(self) -> List[Menu]:
        with self._store._lock:
            return [m for m in self._store._menus.values() if not m.del_flag]


class _DeptView:
    def __init__(self, store: "InMemoryRbacStore"):
        self._store = store

    def find_by_id(self, id: DeptId) -> Optional[Dept]:
        return self._store._depts.get(id)

    def children_of(self, id: DeptId) -> List[Dept]:
        with self._store._lock:
            children = [
                d for d in self._store._depts.values()
                if d.parent_id == id and not d.del_flag
            ]
        return sorted(children, key=lambda d: (d.order_num, d.id))

    def dept_ids_of_role(self, role_id: RoleId) -> List[DeptId]:
        with self._store._lock:
            return sorted(self._store._role_depts.get(role_id, ()))

    def custom_dept_ids_of_user(self, user_id: UserId) -> List[DeptId]:
        """用户自定义部门列表

        启用中的 CUSTOM 覆盖优先；否则取用户所有有效 CUSTOM 角色关联部门的并集。
        """
        store = self._store
        with store._lock:
            override = store._overrides.get(user_id)
            if override is not None and override.is_enabled and override.scope is DataScope.CUSTOM:
                return list(override.custom_dept_ids)

            dept_ids: Set[DeptId] = set()
            for role_id in store._user_roles.get(user_id, ()):
                role = store._roles.get(role_id)
                if role is None or not role.is_active:
                    continue
                if DataScope.from_code(role.data_scope) is DataScope.CUSTOM:
                    dept_ids.update(store._role_depts.get(role_id, ()))
            return sorted(dept_ids)

    def find_all(self) -> List[Dept]:
        with self._store._lock:
            return [d for d in self._store._depts.values() if not d.del_flag]


class _DataScopeView:
    def __init__(self, store: "InMemoryRbacStore"):
        self._store = store

    def find_data_scope_override(self, user_id: UserId) -> Optional[UserDataScope]:
        return self._store._overrides.get(user_id)


class InMemoryRbacStore:
    """内存 RBAC 存储"""

    def __init__(
        self,
        super_admin_ids: Iterable[UserId] = (),
        super_admin_names: Iterable[str] = ("admin",),
    ):
        self.super_admin_ids = frozenset(super_admin_ids)
        self.super_admin_names = frozenset(super_admin_names)

        self._lock = threading.RLock()
        self._users: Dict[UserId, User] = {}
        self._roles: Dict[RoleId, Role] = {}
        self._menus: Dict[MenuId, Menu] = {}
        self._depts: Dict[DeptId, Dept] = {}
        self._user_roles: Dict[UserId, Set[RoleId]] = {}
        self._role_menus: Dict[RoleId, Set[MenuId]] = {}
        self._role_depts: Dict[RoleId, Set[DeptId]] = {}
        self._overrides: Dict[UserId, UserDataScope] = {}
        self._listeners: List[MutationListener] = []

        self.users = _UserView(self)
        self.roles = _RoleView(self)
        self.menus = _MenuView(self)
        self.depts = _DeptView(self)
        self.data_scopes = _DataScopeView(self)

    @classmethod
    def from_settings(cls, settings) -> "InMemoryRbacStore":
        """根据 DataScopeSettings 中的超级管理员配置创建"""
        return cls(
            super_admin_ids=settings.super_admin_ids,
            super_admin_names=settings.super_admin_names,
        )

    # ==================== 监听器 ====================

    def add_listener(self, listener: MutationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: MutationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, hook: str, *args) -> None:
        for listener in list(self._listeners):
            getattr(listener, hook)(*args)

    # ==================== 用户 ====================

    def save_user(self, user: User) -> User:
        with self._lock:
            self._users[user.id] = user
        self._notify("on_user_changed", user.id)
        return user

    def delete_user(self, user_id: UserId) -> bool:
        """软删除用户，并删除其角色关联"""
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return False
            self._users[user_id] = replace(user, del_flag=True)
            self._user_roles.pop(user_id, None)
        self._notify("on_user_changed", user_id)
        return True

    # ==================== 角色 ====================

    def save_role(self, role: Role) -> Role:
        with self._lock:
            self._roles[role.id] = role
        self._notify("on_role_changed", role.id)
        return role

    def delete_role(self, role_id: RoleId) -> bool:
        """软删除角色，并物理删除其菜单/部门关联"""
        with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                return False
            self._roles[role_id] = replace(role, del_flag=True)
            self._role_menus.pop(role_id, None)
            self._role_depts.pop(role_id, None)
        self._notify("on_role_changed", role_id)
        return True

    def change_role_status(self, role_id: RoleId, status: str) -> bool:
        with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                return False
            self._roles[role_id] = replace(role, status=Status(status).value)
        self._notify("on_role_changed", role_id)
        return True

    # ==================== 菜单 / 部门 ====================

    def save_menu(self, menu: Menu) -> Menu:
        """新增或修改菜单，修改上级时校验不会形成环"""
        with self._lock:
            if menu.id in self._menus:
                ensure_no_circular_reference(self.menus, menu.id, menu.parent_id)
            self._menus[menu.id] = menu
        self._notify("on_hierarchy_changed", HierarchyKind.MENU)
        return menu

    def delete_menu(self, menu_id: MenuId) -> bool:
        with self._lock:
            menu = self._menus.get(menu_id)
            if menu is None:
                return False
            self._menus[menu_id] = replace(menu, del_flag=True)
            for menu_ids in self._role_menus.values():
                menu_ids.discard(menu_id)
        self._notify("on_hierarchy_changed", HierarchyKind.MENU)
        return True

    def save_dept(self, dept: Dept) -> Dept:
        with self._lock:
            if dept.id in self._depts:
                ensure_no_circular_reference(self.depts, dept.id, dept.parent_id)
            self._depts[dept.id] = dept
        self._notify("on_hierarchy_changed", HierarchyKind.DEPT)
        return dept

    def delete_dept(self, dept_id: DeptId) -> bool:
        with self._lock:
            dept = self._depts.get(dept_id)
            if dept is None:
                return False
            self._depts[dept_id] = replace(dept, del_flag=True)
        self._notify("on_hierarchy_changed", HierarchyKind.DEPT)
        return True

    # ==================== 用户-角色 ====================

    def assign_user_roles(self, user_id: UserId, role_ids: Sequence[RoleId]) -> None:
        """全量替换用户的角色"""
        with self._lock:
            self._user_roles[user_id] = set(role_ids)
        self._notify("on_user_roles_changed", user_id)

    def add_user_role(self, user_id: UserId, role_id: RoleId) -> bool:
        with self._lock:
            role_ids = self._user_roles.setdefault(user_id, set())
            if role_id in role_ids:
                return False
            role_ids.add(role_id)
        self._notify("on_user_roles_changed", user_id)
        return True

    def remove_user_role(self, user_id: UserId, role_id: RoleId) -> bool:
        with self._lock:
            role_ids = self._user_roles.get(user_id)
            if not role_ids or role_id not in role_ids:
                return False
            role_ids.discard(role_id)
        self._notify("on_user_roles_changed", user_id)
        return True

    def user_ids_of_role(self, role_id: RoleId) -> List[UserId]:
        with self._lock:
            return sorted(u for u, roles in self._user_roles.items() if role_id in roles)

    # ==================== 角色-菜单 ====================

    def assign_role_menus(self, role_id: RoleId, menu_ids: Sequence[MenuId]) -> None:
        """全量替换角色的菜单"""
        with self._lock:
            self._role_menus[role_id] = set(menu_ids)
        self._notify("on_role_menus_changed", role_id)

    def add_role_menu(self, role_id: RoleId, menu_id: MenuId) -> bool:
        with self._lock:
            menu_ids = self._role_menus.setdefault(role_id, set())
            if menu_id in menu_ids:
                return False
            menu_ids.add(menu_id)
        self._notify("on_role_menus_changed", role_id)
        return True

    def remove_role_menu(self, role_id: RoleId, menu_id: MenuId) -> bool:
        with self._lock:
            menu_ids = self._role_menus.get(role_id)
            if not menu_ids or menu_id not in menu_ids:
                return False
            menu_ids.discard(menu_id)
        self._notify("on_role_menus_changed", role_id)
        return True

    # ==================== 角色-部门 ====================

    def assign_role_depts(self, role_id: RoleId, dept_ids: Sequence[DeptId]) -> None:
        """全量替换角色的自定义数据权限部门"""
        with self._lock:
            self._role_depts[role_id] = set(dept_ids)
        self._notify("on_role_depts_changed", role_id)

    def add_role_dept(self, role_id: RoleId, dept_id: DeptId) -> bool:
        with self._lock:
            dept_ids = self._role_depts.setdefault(role_id, set())
            if dept_id in dept_ids:
                return False
            dept_ids.add(dept_id)
        self._notify("on_role_depts_changed", role_id)
        return True

    def remove_role_dept(self, role_id: RoleId, dept_id: DeptId) -> bool:
        with self._lock:
            dept_ids = self._role_depts.get(role_id)
            if not dept_ids or dept_id not in dept_ids:
                return False
            dept_ids.discard(dept_id)
        self._notify("on_role_depts_changed", role_id)
        return True

    # ==================== 用户数据权限覆盖 ====================

    def set_user_data_scope(
        self,
        user_id: UserId,
        data_scope: DataScope,
        custom_dept_ids: Optional[Iterable[DeptId]] = None,
        remark: str = "",
    ) -> UserDataScope:
        """设置用户数据权限（覆盖按用户类型推导的默认值）"""
        scope = DataScope.from_code(data_scope)
        override = UserDataScope(
            user_id=user_id,
            data_scope=scope.value,
            custom_dept_ids=tuple(sorted(set(custom_dept_ids or ()))) if scope is DataScope.CUSTOM else (),
            remark=remark,
        )
        with self._lock:
            self._overrides[user_id] = override
        logger.info(f"User data scope set: {user_id} -> {scope.name}")
        self._notify("on_user_data_scope_changed", user_id)
        return override

    def enable_user_data_scope(self, user_id: UserId) -> bool:
        return self._change_override_status(user_id, Status.NORMAL)

    def disable_user_data_scope(self, user_id: UserId) -> bool:
        return self._change_override_status(user_id, Status.DISABLED)

    def delete_user_data_scope(self, user_id: UserId) -> bool:
        with self._lock:
            removed = self._overrides.pop(user_id, None) is not None
        if removed:
            self._notify("on_user_data_scope_changed", user_id)
        return removed

    def _change_override_status(self, user_id: UserId, status: Status) -> bool:
        with self._lock:
            override = self._overrides.get(user_id)
            if override is None:
                return False
            self._overrides[user_id] = replace(override, status=status.value)
        self._notify("on_user_data_scope_changed", user_id)
        return True


__all__ = ["InMemoryRbacStore"]
