"""
权限引擎 - SQLAlchemy 存储

基于会话工厂的查询接口实现，结构与 InMemoryRbacStore 一致，通过视图对象
分别提供 users / roles / menus / depts / data_scopes。

每次查询使用独立会话，查询结果在会话内转换为只读数据类。数据库访问失败
（任何 SQLAlchemyError）统一转换为 StoreUnavailableException，引擎不会把它
当作"无权限"。

写操作由业务代码直接通过 ORM 完成，缓存失效由 RbacCacheInvalidator
监听模型事件触发，或由业务代码显式调用引擎钩子。

使用示例:
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from yrbac import PermissionEngine
    from yrbac.orm import RbacBase, SqlAlchemyRbacStore, RbacCacheInvalidator

    db = create_engine("sqlite:///./rbac.db")
    RbacBase.metadata.create_all(db)

    store = SqlAlchemyRbacStore(sessionmaker(bind=db))
    engine = PermissionEngine.from_store(store)
    RbacCacheInvalidator(engine).register()
"""

from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..enums import DataScope
from ..exceptions import StoreUnavailableException
from ..log import get_logger
from ..types import Dept, DeptId, Menu, MenuId, Role, RoleId, User, UserDataScope, UserId
from .models import (
    SysDept,
    SysMenu,
    SysRole,
    SysRoleDept,
    SysRoleMenu,
    SysUser,
    SysUserDataScope,
    SysUserRole,
)

logger = get_logger("yrbac.store")


class _View:
    def __init__(self, store: "SqlAlchemyRbacStore"):
        self._store = store

    def _session(self, operation: str):
        return self._store.session(operation)


class _UserView(_View):
    def find_by_id(self, id: UserId) -> Optional[User]:
        with self._session("user.find_by_id") as session:
            row = session.get(SysUser, id)
            return row.to_record() if row is not None else None

    def is_super_admin(self, id: UserId) -> bool:
        if id in self._store.super_admin_ids:
            return True
        user = self.find_by_id(id)
        if user is None:
            return False
        return user.is_admin or user.user_name in self._store.super_admin_names


class _RoleView(_View):
    def find_by_id(self, id: RoleId) -> Optional[Role]:
        with self._session("role.find_by_id") as session:
            row = session.get(SysRole, id)
            return row.to_record() if row is not None else None

    def find_roles_of_user(self, user_id: UserId) -> List[Role]:
        stmt = (
            select(SysRole)
            .join(SysUserRole, SysUserRole.role_id == SysRole.id)
            .where(SysUserRole.user_id == user_id)
            .order_by(SysRole.id)
        )
        with self._session("role.find_roles_of_user") as session:
            return [row.to_record() for row in session.scalars(stmt)]


class _MenuView(_View):
    def find_by_id(self, id: MenuId) -> Optional[Menu]:
        with self._session("menu.find_by_id") as session:
            row = session.get(SysMenu, id)
            return row.to_record() if row is not None else None

    def children_of(self, id: MenuId) -> List[Menu]:
        stmt = (
            select(SysMenu)
            .where(SysMenu.parent_id == id, SysMenu.del_flag.is_(False))
            .order_by(SysMenu.order_num, SysMenu.id)
        )
        with self._session("menu.children_of") as session:
            return [row.to_record() for row in session.scalars(stmt)]

    def menus_of_role(self, role_id: RoleId) -> List[Menu]:
        stmt = (
            select(SysMenu)
            .join(SysRoleMenu, SysRoleMenu.menu_id == SysMenu.id)
            .where(SysRoleMenu.role_id == role_id)
            .order_by(SysMenu.id)
        )
        with self._session("menu.menus_of_role") as session:
            return [row.to_record() for row in session.scalars(stmt)]

    def find_all(self) -> List[Menu]:
        stmt = select(SysMenu).where(SysMenu.del_flag.is_(False)).order_by(SysMenu.id)
        with self._session("menu.find_all") as session:
            return [row.to_record() for row in session.scalars(stmt)]


class _DeptView(_View):
    def find_by_id(self, id: DeptId) -> Optional[Dept]:
        with self._session("dept.find_by_id") as session:
            row = session.get(SysDept, id)
            return row.to_record() if row is not None else None

    def children_of(self, id: DeptId) -> List[Dept]:
        stmt = (
            select(SysDept)
            .where(SysDept.parent_id == id, SysDept.del_flag.is_(False))
            .order_by(SysDept.order_num, SysDept.id)
        )
        with self._session("dept.children_of") as session:
            return [row.to_record() for row in session.scalars(stmt)]

    def dept_ids_of_role(self, role_id: RoleId) -> List[DeptId]:
        stmt = (
            select(SysRoleDept.dept_id)
            .where(SysRoleDept.role_id == role_id)
            .order_by(SysRoleDept.dept_id)
        )
        with self._session("dept.dept_ids_of_role") as session:
            return list(session.scalars(stmt))

    def custom_dept_ids_of_user(self, user_id: UserId) -> List[DeptId]:
        """用户自定义部门列表

        启用中的 CUSTOM 覆盖优先；否则取用户所有有效 CUSTOM 角色关联部门的并集。
        """
        with self._session("dept.custom_dept_ids_of_user") as session:
            override = session.get(SysUserDataScope, user_id)
            if override is not None:
                record = override.to_record()
                if record.is_enabled and record.scope is DataScope.CUSTOM:
                    return list(record.custom_dept_ids)

            roles = session.scalars(
                select(SysRole)
                .join(SysUserRole, SysUserRole.role_id == SysRole.id)
                .where(SysUserRole.user_id == user_id)
            )
            role_ids = [
                role.id for role in (r.to_record() for r in roles)
                if role.is_active and DataScope.from_code(role.data_scope) is DataScope.CUSTOM
            ]
            if not role_ids:
                return []

            dept_ids: Set[DeptId] = set(session.scalars(
                select(SysRoleDept.dept_id).where(SysRoleDept.role_id.in_(role_ids))
            ))
            return sorted(dept_ids)

    def find_all(self) -> List[Dept]:
        stmt = select(SysDept).where(SysDept.del_flag.is_(False)).order_by(SysDept.id)
        with self._session("dept.find_all") as session:
            return [row.to_record() for row in session.scalars(stmt)]


class _DataScopeView(_View):
    def find_data_scope_override(self, user_id: UserId) -> Optional[UserDataScope]:
        with self._session("data_scope.find_override") as session:
            row = session.get(SysUserDataScope, user_id)
            return row.to_record() if row is not None else None


class SqlAlchemyRbacStore:
    """SQLAlchemy RBAC 存储

    Args:
        session_factory: 返回新 Session 的可调用对象，通常是 sessionmaker
        super_admin_ids: 视为超级管理员的用户编号
        super_admin_names: 视为超级管理员的用户名
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        super_admin_ids: Iterable[UserId] = (),
        super_admin_names: Iterable[str] = ("admin",),
    ):
        self._session_factory = session_factory
        self.super_admin_ids = frozenset(super_admin_ids)
        self.super_admin_names = frozenset(super_admin_names)

        self.users = _UserView(self)
        self.roles = _RoleView(self)
        self.menus = _MenuView(self)
        self.depts = _DeptView(self)
        self.data_scopes = _DataScopeView(self)

    @classmethod
    def from_settings(cls, session_factory: Callable[[], Session], settings) -> "SqlAlchemyRbacStore":
        """根据 DataScopeSettings 中的超级管理员配置创建"""
        return cls(
            session_factory,
            super_admin_ids=settings.super_admin_ids,
            super_admin_names=settings.super_admin_names,
        )

    @contextmanager
    def session(self, operation: str = "query") -> Iterator[Session]:
        """只读查询会话

        Raises:
            StoreUnavailableException: 数据库访问失败
        """
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"RBAC store query failed: {operation}: {e}")
            raise StoreUnavailableException(store="sqlalchemy", operation=operation) from e


__all__ = ["SqlAlchemyRbacStore"]
