"""
权限引擎 - ORM 模型

SQLAlchemy 2.0 声明式模型，对应以下表:
    sys_user / sys_role / sys_menu / sys_dept           主体与层级
    sys_user_role / sys_role_menu / sys_role_dept       关联关系
    sys_user_data_scope                                 用户级数据权限覆盖

每个模型提供 to_record()，转换为引擎使用的只读数据类，会话关闭后仍可安全使用。

使用示例:
    from sqlalchemy import create_engine
    from yrbac.orm import RbacBase

    engine = create_engine("sqlite:///./rbac.db")
    RbacBase.metadata.create_all(engine)
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..enums import DataScope, MenuType, Status
from ..types import (
    ROOT_PARENT_ID,
    Dept,
    Menu,
    Role,
    User,
    UserDataScope,
    parse_dept_ids,
)


class RbacBase(DeclarativeBase):
    """权限表的声明式基类"""


# ==================== 主体 ====================

class SysUser(RbacBase):
    __tablename__ = "sys_user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="用户ID")
    user_name: Mapped[str] = mapped_column(String(64), default="", comment="用户名")
    dept_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True, comment="所属部门ID")
    user_type: Mapped[str] = mapped_column(String(32), default="", comment="用户类型（manager / leader / ...）")
    status: Mapped[str] = mapped_column(String(1), default=Status.NORMAL.value, comment="状态（0正常 1停用）")
    del_flag: Mapped[bool] = mapped_column(Boolean, default=False, comment="删除标志")
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, comment="是否超级管理员")

    def to_record(self) -> User:
        return User(
            id=self.id,
            user_name=self.user_name or "",
            dept_id=self.dept_id,
            user_type=self.user_type or "",
            status=self.status or Status.NORMAL.value,
            del_flag=bool(self.del_flag),
            is_admin=bool(self.is_admin),
        )


class SysRole(RbacBase):
    __tablename__ = "sys_role"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="角色ID")
    role_key: Mapped[str] = mapped_column(String(100), default="", index=True, comment="角色权限字符串")
    role_name: Mapped[str] = mapped_column(String(64), default="", comment="角色名称")
    role_sort: Mapped[int] = mapped_column(Integer, default=0, comment="显示顺序")
    data_scope: Mapped[str] = mapped_column(
        String(1),
        default=DataScope.ALL.value,
        comment="数据范围（1全部 2自定义 3本部门 4本部门及以下 5仅本人）",
    )
    status: Mapped[str] = mapped_column(String(1), default=Status.NORMAL.value, comment="状态（0正常 1停用）")
    del_flag: Mapped[bool] = mapped_column(Boolean, default=False, comment="删除标志")
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, comment="父角色ID")

    def to_record(self) -> Role:
        return Role(
            id=self.id,
            role_key=self.role_key or "",
            role_name=self.role_name or "",
            role_sort=self.role_sort or 0,
            data_scope=self.data_scope or DataScope.ALL.value,
            status=self.status or Status.NORMAL.value,
            del_flag=bool(self.del_flag),
            parent_id=self.parent_id,
        )


# ==================== 层级 ====================

class SysMenu(RbacBase):
    __tablename__ = "sys_menu"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="菜单ID")
    parent_id: Mapped[int] = mapped_column(Integer, default=ROOT_PARENT_ID, index=True, comment="父菜单ID（0为根）")
    menu_name: Mapped[str] = mapped_column(String(50), default="", comment="菜单名称")
    menu_type: Mapped[str] = mapped_column(
        String(1),
        default=MenuType.MENU.value,
        comment="菜单类型（M目录 C菜单 F按钮）",
    )
    perms: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, comment="权限标识")
    order_num: Mapped[int] = mapped_column(Integer, default=0, comment="显示顺序")
    visible: Mapped[bool] = mapped_column(Boolean, default=True, comment="是否显示")
    status: Mapped[str] = mapped_column(String(1), default=Status.NORMAL.value, comment="状态（0正常 1停用）")
    del_flag: Mapped[bool] = mapped_column(Boolean, default=False, comment="删除标志")

    def to_record(self) -> Menu:
        return Menu(
            id=self.id,
            parent_id=self.parent_id if self.parent_id is not None else ROOT_PARENT_ID,
            menu_type=self.menu_type or MenuType.MENU.value,
            perms=self.perms,
            status=self.status or Status.NORMAL.value,
            visible=True if self.visible is None else bool(self.visible),
            del_flag=bool(self.del_flag),
            menu_name=self.menu_name or "",
            order_num=self.order_num or 0,
        )


class SysDept(RbacBase):
    __tablename__ = "sys_dept"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="部门ID")
    parent_id: Mapped[int] = mapped_column(Integer, default=ROOT_PARENT_ID, index=True, comment="父部门ID（0为根）")
    dept_name: Mapped[str] = mapped_column(String(50), default="", comment="部门名称")
    order_num: Mapped[int] = mapped_column(Integer, default=0, comment="显示顺序")
    status: Mapped[str] = mapped_column(String(1), default=Status.NORMAL.value, comment="状态（0正常 1停用）")
    del_flag: Mapped[bool] = mapped_column(Boolean, default=False, comment="删除标志")

    def to_record(self) -> Dept:
        return Dept(
            id=self.id,
            parent_id=self.parent_id if self.parent_id is not None else ROOT_PARENT_ID,
            status=self.status or Status.NORMAL.value,
            del_flag=bool(self.del_flag),
            dept_name=self.dept_name or "",
            order_num=self.order_num or 0,
        )


# ==================== 关联 ====================

class SysUserRole(RbacBase):
    __tablename__ = "sys_user_role"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="用户ID")
    role_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True, comment="角色ID")


class SysRoleMenu(RbacBase):
    __tablename__ = "sys_role_menu"

    role_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="角色ID")
    menu_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="菜单ID")


class SysRoleDept(RbacBase):
    __tablename__ = "sys_role_dept"

    role_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="角色ID")
    dept_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="部门ID")


class SysUserDataScope(RbacBase):
    """用户级数据权限覆盖，自定义部门以逗号分隔存储"""
    __tablename__ = "sys_user_data_scope"

    user_id: Mapped[int] = mapped_column(Integer, primary_key=True, comment="用户ID")
    data_scope: Mapped[str] = mapped_column(String(1), default=DataScope.SELF.value, comment="数据范围")
    custom_dept_ids: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True, comment="自定义部门ID（逗号分隔）")
    status: Mapped[str] = mapped_column(String(1), default=Status.NORMAL.value, comment="状态（0启用 1停用）")
    remark: Mapped[Optional[str]] = mapped_column(String(500), nullable=True, comment="备注")

    def to_record(self) -> UserDataScope:
        return UserDataScope(
            user_id=self.user_id,
            data_scope=self.data_scope or DataScope.SELF.value,
            custom_dept_ids=tuple(parse_dept_ids(self.custom_dept_ids)),
            status=self.status or Status.NORMAL.value,
            remark=self.remark or "",
        )


__all__ = [
    "RbacBase",
    "SysUser",
    "SysRole",
    "SysMenu",
    "SysDept",
    "SysUserRole",
    "SysRoleMenu",
    "SysRoleDept",
    "SysUserDataScope",
]
