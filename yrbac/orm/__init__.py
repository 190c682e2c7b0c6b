"""
权限引擎 - SQLAlchemy 集成

提供权限表模型、基于会话工厂的存储实现以及模型事件驱动的缓存失效。
"""

from .models import (
    RbacBase,
    SysUser,
    SysRole,
    SysMenu,
    SysDept,
    SysUserRole,
    SysRoleMenu,
    SysRoleDept,
    SysUserDataScope,
)
from .store import SqlAlchemyRbacStore
from .invalidation import RbacCacheInvalidator

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
    "SqlAlchemyRbacStore",
    "RbacCacheInvalidator",
]
