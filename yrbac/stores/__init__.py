"""
权限引擎 - 存储

查询接口定义与内存实现。SQLAlchemy 实现见 yrbac.orm。
"""

from .base import (
    UserLookup,
    RoleLookup,
    MenuHierarchy,
    DeptHierarchy,
    UserDataScopeLookup,
    MutationListener,
)
from .memory import InMemoryRbacStore

__all__ = [
    "UserLookup",
    "RoleLookup",
    "MenuHierarchy",
    "DeptHierarchy",
    "UserDataScopeLookup",
    "MutationListener",
    "InMemoryRbacStore",
]
