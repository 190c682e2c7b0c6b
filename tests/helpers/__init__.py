"""测试辅助工具"""

from .rbac_builders import (
    STANDARD_MENUS,
    STANDARD_DEPTS,
    build_store,
    add_user,
    add_role,
    build_engine,
    DictForest,
)

__all__ = [
    "STANDARD_MENUS",
    "STANDARD_DEPTS",
    "build_store",
    "add_user",
    "add_role",
    "build_engine",
    "DictForest",
]
