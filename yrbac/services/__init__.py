"""
权限引擎 - 服务层

提供角色权限解析、用户权限聚合、数据范围解析以及组合它们的引擎门面。
"""

from .role_resolver import RolePermissionResolver
from .aggregator import PermissionAggregator
from .data_scope import (
    ScopeRule,
    UserTypeScopeRule,
    RoleScopeRule,
    build_scope_rules,
    DataScopeResolver,
)
from .engine import PermissionEngine

__all__ = [
    "RolePermissionResolver",
    "PermissionAggregator",
    "ScopeRule",
    "UserTypeScopeRule",
    "RoleScopeRule",
    "build_scope_rules",
    "DataScopeResolver",
    "PermissionEngine",
]
