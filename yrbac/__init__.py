"""
yrbac 权限解析引擎

基于 RBAC 的权限解析框架，支持：
- 菜单树继承（ADDITIVE / OVERRIDE / INTERSECTION）
- 多角色权限合并（UNION / INTERSECTION / PRIORITY）
- 数据范围（全部 / 自定义 / 本部门 / 本部门及以下 / 仅本人）
- 带显式失效钩子的权限缓存
- FastAPI 依赖注入

快速开始:
=========

1. 准备数据（内存存储，或使用 yrbac.orm.SqlAlchemyRbacStore）:

    from yrbac import InMemoryRbacStore, PermissionEngine, Menu, Role, User

    store = InMemoryRbacStore()
    store.save_menu(Menu(id=1, menu_type="M", menu_name="系统管理"))
    store.save_menu(Menu(id=2, parent_id=1, perms="system:user:list"))
    store.save_role(Role(id=10, role_key="ops", data_scope="3"))
    store.assign_role_menus(10, [2])
    store.save_user(User(id=7, user_name="alice", dept_id=100))
    store.assign_user_roles(7, [10])

2. 创建引擎:

    from yrbac import load_settings

    engine = PermissionEngine.from_store(store, settings=load_settings("config/rbac.yaml"))

3. 权限与数据范围判断:

    engine.has_permission(7, "system:user:list")      # True
    engine.has_menu_permission(7, 1)                  # True，父菜单随子菜单授予
    engine.accessible_dept_ids(7)                     # frozenset({100})

4. 在路由中使用权限检查:

    from fastapi import Depends
    from yrbac import init_engine_dependency, require_permission

    init_engine_dependency(engine)

    @app.get("/users")
    async def list_users(user_id: int = Depends(require_permission("system:user:list"))):
        ...

5. 写操作之后失效缓存:

    engine.on_role_menus_changed(10)
    engine.on_hierarchy_changed(HierarchyKind.DEPT)
"""

# 版本
__version__ = "0.1.0"

# 枚举
from .enums import (
    DataScope,
    DATA_SCOPE_BREADTH,
    MenuType,
    Status,
    InheritanceStrategy,
    MergeStrategy,
    PermissionScope,
    HierarchyKind,
    data_scope_label,
    menu_type_label,
    status_label,
)

# 类型与领域记录
from .types import (
    UserId,
    RoleId,
    MenuId,
    DeptId,
    PermissionCode,
    ROOT_PARENT_ID,
    User,
    Role,
    Menu,
    Dept,
    UserDataScope,
    parse_dept_ids,
    join_dept_ids,
)

# 异常
from .exceptions import (
    ErrorCode,
    BusinessException,
    RbacException,
    PermissionDeniedException,
    CircularReferenceException,
    StoreUnavailableException,
)

# 权限集合与层级展开
from .permission_set import PermissionSet
from .hierarchy import (
    ancestors_of,
    descendants_of,
    self_and_descendants,
    validate_no_circular_reference,
    ensure_no_circular_reference,
    apply_inheritance,
    inherit_permissions,
)

# 配置
from .config import (
    RbacSettings,
    CacheSettings,
    InheritanceSettings,
    DataScopeSettings,
    LoggingSettings,
    load_settings,
)

# 缓存
from .cache import PermissionCache, CacheBackend, MemoryBackend, CacheStats

# 存储
from .stores import (
    UserLookup,
    RoleLookup,
    MenuHierarchy,
    DeptHierarchy,
    UserDataScopeLookup,
    InMemoryRbacStore,
)

# 服务
from .services import (
    RolePermissionResolver,
    PermissionAggregator,
    DataScopeResolver,
    ScopeRule,
    UserTypeScopeRule,
    RoleScopeRule,
    PermissionEngine,
)

# FastAPI 依赖与装饰器
from .dependencies import (
    init_engine_dependency,
    get_engine,
    PermissionChecker,
    RoleChecker,
    require_permission,
    require_any_permission,
    require_role,
)
from .decorators import permission_required, role_required

__all__ = [
    "__version__",

    # 枚举
    "DataScope",
    "DATA_SCOPE_BREADTH",
    "MenuType",
    "Status",
    "InheritanceStrategy",
    "MergeStrategy",
    "PermissionScope",
    "HierarchyKind",
    "data_scope_label",
    "menu_type_label",
    "status_label",

    # 类型
    "UserId",
    "RoleId",
    "MenuId",
    "DeptId",
    "PermissionCode",
    "ROOT_PARENT_ID",
    "User",
    "Role",
    "Menu",
    "Dept",
    "UserDataScope",
    "parse_dept_ids",
    "join_dept_ids",

    # 异常
    "ErrorCode",
    "BusinessException",
    "RbacException",
    "PermissionDeniedException",
    "CircularReferenceException",
    "StoreUnavailableException",

    # 权限集合与层级
    "PermissionSet",
    "ancestors_of",
    "descendants_of",
    "self_and_descendants",
    "validate_no_circular_reference",
    "ensure_no_circular_reference",
    "apply_inheritance",
    "inherit_permissions",

    # 配置
    "RbacSettings",
    "CacheSettings",
    "InheritanceSettings",
    "DataScopeSettings",
    "LoggingSettings",
    "load_settings",

    # 缓存
    "PermissionCache",
    "CacheBackend",
    "MemoryBackend",
    "CacheStats",

    # 存储
    "UserLookup",
    "RoleLookup",
    "MenuHierarchy",
    "DeptHierarchy",
    "UserDataScopeLookup",
    "InMemoryRbacStore",

    # 服务
    "RolePermissionResolver",
    "PermissionAggregator",
    "DataScopeResolver",
    "ScopeRule",
    "UserTypeScopeRule",
    "RoleScopeRule",
    "PermissionEngine",

    # FastAPI
    "init_engine_dependency",
    "get_engine",
    "PermissionChecker",
    "RoleChecker",
    "require_permission",
    "require_any_permission",
    "require_role",
    "permission_required",
    "role_required",
]
