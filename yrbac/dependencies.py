"""
权限引擎 - FastAPI 依赖注入

提供用于 FastAPI 路由的权限检查依赖。引擎本身与 Web 框架无关，这里只做
薄薄一层粘合：取当前用户编号、调用引擎、把结果转换为 HTTP 状态码。

    未认证（取不到用户编号）    -> 401
    权限不足                    -> 403
    权限存储暂时不可用          -> 503

使用示例:
    from fastapi import FastAPI, Depends
    from yrbac import PermissionEngine, InMemoryRbacStore
    from yrbac.dependencies import init_engine_dependency, require_permission

    app = FastAPI()
    init_engine_dependency(PermissionEngine.from_store(store))

    @app.get("/users")
    async def list_users(user_id: int = Depends(require_permission("system:user:list"))):
        return {"users": [...]}

    # 默认从 request.state.user_id（或 request.state.user.id）取当前用户，
    # 也可以传入自己的获取函数（同步或异步均可）
    def current_user_id(request: Request) -> Optional[int]:
        return decode_token(request.headers.get("Authorization"))

    @app.delete("/users/{id}")
    async def delete_user(
        id: int,
        user_id: int = Depends(require_permission("system:user:remove", get_user_id=current_user_id)),
    ):
        ...
"""

import inspect
from typing import Any, Callable, List, Optional

from fastapi import HTTPException, Request, status

from .exceptions import StoreUnavailableException
from .log import get_logger
from .services import PermissionEngine
from .types import PermissionCode, UserId

logger = get_logger("yrbac.dependencies")

# 全局权限引擎实例
_engine: Optional[PermissionEngine] = None


def init_engine_dependency(engine: PermissionEngine) -> PermissionEngine:
    """初始化权限依赖

    在应用启动时调用，设置全局权限引擎。
    """
    global _engine
    _engine = engine
    logger.info("Permission engine dependency initialized")
    return engine


def reset_engine_dependency() -> None:
    """清除全局权限引擎（测试用）"""
    global _engine
    _engine = None


def get_engine() -> PermissionEngine:
    """获取全局权限引擎

    Raises:
        RuntimeError: 如果引擎未初始化
    """
    if _engine is None:
        raise RuntimeError(
            "Permission engine not initialized. "
            "Call init_engine_dependency() first."
        )
    return _engine


def default_user_id_getter(request: Request) -> Optional[UserId]:
    """从 request.state 读取当前用户编号

    依次尝试 request.state.user_id、request.state.user.id、request.state.user.user_id，
    通常由认证中间件写入。
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is not None:
        return user_id
    user = getattr(request.state, "user", None)
    if user is None:
        return None
    return getattr(user, "id", None) or getattr(user, "user_id", None)


async def _resolve_user_id(getter: Callable, request: Request) -> Optional[UserId]:
    try:
        user_id = getter(request)
        if inspect.isawaitable(user_id):
            user_id = await user_id
    except HTTPException:
        raise
    except Exception as e:
        logger.warning(f"Failed to resolve current user: {e}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="未认证") from e

    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="未认证")
    return user_id


def _service_unavailable(e: StoreUnavailableException) -> HTTPException:
    logger.error(f"Permission check unavailable: {e.message}")
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


class PermissionChecker:
    """权限检查器

    用于 FastAPI 依赖注入的权限检查类，通过检查后返回当前用户编号。

    使用示例:
        @app.get("/users")
        async def list_users(user_id: int = Depends(PermissionChecker(["system:user:list"]))):
            ...
    """

    def __init__(
        self,
        permissions: List[PermissionCode],
        require_all: bool = True,
        get_user_id: Optional[Callable[[Request], Any]] = None,
        engine: Optional[PermissionEngine] = None,
    ):
        """
        Args:
            permissions: 需要的权限列表
            require_all: True 需要全部权限，False 只需任一
            get_user_id: 从请求获取当前用户编号的函数，默认 default_user_id_getter
            engine: 权限引擎，默认使用 init_engine_dependency 设置的全局实例
        """
        self.permissions = list(permissions)
        self.require_all = require_all
        self.get_user_id = get_user_id or default_user_id_getter
        self.engine = engine

    async def __call__(self, request: Request) -> UserId:
        """执行权限检查

        Raises:
            HTTPException: 401 未认证 / 403 权限不足 / 503 存储不可用
        """
        user_id = await _resolve_user_id(self.get_user_id, request)
        engine = self.engine or get_engine()

        try:
            if self.require_all:
                allowed = engine.has_all_permissions(user_id, self.permissions)
            else:
                allowed = engine.has_any_permission(user_id, self.permissions)
        except StoreUnavailableException as e:
            raise _service_unavailable(e) from e

        if not allowed:
            logger.warning(
                f"Permission denied: user {user_id} requires {self.permissions} "
                f"(all={self.require_all})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"权限不足，需要: {', '.join(self.permissions)}",
            )
        return user_id


class RoleChecker:
    """角色检查器，按角色标识（role_key）判断"""

    def __init__(
        self,
        roles: List[str],
        require_all: bool = False,
        get_user_id: Optional[Callable[[Request], Any]] = None,
        engine: Optional[PermissionEngine] = None,
    ):
        self.roles = list(roles)
        self.require_all = require_all
        self.get_user_id = get_user_id or default_user_id_getter
        self.engine = engine

    async def __call__(self, request: Request) -> UserId:
        user_id = await _resolve_user_id(self.get_user_id, request)
        engine = self.engine or get_engine()

        try:
            role_keys = engine.get_user_role_keys(user_id)
        except StoreUnavailableException as e:
            raise _service_unavailable(e) from e

        check = all if self.require_all else any
        if not self.roles or not check(r in role_keys for r in self.roles):
            logger.warning(f"Role check failed: user {user_id} requires {self.roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"角色不足，需要: {', '.join(self.roles)}",
            )
        return user_id


def require_permission(
    *permissions: PermissionCode,
    require_all: bool = True,
    get_user_id: Optional[Callable[[Request], Any]] = None,
) -> PermissionChecker:
    """创建权限检查依赖

    使用示例:
        @app.put("/users/{id}")
        async def update_user(
            id: int,
            user_id: int = Depends(require_permission("system:user:edit", "system:user:query")),
        ):
            ...
    """
    return PermissionChecker(
        permissions=list(permissions),
        require_all=require_all,
        get_user_id=get_user_id,
    )


def require_any_permission(
    *permissions: PermissionCode,
    get_user_id: Optional[Callable[[Request], Any]] = None,
) -> PermissionChecker:
    """创建任一权限检查依赖"""
    return PermissionChecker(
        permissions=list(permissions),
        require_all=False,
        get_user_id=get_user_id,
    )


def require_role(
    *roles: str,
    require_all: bool = False,
    get_user_id: Optional[Callable[[Request], Any]] = None,
) -> RoleChecker:
    """创建角色检查依赖（默认只需任一角色）"""
    return RoleChecker(roles=list(roles), require_all=require_all, get_user_id=get_user_id)


__all__ = [
    # 初始化
    "init_engine_dependency",
    "reset_engine_dependency",
    "get_engine",
    "default_user_id_getter",

    # 检查器类
    "PermissionChecker",
    "RoleChecker",

    # 便捷函数
    "require_permission",
    "require_any_permission",
    "require_role",
]
