"""
权限引擎 - 装饰器

提供权限检查装饰器，适用于普通函数和方法（非 FastAPI 路由场景）。

使用示例:
    from yrbac.decorators import permission_required, role_required

    @permission_required("system:user:list")
    def list_users(user_id: int):
        ...

    @role_required("ops")
    def restart_job(user_id: int, job_id: int):
        ...
"""

import inspect
from functools import wraps
from typing import Any, Callable, Optional

from .dependencies import get_engine
from .exceptions import ErrorCode, PermissionDeniedException, RbacException
from .log import get_logger
from .services import PermissionEngine
from .types import PermissionCode

logger = get_logger("yrbac.decorators")


def permission_required(
    *permissions: PermissionCode,
    require_all: bool = True,
    user_id_param: str = "user_id",
    raise_exception: bool = True,
    engine: Optional[PermissionEngine] = None,
) -> Callable:
    """权限检查装饰器

    Args:
        *permissions: 需要的权限标识
        require_all: True 需要全部权限，False 只需任一
        user_id_param: 函数参数中表示当前用户编号的参数名
        raise_exception: 无权限时是否抛出异常；为 False 时返回 None
        engine: 权限引擎，默认使用全局实例

    使用示例:
        @permission_required("order:read", user_id_param="operator_id")
        def get_orders(operator_id: int):
            ...

        @permission_required("user:read", "user:list", require_all=False)
        def view_data(user_id: int):
            ...

    注意:
        StoreUnavailableException 不会被转换，原样向上传播。
    """
    codes = list(permissions)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            user_id = _extract_user_id(func, args, kwargs, user_id_param)

            if user_id is None:
                logger.warning(
                    f"Cannot extract user id from {func.__name__}, "
                    f"param '{user_id_param}' not found"
                )
                if raise_exception:
                    raise PermissionDeniedException(
                        message="无法获取用户标识",
                        permission_codes=codes,
                        require_all=require_all,
                    )
                return None

            checker = engine or get_engine()
            if require_all:
                allowed = checker.has_all_permissions(user_id, codes)
            else:
                allowed = checker.has_any_permission(user_id, codes)

            if not allowed:
                logger.warning(
                    f"Permission denied: user {user_id} requires "
                    f"{codes} (all={require_all})"
                )
                if raise_exception:
                    raise PermissionDeniedException(
                        permission_codes=codes,
                        user_id=user_id,
                        require_all=require_all,
                    )
                return None

            return func(*args, **kwargs)

        return wrapper
    return decorator


def role_required(
    *roles: str,
    require_all: bool = False,
    user_id_param: str = "user_id",
    raise_exception: bool = True,
    engine: Optional[PermissionEngine] = None,
) -> Callable:
    """角色检查装饰器，按角色标识（role_key）判断，默认只需任一角色"""
    role_keys = list(roles)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            user_id = _extract_user_id(func, args, kwargs, user_id_param)

            allowed = False
            if user_id is not None and role_keys:
                owned = (engine or get_engine()).get_user_role_keys(user_id)
                check = all if require_all else any
                allowed = check(r in owned for r in role_keys)

            if not allowed:
                logger.warning(
                    f"Role check failed: user {user_id} requires "
                    f"{role_keys} (all={require_all})"
                )
                if raise_exception:
                    raise RbacException(
                        message="角色不足",
                        code=ErrorCode.ROLE_REQUIRED,
                        user_id=user_id,
                        role_keys=role_keys,
                    )
                return None

            return func(*args, **kwargs)

        return wrapper
    return decorator


def _extract_user_id(
    func: Callable,
    args: tuple,
    kwargs: dict,
    param_name: str,
) -> Optional[Any]:
    """从函数参数中提取当前用户编号"""
    if param_name in kwargs:
        return kwargs[param_name]

    params = list(inspect.signature(func).parameters)
    if param_name in params:
        idx = params.index(param_name)
        if idx < len(args):
            return args[idx]

    return None


__all__ = [
    "permission_required",
    "role_required",
]
