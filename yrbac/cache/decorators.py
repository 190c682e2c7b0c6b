"""缓存装饰器模块

cached_result 把解析方法包装成读穿缓存：缓存实例从被装饰对象的 ``cache``
属性注入（为 None 时直接计算），失效调用在各写操作入口显式进行。

使用示例:
    class RolePermissionResolver:
        def __init__(self, ..., cache: Optional[PermissionCache] = None):
            self.cache = cache

        @cached_result(PermissionCache.ROLE_PERMISSIONS)
        def resolve(self, role_id, scope=PermissionScope.ALL):
            ...

    resolver.resolve(5)                    # 缓存键 role:perms:5:ALL
    resolver.resolve.uncached(resolver, 5) # 跳过缓存
"""

import inspect
from functools import wraps
from typing import Any, Callable, TypeVar

F = TypeVar("F", bound=Callable[..., Any])


def cached_result(namespace: str) -> Callable[[F], F]:
    """方法结果缓存装饰器

    缓存键由命名空间加上绑定后的参数值（含默认值）依次拼接而成，
    因此 ``resolve(5)`` 与 ``resolve(5, PermissionScope.ALL)`` 命中同一个键。

    Args:
        namespace: 缓存命名空间，如 "role:perms"
    """
    def decorator(method: F) -> F:
        signature = inspect.signature(method)

        @wraps(method)
        def wrapper(self, *args, **kwargs):
            cache = getattr(self, "cache", None)
            if cache is None:
                return method(self, *args, **kwargs)

            bound = signature.bind(self, *args, **kwargs)
            bound.apply_defaults()
            parts = list(bound.arguments.values())[1:]
            key = cache.make_key(namespace, *parts)
            return cache.get_or_load(key, lambda: method(self, *args, **kwargs))

        wrapper.cache_namespace = namespace
        wrapper.uncached = method
        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["cached_result"]
