"""
权限引擎 - ORM 自动失效

监听权限相关模型的 SQLAlchemy 事件，在写入提交后调用引擎的失效钩子。

    SysUserRole        -> on_user_roles_changed(user_id)
    SysRoleMenu        -> on_role_menus_changed(role_id)
    SysRoleDept        -> on_role_depts_changed(role_id)
    SysUserDataScope   -> on_user_data_scope_changed(user_id)
    SysUser            -> on_user_changed(id)
    SysRole            -> on_role_changed(id)
    SysMenu            -> on_hierarchy_changed(MENU)
    SysDept            -> on_hierarchy_changed(DEPT)

模型事件在 flush 时触发，此时数据尚未提交；钩子先记录在会话上，最外层
事务提交后再统一调用。保存点（begin_nested）回滚只丢弃在该保存点内记录
的钩子，保存点释放不会触发调用；最外层事务回滚或结束时清空全部记录。
不属于任何会话的对象立即调用钩子。

修改关联行的主体编号（例如把一条用户角色从用户 7 改到用户 8）时，
新旧两个主体都会失效。

注意: 批量 update() / delete() 语句不会触发模型事件，需要自行调用钩子。

使用示例:
    invalidator = RbacCacheInvalidator(engine)
    invalidator.register()

    # 批量导入时临时关闭，完成后整体刷新
    with invalidator.paused():
        import_menus(session)
    engine.evict_all()
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session, SessionTransaction, object_session

from ..enums import HierarchyKind
from ..log import get_logger
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

logger = get_logger("yrbac.store.invalidation")

MODEL_EVENTS = ("after_insert", "after_update", "after_delete")

# 会话 info 中待执行钩子的键，值为 [(钩子名, 参数, 记录时所在的保存点)]
_PENDING_KEY = "yrbac_pending_hooks"

# 模型 -> (钩子名, 主体编号列, 固定参数)
HOOK_MAP: Dict[Type, Tuple[str, Optional[str], tuple]] = {
    SysUserRole: ("on_user_roles_changed", "user_id", ()),
    SysRoleMenu: ("on_role_menus_changed", "role_id", ()),
    SysRoleDept: ("on_role_depts_changed", "role_id", ()),
    SysUserDataScope: ("on_user_data_scope_changed", "user_id", ()),
    SysUser: ("on_user_changed", "id", ()),
    SysRole: ("on_role_changed", "id", ()),
    SysMenu: ("on_hierarchy_changed", None, (HierarchyKind.MENU,)),
    SysDept: ("on_hierarchy_changed", None, (HierarchyKind.DEPT,)),
}


def hook_arguments(target: Any, column: Optional[str], fixed: tuple, event_name: str) -> List[tuple]:
    """计算一次模型变更对应的钩子参数

    更新时除当前主体编号外，还包括本次 flush 中被替换掉的旧编号。
    """
    if column is None:
        return [fixed]

    subject_ids = [getattr(target, column)]
    if event_name == "after_update":
        history = inspect(target).attrs[column].history
        for old_id in history.deleted or ():
            if old_id is not None and old_id not in subject_ids:
                subject_ids.append(old_id)
    return [(subject_id,) for subject_id in subject_ids if subject_id is not None]


def _opened_within(transaction: Optional[SessionTransaction], boundary: SessionTransaction) -> bool:
    """transaction 是否就是 boundary 或嵌套在它里面"""
    while transaction is not None:
        if transaction is boundary:
            return True
        transaction = transaction.parent
    return False


class RbacCacheInvalidator:
    """权限缓存自动失效管理器

    Args:
        engine: 提供失效钩子的对象，通常是 PermissionEngine
    """

    def __init__(self, engine: Any):
        self.engine = engine
        self._lock = threading.RLock()
        self._enabled = True
        self._listeners: List[Tuple[Any, str, Callable]] = []

    # ==================== 注册 ====================

    def register(self) -> "RbacCacheInvalidator":
        """注册全部模型事件与会话事务事件，重复调用无副作用"""
        with self._lock:
            if self._listeners:
                return self

            for model, (hook, column, fixed) in HOOK_MAP.items():
                for event_name in MODEL_EVENTS:
                    handler = self._create_handler(model, hook, column, fixed, event_name)
                    event.listen(model, event_name, handler, propagate=True)
                    self._listeners.append((model, event_name, handler))

            self._add_session_listener("after_commit", self._on_commit)
            self._add_session_listener("after_soft_rollback", self._on_rollback)
            self._add_session_listener("after_transaction_end", self._on_transaction_end)

            logger.debug(f"Registered RBAC cache invalidation for {len(HOOK_MAP)} models")
        return self

    def unregister(self) -> None:
        """移除已注册的全部事件监听"""
        with self._lock:
            for target, event_name, handler in self._listeners:
                event.remove(target, event_name, handler)
            self._listeners.clear()
            logger.debug("RBAC cache invalidation unregistered")

    @property
    def is_registered(self) -> bool:
        return bool(self._listeners)

    def _add_session_listener(self, event_name: str, handler: Callable) -> None:
        event.listen(Session, event_name, handler)
        self._listeners.append((Session, event_name, handler))

    # ==================== 事件处理 ====================

    def _create_handler(self, model: Type, hook: str, column: Optional[str], fixed: tuple, event_name: str):
        def handler(mapper, connection, target):
            if not self._enabled:
                return
            session = object_session(target)
            for args in hook_arguments(target, column, fixed, event_name):
                if session is None:
                    self._call(hook, args)
                    continue
                savepoint = session.get_nested_transaction()
                pending = session.info.setdefault(_PENDING_KEY, [])
                if (hook, args, savepoint) not in pending:
                    pending.append((hook, args, savepoint))
                logger.debug(f"Queued {hook}{args} on {model.__name__} change")

        return handler

    def _on_commit(self, session: Session) -> None:
        # 保存点释放同样会触发 after_commit，只在最外层提交时调用
        if session.in_nested_transaction():
            return
        pending = session.info.pop(_PENDING_KEY, None)
        if not pending or not self._enabled:
            return
        called = set()
        for hook, args, _ in pending:
            if (hook, args) in called:
                continue
            called.add((hook, args))
            self._call(hook, args)

    def _on_rollback(self, session: Session, previous_transaction: SessionTransaction) -> None:
        pending = session.info.get(_PENDING_KEY)
        if not pending:
            return
        if previous_transaction.parent is None:
            session.info.pop(_PENDING_KEY, None)
            logger.debug(f"Dropped {len(pending)} pending invalidations on rollback")
            return

        kept = [
            entry for entry in pending
            if not _opened_within(entry[2], previous_transaction)
        ]
        if len(kept) != len(pending):
            session.info[_PENDING_KEY] = kept
            logger.debug(
                f"Dropped {len(pending) - len(kept)} pending invalidations on savepoint rollback"
            )

    def _on_transaction_end(self, session: Session, transaction: SessionTransaction) -> None:
        if transaction.parent is None:
            session.info.pop(_PENDING_KEY, None)

    def _call(self, hook: str, args: tuple) -> None:
        getattr(self.engine, hook)(*args)
        logger.debug(f"Auto-invalidated: {hook}{args}")

    # ==================== 开关 ====================

    def disable(self) -> None:
        """临时禁用自动失效"""
        self._enabled = False
        logger.debug("RBAC cache auto-invalidation disabled")

    def enable(self) -> None:
        """启用自动失效"""
        self._enabled = True
        logger.debug("RBAC cache auto-invalidation enabled")

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @contextmanager
    def paused(self) -> Iterator["RbacCacheInvalidator"]:
        """在代码块内禁用自动失效，退出时恢复原状态"""
        was_enabled = self._enabled
        self.disable()
        try:
            yield self
        finally:
            if was_enabled:
                self.enable()


__all__ = [
    "RbacCacheInvalidator",
    "HOOK_MAP",
    "MODEL_EVENTS",
    "hook_arguments",
]
