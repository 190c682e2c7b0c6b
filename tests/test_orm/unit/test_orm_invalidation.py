"""ORM 自动失效测试

模型事件在 flush 时记录，最外层提交后调用引擎钩子，回滚则丢弃。
"""

from unittest.mock import MagicMock, call

import pytest

from yrbac import HierarchyKind, PermissionEngine
from yrbac.orm import (
    RbacCacheInvalidator,
    SysDept,
    SysMenu,
    SysRole,
    SysRoleDept,
    SysRoleMenu,
    SysUser,
    SysUserDataScope,
    SysUserRole,
)


@pytest.fixture
def hooks():
    return MagicMock(spec=PermissionEngine)


@pytest.fixture
def invalidator(hooks, seeded_factory):
    """注册在模拟引擎上的失效管理器，测试结束后注销"""
    inv = RbacCacheInvalidator(hooks).register()
    yield inv
    inv.unregister()


# ==================== 注册 ====================


class TestRegistration:
    """测试注册与注销"""
    
    def test_register_idempotent(self, hooks):
        """测试重复注册"""
        inv = RbacCacheInvalidator(hooks)
        try:
            inv.register()
            count = len(inv._listeners)
            inv.register()
            assert len(inv._listeners) == count
            assert inv.is_registered
        finally:
            inv.unregister()
        assert not inv.is_registered
    
    def test_unregistered_no_calls(self, hooks, seeded_factory):
        """测试注销后不再触发"""
        inv = RbacCacheInvalidator(hooks).register()
        inv.unregister()
        with seeded_factory() as session:
            session.add(SysUserRole(user_id=7, role_id=20))
            session.commit()
        hooks.on_user_roles_changed.assert_not_called()


# ==================== 钩子映射 ====================


class TestHookMapping:
    """测试模型到钩子的映射"""
    
    def test_user_role_insert(self, invalidator, hooks, seeded_factory):
        """测试新增用户角色"""
        with seeded_factory() as session:
            session.add(SysUserRole(user_id=7, role_id=20))
            session.commit()
        hooks.on_user_roles_changed.assert_called_once_with(7)
    
    def test_role_menu_delete(self, invalidator, hooks, seeded_factory):
        """测试删除角色菜单"""
        with seeded_factory() as session:
            session.delete(session.get(SysRoleMenu, (10, 2)))
            session.commit()
        hooks.on_role_menus_changed.assert_called_once_with(10)
    
    def test_role_dept_insert(self, invalidator, hooks, seeded_factory):
        """测试新增角色部门"""
        with seeded_factory() as session:
            session.add(SysRoleDept(role_id=20, dept_id=101))
            session.commit()
        hooks.on_role_depts_changed.assert_called_once_with(20)
    
    def test_user_and_role_update(self, invalidator, hooks, seeded_factory):
        """测试修改用户和角色"""
        with seeded_factory() as session:
            session.get(SysUser, 7).dept_id = 102
            session.get(SysRole, 10).status = "1"
            session.commit()
        hooks.on_user_changed.assert_called_once_with(7)
        hooks.on_role_changed.assert_called_once_with(10)
    
    def test_data_scope_override(self, invalidator, hooks, seeded_factory):
        """测试用户数据权限覆盖"""
        with seeded_factory() as session:
            session.add(SysUserDataScope(user_id=7, data_scope="1"))
            session.commit()
        hooks.on_user_data_scope_changed.assert_called_once_with(7)
    
    def test_hierarchy(self, invalidator, hooks, seeded_factory):
        """测试菜单和部门变更"""
        with seeded_factory() as session:
            session.add(SysMenu(id=4, parent_id=2, menu_type="F", perms="system:user:remove"))
            session.add(SysDept(id=104, parent_id=103))
            session.commit()
        hooks.on_hierarchy_changed.assert_has_calls(
            [call(HierarchyKind.MENU), call(HierarchyKind.DEPT)],
            any_order=True,
        )
    
    def test_user_role_moved_to_other_user(self, invalidator, hooks, seeded_factory):
        """测试把用户角色改到另一个用户时，新旧用户都失效"""
        with seeded_factory() as session:
            session.get(SysUserRole, (8, 20)).user_id = 7
            session.commit()
        hooks.on_user_roles_changed.assert_has_calls([call(7), call(8)], any_order=True)
        assert hooks.on_user_roles_changed.call_count == 2

    def test_role_menu_moved_to_other_role(self, invalidator, hooks, seeded_factory):
        """测试把角色菜单改到另一个角色时，新旧角色都失效"""
        with seeded_factory() as session:
            session.get(SysRoleMenu, (10, 2)).role_id = 20
            session.commit()
        hooks.on_role_menus_changed.assert_has_calls([call(10), call(20)], any_order=True)

    def test_update_without_subject_change(self, invalidator, hooks, seeded_factory):
        """测试未修改主体编号时只失效当前主体"""
        with seeded_factory() as session:
            session.add(SysUserDataScope(user_id=7, data_scope="1"))
            session.commit()
        hooks.reset_mock()
        with seeded_factory() as session:
            session.get(SysUserDataScope, 7).data_scope = "3"
            session.commit()
        hooks.on_user_data_scope_changed.assert_called_once_with(7)

    def test_duplicate_hooks_collapsed(self, invalidator, hooks, seeded_factory):
        """测试同一事务内重复的钩子只调用一次"""
        with seeded_factory() as session:
            session.add(SysMenu(id=4, parent_id=2))
            session.add(SysMenu(id=5, parent_id=2))
            session.commit()
        hooks.on_hierarchy_changed.assert_called_once_with(HierarchyKind.MENU)


# ==================== 事务 ====================


class TestTransactions:
    """测试提交与回滚"""
    
    def test_not_called_before_commit(self, invalidator, hooks, seeded_factory):
        """测试 flush 后、提交前不调用"""
        with seeded_factory() as session:
            session.add(SysUserRole(user_id=7, role_id=20))
            session.flush()
            hooks.on_user_roles_changed.assert_not_called()
            session.commit()
        hooks.on_user_roles_changed.assert_called_once_with(7)
    
    def test_rollback_drops_pending(self, invalidator, hooks, seeded_factory):
        """测试回滚后丢弃"""
        with seeded_factory() as session:
            session.add(SysUserRole(user_id=7, role_id=20))
            session.flush()
            session.rollback()
            session.commit()
        hooks.on_user_roles_changed.assert_not_called()
    
    def test_savepoint_rollback_keeps_outer_pending(self, invalidator, hooks, seeded_factory):
        """测试保存点回滚只丢弃保存点内的记录，外层已 flush 的写入提交后仍然失效"""
        with seeded_factory() as session:
            session.add(SysRoleMenu(role_id=10, menu_id=11))
            session.flush()
            savepoint = session.begin_nested()
            session.add(SysUser(id=99, user_name="temp"))
            session.flush()
            savepoint.rollback()
            session.commit()

        with seeded_factory() as session:
            assert session.get(SysRoleMenu, (10, 11)) is not None
            assert session.get(SysUser, 99) is None
        hooks.on_role_menus_changed.assert_called_once_with(10)
        hooks.on_user_changed.assert_not_called()

    def test_savepoint_release_waits_for_commit(self, invalidator, hooks, seeded_factory):
        """测试保存点释放时不调用，最外层提交后统一调用"""
        with seeded_factory() as session:
            session.add(SysRoleMenu(role_id=10, menu_id=11))
            session.flush()
            with session.begin_nested():
                session.add(SysUserRole(user_id=7, role_id=20))
            hooks.on_user_roles_changed.assert_not_called()
            hooks.on_role_menus_changed.assert_not_called()
            session.commit()
        hooks.on_user_roles_changed.assert_called_once_with(7)
        hooks.on_role_menus_changed.assert_called_once_with(10)

    def test_released_savepoint_dropped_with_outer_rollback(self, invalidator, hooks, seeded_factory):
        """测试已释放保存点内的记录随外层回滚一起丢弃"""
        with seeded_factory() as session:
            session.add(SysRoleMenu(role_id=10, menu_id=11))
            session.flush()
            with session.begin_nested():
                session.add(SysUserRole(user_id=7, role_id=20))
            session.rollback()
            session.commit()
        hooks.on_user_roles_changed.assert_not_called()
        hooks.on_role_menus_changed.assert_not_called()

    def test_paused(self, invalidator, hooks, seeded_factory):
        """测试暂停期间的写入不触发，退出后恢复"""
        with invalidator.paused():
            assert not invalidator.is_enabled
            with seeded_factory() as session:
                session.add(SysUserRole(user_id=7, role_id=20))
                session.commit()
        assert invalidator.is_enabled
        hooks.on_user_roles_changed.assert_not_called()
        
        with seeded_factory() as session:
            session.add(SysRoleMenu(role_id=20, menu_id=3))
            session.commit()
        hooks.on_role_menus_changed.assert_called_once_with(20)
    
    def test_paused_keeps_disabled_state(self, invalidator):
        """测试原本禁用时退出后仍为禁用"""
        invalidator.disable()
        with invalidator.paused():
            pass
        assert not invalidator.is_enabled


# ==================== 端到端 ====================


class TestEndToEnd:
    """测试提交后引擎立刻读到新权限"""
    
    def test_grant_visible_after_commit(self, sql_store, seeded_factory):
        """测试授予菜单后权限刷新"""
        engine = PermissionEngine.from_store(sql_store)
        inv = RbacCacheInvalidator(engine).register()
        try:
            assert not engine.has_permission(7, "monitor:online:list")
            
            with seeded_factory() as session:
                session.add(SysRoleMenu(role_id=10, menu_id=11))
                session.commit()
            
            assert engine.has_permission(7, "monitor:online:list")
            
            with seeded_factory() as session:
                session.get(SysUser, 7).status = "1"
                session.commit()
            
            assert not engine.has_permission(7, "system:user:list")
        finally:
            inv.unregister()
