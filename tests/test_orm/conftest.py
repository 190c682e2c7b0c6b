"""
ORM 测试公共配置

提供内存 SQLite 数据库（StaticPool 共享同一连接）与预置数据：

    菜单: 1 系统管理 (M) -> 2 用户管理 (C) -> 3 用户新增 (F)
          10 系统监控 (M) -> 11 在线用户 (C)
    部门: 100 -> 101 -> 103, 100 -> 102
    角色: 10 user_admin（菜单 2，本部门）, 20 auditor（菜单 11，自定义部门 102/103）
    用户: 7 alice（研发部，manager，角色 10）, 8 bob（市场部，角色 10/20）, 1 admin
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from yrbac.orm import (
    RbacBase,
    SqlAlchemyRbacStore,
    SysDept,
    SysMenu,
    SysRole,
    SysRoleDept,
    SysRoleMenu,
    SysUser,
    SysUserRole,
)


@pytest.fixture
def memory_engine():
    """内存数据库引擎"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    RbacBase.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(memory_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)


@pytest.fixture
def seeded_factory(session_factory):
    """写入预置数据后的会话工厂"""
    with session_factory() as session:
        session.add_all([
            SysMenu(id=1, parent_id=0, menu_type="M", menu_name="系统管理"),
            SysMenu(id=2, parent_id=1, menu_type="C", perms="system:user:list", menu_name="用户管理"),
            SysMenu(id=3, parent_id=2, menu_type="F", perms="system:user:add", menu_name="用户新增"),
            SysMenu(id=10, parent_id=0, menu_type="M", menu_name="系统监控", order_num=2),
            SysMenu(id=11, parent_id=10, menu_type="C", perms="monitor:online:list", menu_name="在线用户"),
            SysDept(id=100, parent_id=0, dept_name="总公司"),
            SysDept(id=101, parent_id=100, dept_name="研发部", order_num=1),
            SysDept(id=102, parent_id=100, dept_name="市场部", order_num=2),
            SysDept(id=103, parent_id=101, dept_name="后端组"),
            SysRole(id=10, role_key="user_admin", role_name="用户管理员", data_scope="3"),
            SysRole(id=20, role_key="auditor", role_name="审计员", data_scope="2", role_sort=2),
            SysRoleMenu(role_id=10, menu_id=2),
            SysRoleMenu(role_id=20, menu_id=11),
            SysRoleDept(role_id=20, dept_id=102),
            SysRoleDept(role_id=20, dept_id=103),
            SysUser(id=1, user_name="admin"),
            SysUser(id=7, user_name="alice", dept_id=101, user_type="manager"),
            SysUser(id=8, user_name="bob", dept_id=102),
            SysUserRole(user_id=7, role_id=10),
            SysUserRole(user_id=8, role_id=10),
            SysUserRole(user_id=8, role_id=20),
        ])
        session.commit()
    return session_factory


@pytest.fixture
def sql_store(seeded_factory):
    return SqlAlchemyRbacStore(seeded_factory)
