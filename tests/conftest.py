"""
Pytest 公共配置和 Fixtures

提供测试所需的公共资源：
- 带标准菜单树/部门树的内存存储
- 监听存储写操作的权限引擎
- 全局状态清理（配置加载缓存、FastAPI 依赖中的全局引擎）
"""

import pytest

from yrbac.config import ConfigLoader
from yrbac.dependencies import reset_engine_dependency

from tests.helpers import build_engine, build_store


@pytest.fixture
def store():
    """带标准菜单树和部门树的内存存储"""
    return build_store()


@pytest.fixture
def engine(store):
    """监听 store 写操作的引擎（默认配置）"""
    return build_engine(store)


@pytest.fixture(autouse=True)
def _reset_global_state():
    yield
    ConfigLoader.clear_cache()
    reset_engine_dependency()
