"""权限缓存测试

覆盖读穿、代次号保护、按角色/命名空间失效以及失效失败时的降级。
"""

import logging
from unittest.mock import patch

import pytest

from yrbac import PermissionScope
from yrbac.cache import MemoryBackend, PermissionCache
from yrbac.config import CacheSettings

from tests.helpers import add_role, add_user, build_engine


@pytest.fixture
def cache():
    return PermissionCache(maxsize=100, ttl=60)


class TestKeys:
    """测试缓存键"""
    
    def test_make_key(self):
        """测试键拼接"""
        assert PermissionCache.make_key(PermissionCache.USER_PERMISSIONS, 7) == "user:perms:7"
    
    def test_make_key_with_enum(self):
        """测试枚举取值"""
        key = PermissionCache.make_key(PermissionCache.ROLE_PERMISSIONS, 5, PermissionScope.BUTTON_ONLY)
        assert key == "role:perms:5:BUTTON_ONLY"
    
    def test_user_keys(self, cache):
        """测试用户的全部键"""
        assert cache.user_keys(7) == [
            "user:perms:7",
            "user:roles:7",
            "user:scope:7",
            "user:depts:7",
        ]


class TestGetOrLoad:
    """测试读穿缓存"""
    
    def test_loader_called_once(self, cache):
        """测试命中后不再调用加载函数"""
        call_count = 0
        
        def loader():
            nonlocal call_count
            call_count += 1
            return frozenset({1, 2})
        
        assert cache.get_or_load("user:depts:7", loader) == {1, 2}
        assert cache.get_or_load("user:depts:7", loader) == {1, 2}
        assert call_count == 1
    
    def test_none_not_cached(self, cache):
        """测试 None 结果不写入"""
        call_count = 0
        
        def loader():
            nonlocal call_count
            call_count += 1
            return None
        
        cache.get_or_load("k", loader)
        cache.get_or_load("k", loader)
        assert call_count == 2
    
    def test_loader_exception_not_cached(self, cache):
        """测试加载异常向上传播且不缓存"""
        def failing():
            raise RuntimeError("store down")
        
        with pytest.raises(RuntimeError):
            cache.get_or_load("k", failing)
        assert cache.get_or_load("k", lambda: "ok") == "ok"
    
    def test_evicted_while_loading_not_stored(self, cache):
        """测试加载期间发生失效时结果只返回不写入"""
        def loader():
            cache.evict(keys=["user:perms:7"], reason="concurrent write")
            return "stale"
        
        assert cache.get_or_load("user:perms:7", loader) == "stale"
        assert cache.get("user:perms:7") is None
        assert cache.get_cache_info()["skipped_writes"] == 1
    
    def test_load_after_eviction_is_stored(self, cache):
        """测试失效之后开始的加载正常写入"""
        cache.evict(keys=["k"])
        cache.get_or_load("k", lambda: "fresh")
        assert cache.get("k") == "fresh"


class TestEvict:
    """测试失效"""
    
    def test_evict_keys_and_prefixes(self, cache):
        """测试按键和前缀失效"""
        cache.backend.set("user:perms:7", "a")
        cache.backend.set("user:perms:8", "b")
        cache.backend.set("dept:tree:1", "c")
        cache.backend.set("dept:tree:2", "d")
        
        cache.evict(keys=["user:perms:7"], prefixes=["dept:tree:"])
        
        assert cache.get("user:perms:7") is None
        assert cache.get("user:perms:8") == "b"
        assert cache.get("dept:tree:1") is None
    
    def test_evict_bumps_generation(self, cache):
        """测试每次失效递增代次号"""
        before = cache.generation
        cache.evict(keys=["missing"])
        assert cache.generation > before
    
    def test_evict_user(self, cache):
        """测试失效用户的全部命名空间"""
        for key in cache.user_keys(7) + cache.user_keys(8):
            cache.backend.set(key, "v")
        
        cache.evict_user(7)
        
        assert all(cache.get(key) is None for key in cache.user_keys(7))
        assert all(cache.get(key) == "v" for key in cache.user_keys(8))
    
    def test_evict_role_with_member_index(self, cache):
        """测试按角色成员索引精确失效"""
        cache.remember_role_members(7, [10])
        cache.remember_role_members(8, [20])
        for key in ["role:perms:10:ALL", "role:perms:100:ALL", "user:perms:7", "user:perms:8"]:
            cache.backend.set(key, "v")
        
        cache.evict_role(10, user_namespaces=[PermissionCache.USER_PERMISSIONS])
        
        assert cache.get("role:perms:10:ALL") is None
        assert cache.get("user:perms:7") is None
        assert cache.get("role:perms:100:ALL") == "v"
        assert cache.get("user:perms:8") == "v"
    
    def test_evict_user_leaves_role_index(self, cache):
        """测试失效用户时把用户移出角色成员索引，索引不会只增不减"""
        cache.remember_role_members(7, [10, 20])
        cache.remember_role_members(8, [10])

        cache.evict_user(7)

        assert cache.users_of_role(10) == {8}
        assert cache.users_of_role(20) == set()
        assert cache.get_cache_info()["tracked_roles"] == 1

    def test_role_index_rebuilt_after_user_reload(self, store):
        """测试用户重新加载后重新进入索引，角色变更仍能精确失效"""
        add_role(store, 10, menu_ids=[2])
        add_user(store, 7, role_ids=[10])
        engine = build_engine(store)
        assert engine.has_permission(7, "system:user:list")

        engine.cache.evict_user(7)
        assert engine.cache.users_of_role(10) == set()

        assert engine.has_permission(7, "system:user:list")
        assert engine.cache.users_of_role(10) == {7}
        store.assign_role_menus(10, [11])
        assert not engine.has_permission(7, "system:user:list")

    def test_evict_role_without_member_index(self):
        """测试未维护索引时清空命名空间下的全部用户缓存"""
        cache = PermissionCache(track_role_members=False)
        cache.remember_role_members(7, [10])
        assert cache.users_of_role(10) == set()
        for key in ["user:perms:7", "user:perms:8", "user:scope:7"]:
            cache.backend.set(key, "v")
        
        cache.evict_role(10, user_namespaces=[PermissionCache.USER_PERMISSIONS])
        
        assert cache.get("user:perms:7") is None
        assert cache.get("user:perms:8") is None
        assert cache.get("user:scope:7") == "v"
    
    def test_evict_namespaces(self, cache):
        """测试按命名空间失效"""
        cache.backend.set("user:scope:1", "a")
        cache.backend.set("user:depts:1", "b")
        cache.backend.set("user:perms:1", "c")
        
        cache.evict_namespaces(PermissionCache.USER_DATA_SCOPE, PermissionCache.USER_DEPTS)
        
        assert cache.get("user:scope:1") is None
        assert cache.get("user:depts:1") is None
        assert cache.get("user:perms:1") == "c"
    
    def test_evict_all(self, cache):
        """测试全量清除同时清空角色成员索引"""
        cache.remember_role_members(7, [10])
        cache.backend.set("user:perms:7", "v")
        
        cache.evict_all()
        
        assert cache.get("user:perms:7") is None
        assert cache.users_of_role(10) == set()


class TestEvictFailure:
    """测试失效失败时的降级"""
    
    def test_delete_failure_clears_whole_cache(self, cache, caplog):
        """测试删除出错时清空整个缓存"""
        cache.backend.set("user:perms:7", "v")
        cache.backend.set("user:perms:8", "v")
        
        with patch.object(cache.backend, "delete", side_effect=RuntimeError("boom")):
            with caplog.at_level(logging.ERROR, logger="yrbac.cache"):
                cache.evict(keys=["user:perms:7"], reason="test")
        
        assert cache.get("user:perms:8") is None
        assert "clearing whole cache" in caplog.text
    
    def test_clear_failure_propagates(self, cache):
        """测试清空也失败时异常向上传播"""
        with patch.object(cache.backend, "delete_prefix", side_effect=RuntimeError("boom")):
            with patch.object(cache.backend, "clear", side_effect=RuntimeError("still down")):
                with pytest.raises(RuntimeError, match="still down"):
                    cache.evict(prefixes=["user:"])


class TestStats:
    """测试统计信息"""
    
    def test_hits_and_misses(self, cache):
        """测试命中与未命中计数"""
        cache.get_or_load("k", lambda: 1)
        cache.get_or_load("k", lambda: 1)
        
        stats = cache.stats
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5
    
    def test_cache_info(self, cache):
        """测试缓存信息结构"""
        cache.remember_role_members(7, [10, 20])
        info = cache.get_cache_info()
        assert info["tracked_roles"] == 2
        assert info["backend"]["backend"] == "memory"
        assert "stats" in info
    
    def test_stats_disabled(self):
        """测试关闭统计"""
        cache = PermissionCache(enable_stats=False)
        cache.get("k")
        assert cache.stats is None
        assert "stats" not in cache.get_cache_info()
    
    def test_reset_stats(self, cache):
        """测试重置统计"""
        cache.get("k")
        cache.reset_stats()
        assert cache.stats.total_requests == 0
    
    def test_from_settings(self):
        """测试从配置创建"""
        cache = PermissionCache.from_settings(CacheSettings(ttl=30, maxsize=5, track_role_members=False))
        assert isinstance(cache.backend, MemoryBackend)
        assert cache.backend.get_stats()["maxsize"] == 5
        assert not cache.tracks_role_members
