"""
PermissionSet 集合运算与成员判断测试
"""

import pytest

from yrbac import DataScope, Menu, MergeStrategy, PermissionSet


def _ps(menus=(), codes=(), scopes=(), depts=()):
    return PermissionSet(
        menu_ids=menus,
        permission_codes=codes,
        data_scopes=scopes,
        custom_dept_ids=depts,
    )


# ==================== 构造 ====================


class TestConstruction:
    """测试构造与规范化"""

    def test_fields_converted_to_frozenset(self):
        """测试任意可迭代对象转换为 frozenset"""
        ps = PermissionSet(menu_ids=[1, 2, 2], permission_codes=("a",))
        assert ps.menu_ids == frozenset({1, 2})
        assert isinstance(ps.permission_codes, frozenset)

    def test_data_scope_codes_normalized(self):
        """测试数据范围编码统一转为枚举"""
        ps = _ps(scopes=["1", DataScope.CUSTOM, "DEPT"])
        assert ps.data_scopes == {DataScope.ALL, DataScope.CUSTOM, DataScope.DEPT}

    def test_empty_is_shared_and_empty(self):
        """测试空集合单例"""
        assert PermissionSet.empty() is PermissionSet.empty()
        assert PermissionSet.empty().is_empty
        assert PermissionSet.empty() == PermissionSet()

    def test_from_menus_skips_blank_codes(self):
        """测试由菜单构造时忽略空权限标识"""
        menus = [
            Menu(id=1, menu_type="M"),
            Menu(id=2, perms="  x:view "),
            Menu(id=3, perms="   "),
        ]
        ps = PermissionSet.from_menus(menus)
        assert ps.menu_ids == {1, 2, 3}
        assert ps.permission_codes == {"x:view"}

    def test_replace_keeps_other_fields(self):
        """测试 replace 只替换指定字段"""
        ps = _ps(menus=[1], codes=["a"], scopes=["3"])
        changed = ps.replace(menu_ids=[1, 2])
        assert changed.menu_ids == {1, 2}
        assert changed.permission_codes == {"a"}
        assert changed.data_scopes == {DataScope.DEPT}
        assert ps.menu_ids == {1}


# ==================== 集合运算 ====================


class TestSetAlgebra:
    """测试按字段的集合运算"""

    def test_union_fieldwise(self):
        """测试并集逐字段计算"""
        a = _ps(menus=[1], codes=["a"], scopes=["1"], depts=[5])
        b = _ps(menus=[2], codes=["b"], scopes=["2"], depts=[9])
        assert a.union(b) == _ps(menus=[1, 2], codes=["a", "b"], scopes=["1", "2"], depts=[5, 9])

    def test_intersect_fieldwise(self):
        """测试交集逐字段计算"""
        a = _ps(menus=[1, 2], codes=["a", "b"], depts=[5, 9])
        b = _ps(menus=[2, 3], codes=["b"], depts=[9])
        assert a & b == _ps(menus=[2], codes=["b"], depts=[9])

    def test_difference_fieldwise(self):
        """测试差集（左减右）"""
        a = _ps(menus=[1, 2], codes=["a", "b"])
        b = _ps(menus=[2], codes=["b"])
        assert a - b == _ps(menus=[1], codes=["a"])

    def test_union_identity(self):
        """测试与空集求并不变"""
        p = _ps(menus=[1, 2], codes=["a"], scopes=["4"], depts=[7])
        assert p.union(PermissionSet.empty()) == p
        assert PermissionSet.empty().union(p) == p

    def test_union_commutative_and_associative(self):
        """测试并集满足交换律与结合律"""
        p = _ps(menus=[1], codes=["a"])
        q = _ps(menus=[2], scopes=["5"])
        r = _ps(menus=[3], depts=[8])
        assert p | q == q | p
        assert (p | q) | r == p | (q | r)

    @pytest.mark.parametrize("strategy,expected", [
        (MergeStrategy.UNION, {1, 2, 3}),
        (MergeStrategy.INTERSECTION, {2}),
        (MergeStrategy.DIFFERENCE, {1}),
        ("UNION", {1, 2, 3}),
    ])
    def test_merge_strategy(self, strategy, expected):
        """测试按策略合并"""
        a = _ps(menus=[1, 2])
        b = _ps(menus=[2, 3])
        assert a.merge(b, strategy).menu_ids == expected


class TestMergeAll:
    """测试 merge_all 从左到右折叠"""

    def test_empty_list(self):
        """测试空列表返回空集"""
        assert PermissionSet.merge_all([]).is_empty

    def test_single_element_returned_unchanged(self):
        """测试单个元素原样返回"""
        p = _ps(menus=[1])
        assert PermissionSet.merge_all([p], MergeStrategy.INTERSECTION) is p

    def test_left_fold_difference(self):
        """测试差集按从左到右顺序折叠"""
        sets = [_ps(menus=[1, 2, 3]), _ps(menus=[1]), _ps(menus=[3])]
        assert PermissionSet.merge_all(sets, MergeStrategy.DIFFERENCE).menu_ids == {2}

    def test_default_union(self):
        """测试默认并集"""
        sets = [_ps(codes=["a"]), _ps(codes=["b"]), _ps(codes=["a", "c"])]
        assert PermissionSet.merge_all(sets).permission_codes == {"a", "b", "c"}


# ==================== 成员判断 ====================


class TestMembership:
    """测试成员判断"""

    def test_has_permission_and_menu(self):
        """测试权限标识与菜单判断"""
        ps = _ps(menus=[1], codes=["x:view"])
        assert ps.has_permission("x:view")
        assert not ps.has_permission("x:edit")
        assert ps.has_menu(1)
        assert not ps.has_menu(2)

    def test_has_data_scope_accepts_codes(self):
        """测试数据范围判断接受编码"""
        ps = _ps(scopes=[DataScope.CUSTOM])
        assert ps.has_data_scope("2")
        assert ps.has_data_scope(DataScope.CUSTOM)
        assert not ps.has_data_scope(DataScope.ALL)

    def test_any_and_all(self):
        """测试任一/全部权限判断"""
        ps = _ps(codes=["a", "b"])
        assert ps.has_any_permission(["z", "a"])
        assert not ps.has_any_permission(["z"])
        assert ps.has_all_permissions(["a", "b"])
        assert not ps.has_all_permissions(["a", "z"])

    def test_grants_nothing_ignores_data_scope_markers(self):
        """测试只有数据范围标记时不授予任何操作权限"""
        ps = _ps(scopes=["1"])
        assert not ps.is_empty
        assert ps.grants_nothing

    def test_to_dict_sorted(self):
        """测试序列化为排序后的字典"""
        ps = _ps(menus=[3, 1], codes=["b", "a"], scopes=["5", "1"], depts=[9, 5])
        assert ps.to_dict() == {
            "menu_ids": [1, 3],
            "permission_codes": ["a", "b"],
            "data_scopes": ["1", "5"],
            "custom_dept_ids": [5, 9],
        }

    def test_repr_contains_counts(self):
        """测试 repr 输出摘要"""
        assert "menus=2" in repr(_ps(menus=[1, 2]))


# ==================== 直接授予菜单 ====================


class TestGrantedMenus:
    """测试直接授予菜单的记录"""

    def test_from_menus_records_granted(self):
        """测试由菜单构造时记录直接授予的菜单"""
        ps = PermissionSet.from_menus([Menu(id=2, perms="x:view"), Menu(id=3)])
        assert ps.granted_menu_ids == {2, 3}
        assert ps.seed_menu_ids == {2, 3}

    def test_unrecorded_falls_back_to_menu_ids(self):
        """测试未记录时以 menu_ids 作为展开起点"""
        ps = _ps(menus=[1, 2])
        assert ps.granted_menu_ids is None
        assert ps.seed_menu_ids == {1, 2}

    def test_equality_ignores_granted(self):
        """测试相等比较不考虑直接授予菜单"""
        a = PermissionSet(menu_ids=[1, 2], granted_menu_ids=[2])
        b = PermissionSet(menu_ids=[1, 2])
        assert a == b
        assert hash(a) == hash(b)

    def test_operations_combine_granted(self):
        """测试并、交运算按字段合并直接授予菜单"""
        a = PermissionSet(menu_ids=[1, 2], granted_menu_ids=[2])
        b = PermissionSet(menu_ids=[1, 3], granted_menu_ids=[3])
        assert (a | b).granted_menu_ids == {2, 3}
        assert (a & b).granted_menu_ids == frozenset()
        assert (a - b).granted_menu_ids == {2}

    def test_replace_keeps_granted(self):
        """测试替换其他字段时保留直接授予菜单"""
        ps = PermissionSet(menu_ids=[1, 2], granted_menu_ids=[2]).replace(data_scopes=["3"])
        assert ps.granted_menu_ids == {2}
