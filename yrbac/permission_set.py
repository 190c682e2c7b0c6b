"""
权限引擎 - 权限集合

PermissionSet 是不可变的值对象，包含：
    - menu_ids: 可访问的菜单/按钮编号
    - permission_codes: 权限标识（应用侧检查的最小授权单元）
    - data_scopes: 数据权限范围标记
    - custom_dept_ids: 自定义数据权限的部门编号（仅 CUSTOM 时有值）
    - granted_menu_ids: 继承展开前直接授予的菜单，不参与相等比较；
      为 None 时视为 menu_ids 全部是直接授予的

合并运算（并、交、差）按字段逐一进行。空集是并集运算的单位元。

使用示例:
    from yrbac import PermissionSet, MergeStrategy

    a = PermissionSet(menu_ids={1, 2}, permission_codes={"x:view"})
    b = PermissionSet(menu_ids={3}, permission_codes={"x:edit"})

    merged = PermissionSet.merge_all([a, b])          # 默认 UNION
    assert merged.has_permission("x:edit")

    only_a = a.difference(b)                          # 等价于 a - b
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence

from .enums import DataScope, MergeStrategy
from .types import DeptId, Menu, MenuId, PermissionCode


def _frozen(values: Optional[Iterable[Any]]) -> FrozenSet[Any]:
    if values is None:
        return frozenset()
    if isinstance(values, frozenset):
        return values
    return frozenset(values)


@dataclass(frozen=True)
class PermissionSet:
    """权限集合（不可变）"""
    menu_ids: FrozenSet[MenuId] = field(default_factory=frozenset)
    permission_codes: FrozenSet[PermissionCode] = field(default_factory=frozenset)
    data_scopes: FrozenSet[DataScope] = field(default_factory=frozenset)
    custom_dept_ids: FrozenSet[DeptId] = field(default_factory=frozenset)
    granted_menu_ids: Optional[FrozenSet[MenuId]] = field(default=None, compare=False)

    def __post_init__(self):
        # 允许传入任意可迭代对象，统一转换为 frozenset
        object.__setattr__(self, "menu_ids", _frozen(self.menu_ids))
        object.__setattr__(self, "permission_codes", _frozen(self.permission_codes))
        object.__setattr__(
            self, "data_scopes",
            frozenset(DataScope.from_code(s) for s in _frozen(self.data_scopes))
        )
        object.__setattr__(self, "custom_dept_ids", _frozen(self.custom_dept_ids))
        if self.granted_menu_ids is not None:
            object.__setattr__(self, "granted_menu_ids", _frozen(self.granted_menu_ids))

    # ==================== 构造 ====================

    @classmethod
    def empty(cls) -> "PermissionSet":
        return _EMPTY

    @classmethod
    def from_menus(cls, menus: Iterable[Menu]) -> "PermissionSet":
        """由菜单列表构造，空权限标识不计入"""
        menu_ids = set()
        codes = set()
        for menu in menus:
            menu_ids.add(menu.id)
            code = menu.permission_code
            if code:
                codes.add(code)
        return cls(menu_ids=menu_ids, permission_codes=codes, granted_menu_ids=menu_ids)

    def replace(self, **changes: Any) -> "PermissionSet":
        """返回替换部分字段后的新集合"""
        values = {
            "menu_ids": self.menu_ids,
            "permission_codes": self.permission_codes,
            "data_scopes": self.data_scopes,
            "custom_dept_ids": self.custom_dept_ids,
            "granted_menu_ids": self.granted_menu_ids,
        }
        values.update(changes)
        return PermissionSet(**values)

    @property
    def seed_menu_ids(self) -> FrozenSet[MenuId]:
        """继承展开的起点：记录的直接授予菜单，未记录时为 menu_ids"""
        if self.granted_menu_ids is None:
            return self.menu_ids
        return self.granted_menu_ids

    # ==================== 集合运算 ====================

    def union(self, other: "PermissionSet") -> "PermissionSet":
        return PermissionSet(
            menu_ids=self.menu_ids | other.menu_ids,
            permission_codes=self.permission_codes | other.permission_codes,
            data_scopes=self.data_scopes | other.data_scopes,
            custom_dept_ids=self.custom_dept_ids | other.custom_dept_ids,
            granted_menu_ids=self.seed_menu_ids | other.seed_menu_ids,
        )

    def intersect(self, other: "PermissionSet") -> "PermissionSet":
        return PermissionSet(
            menu_ids=self.menu_ids & other.menu_ids,
            permission_codes=self.permission_codes & other.permission_codes,
            data_scopes=self.data_scopes & other.data_scopes,
            custom_dept_ids=self.custom_dept_ids & other.custom_dept_ids,
            granted_menu_ids=self.seed_menu_ids & other.seed_menu_ids,
        )

    def difference(self, other: "PermissionSet") -> "PermissionSet":
        return PermissionSet(
            menu_ids=self.menu_ids - other.menu_ids,
            permission_codes=self.permission_codes - other.permission_codes,
            data_scopes=self.data_scopes - other.data_scopes,
            custom_dept_ids=self.custom_dept_ids - other.custom_dept_ids,
            granted_menu_ids=(self.seed_menu_ids - other.seed_menu_ids) & (self.menu_ids - other.menu_ids),
        )

    __or__ = union
    __and__ = intersect
    __sub__ = difference

    def merge(self, other: "PermissionSet", strategy: MergeStrategy = MergeStrategy.UNION) -> "PermissionSet":
        """按合并策略与另一个集合合并"""
        strategy = MergeStrategy(strategy)
        if strategy is MergeStrategy.UNION:
            return self.union(other)
        if strategy is MergeStrategy.INTERSECTION:
            return self.intersect(other)
        return self.difference(other)

    @classmethod
    def merge_all(
        cls,
        sets: Sequence["PermissionSet"],
        strategy: MergeStrategy = MergeStrategy.UNION,
    ) -> "PermissionSet":
        """从第一个集合开始从左到右折叠合并

        Args:
            sets: 权限集合列表
            strategy: 合并策略，默认并集

        Returns:
            空列表返回空集；只有一个元素时原样返回
        """
        sets = list(sets)
        if not sets:
            return cls.empty()
        if len(sets) == 1:
            return sets[0]
        result = sets[0]
        for item in sets[1:]:
            result = result.merge(item, strategy)
        return result

    # ==================== 成员判断 ====================

    def has_permission(self, code: PermissionCode) -> bool:
        return code in self.permission_codes

    def has_menu(self, menu_id: MenuId) -> bool:
        return menu_id in self.menu_ids

    def has_data_scope(self, scope: Any) -> bool:
        return DataScope.from_code(scope) in self.data_scopes

    def has_any_permission(self, codes: Iterable[PermissionCode]) -> bool:
        return any(code in self.permission_codes for code in codes)

    def has_all_permissions(self, codes: Iterable[PermissionCode]) -> bool:
        return all(code in self.permission_codes for code in codes)

    @property
    def is_empty(self) -> bool:
        return not (self.menu_ids or self.permission_codes or self.data_scopes or self.custom_dept_ids)

    @property
    def grants_nothing(self) -> bool:
        """没有任何菜单和权限标识（数据范围标记本身不授予操作权限）"""
        return not (self.menu_ids or self.permission_codes)

    def to_dict(self) -> Dict[str, Any]:
        """转换为可 JSON 序列化的字典（集合按值排序）"""
        return {
            "menu_ids": sorted(self.menu_ids),
            "permission_codes": sorted(self.permission_codes),
            "data_scopes": sorted(s.value for s in self.data_scopes),
            "custom_dept_ids": sorted(self.custom_dept_ids),
        }

    def __repr__(self) -> str:
        return (
            f"PermissionSet(menus={len(self.menu_ids)}, "
            f"codes={len(self.permission_codes)}, "
            f"data_scopes={sorted(s.value for s in self.data_scopes)}, "
            f"custom_depts={len(self.custom_dept_ids)})"
        )


_EMPTY = PermissionSet()


__all__ = ["PermissionSet"]
