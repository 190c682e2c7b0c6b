"""
权限引擎 - 枚举定义

提供数据权限、菜单类型、继承/合并策略等枚举，以及枚举到中文标签的查找函数
"""

from enum import Enum
from typing import Any, Dict


class DataScope(str, Enum):
    """数据权限范围
    
    值为持久化编码（与角色表 data_scope 字段一致）
    """
    ALL = "1"               # 全部数据权限
    CUSTOM = "2"            # 自定数据权限
    DEPT = "3"              # 本部门数据权限
    DEPT_AND_CHILD = "4"    # 本部门及以下数据权限
    SELF = "5"              # 仅本人数据权限
    
    @property
    def label(self) -> str:
        return _DATA_SCOPE_LABELS[self]
    
    @classmethod
    def from_code(cls, code: Any) -> "DataScope":
        """解析数据权限编码
        
        接受编码（"1"~"5"）、枚举成员或成员名（"DEPT_AND_CHILD"）。
        无法识别时返回 DEPT。
        """
        if isinstance(code, cls):
            return code
        if code is None:
            return cls.DEPT
        text = str(code).strip()
        for member in cls:
            if member.value == text or member.name == text.upper():
                return member
        return cls.DEPT
    
    def needs_dept_filter(self) -> bool:
        """是否需要按部门过滤"""
        return self in (DataScope.CUSTOM, DataScope.DEPT, DataScope.DEPT_AND_CHILD)
    
    def needs_user_filter(self) -> bool:
        """是否需要按本人过滤"""
        return self is DataScope.SELF
    
    def include_child_dept(self) -> bool:
        """是否包含下级部门"""
        return self is DataScope.DEPT_AND_CHILD


_DATA_SCOPE_LABELS: Dict[DataScope, str] = {
    DataScope.ALL: "全部数据权限",
    DataScope.CUSTOM: "自定数据权限",
    DataScope.DEPT: "本部门数据权限",
    DataScope.DEPT_AND_CHILD: "本部门及以下数据权限",
    DataScope.SELF: "仅本人数据权限",
}

# 数据范围从宽到窄，用于在多个角色之间挑选最宽的范围
DATA_SCOPE_BREADTH = (
    DataScope.ALL,
    DataScope.DEPT_AND_CHILD,
    DataScope.CUSTOM,
    DataScope.DEPT,
    DataScope.SELF,
)


class MenuType(str, Enum):
    """菜单类型"""
    DIRECTORY = "M"    # 目录
    MENU = "C"         # 菜单
    BUTTON = "F"       # 按钮


class Status(str, Enum):
    """启用状态"""
    NORMAL = "0"       # 正常
    DISABLED = "1"     # 停用


class InheritanceStrategy(str, Enum):
    """菜单权限继承策略"""
    ADDITIVE = "ADDITIVE"            # 累加：并入祖先与子孙菜单
    OVERRIDE = "OVERRIDE"            # 覆盖：只保留直接授予的菜单
    INTERSECTION = "INTERSECTION"    # 交集：只保留与各菜单祖先集合的交集


class MergeStrategy(str, Enum):
    """多角色权限合并策略"""
    UNION = "UNION"                  # 并集
    INTERSECTION = "INTERSECTION"    # 交集
    DIFFERENCE = "DIFFERENCE"        # 差集（左减右）


class PermissionScope(str, Enum):
    """角色权限计算范围"""
    ALL = "ALL"
    MENU_ONLY = "MENU_ONLY"          # 目录 + 菜单
    BUTTON_ONLY = "BUTTON_ONLY"      # 按钮
    DATA_ONLY = "DATA_ONLY"          # 仅数据权限，不含菜单
    
    def accepts(self, menu_type: Any) -> bool:
        """菜单类型是否属于该范围"""
        if self is PermissionScope.ALL:
            return True
        if self is PermissionScope.DATA_ONLY:
            return False
        value = menu_type.value if isinstance(menu_type, MenuType) else menu_type
        if self is PermissionScope.MENU_ONLY:
            return value in (MenuType.DIRECTORY.value, MenuType.MENU.value)
        return value == MenuType.BUTTON.value


class HierarchyKind(str, Enum):
    """层级树类型（on_hierarchy_changed 参数）"""
    MENU = "menu"
    DEPT = "dept"


_MENU_TYPE_LABELS = {
    MenuType.DIRECTORY.value: "目录",
    MenuType.MENU.value: "菜单",
    MenuType.BUTTON.value: "按钮",
}

_STATUS_LABELS = {
    Status.NORMAL.value: "正常",
    Status.DISABLED.value: "停用",
}


def _code_of(code: Any) -> str:
    return code.value if isinstance(code, Enum) else str(code)


def data_scope_label(code: Any) -> str:
    """数据权限编码 -> 中文标签，未知编码原样返回"""
    text = _code_of(code)
    for member in DataScope:
        if member.value == text:
            return member.label
    return text


def menu_type_label(code: Any) -> str:
    """菜单类型编码 -> 中文标签，未知编码原样返回"""
    text = _code_of(code)
    return _MENU_TYPE_LABELS.get(text, text)


def status_label(code: Any) -> str:
    """状态编码 -> 中文标签，未知编码原样返回"""
    text = _code_of(code)
    return _STATUS_LABELS.get(text, text)


__all__ = [
    "DataScope",
    "DATA_SCOPE_BREADTH",
    "MenuType",
    "Status",
    "InheritanceStrategy",
    "MergeStrategy",
    "PermissionScope",
    "HierarchyKind",
    "data_scope_label",
    "menu_type_label",
    "status_label",
]
