"""
权限引擎 - 类型定义

提供类型别名、领域记录（只读数据类）以及部门编号串的解析工具
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

from .enums import DataScope, MenuType, Status


# 各类主键均为整数
UserId = int
RoleId = int
MenuId = int
DeptId = int

# 权限标识，如 "system:user:list"
PermissionCode = str

# 层级树根节点的 parent_id
ROOT_PARENT_ID = 0


def _is_normal(status: Union[str, Status]) -> bool:
    value = status.value if isinstance(status, Status) else status
    return value == Status.NORMAL.value


@dataclass(frozen=True)
class User:
    """用户"""
    id: UserId
    user_name: str = ""
    dept_id: Optional[DeptId] = None
    user_type: str = ""
    status: str = Status.NORMAL.value
    del_flag: bool = False
    is_admin: bool = False
    
    @property
    def is_active(self) -> bool:
        return _is_normal(self.status) and not self.del_flag


@dataclass(frozen=True)
class Role:
    """角色
    
    parent_id 仅供角色树查询使用，不参与权限计算。
    """
    id: RoleId
    role_key: str = ""
    role_name: str = ""
    role_sort: int = 0
    data_scope: str = DataScope.ALL.value
    status: str = Status.NORMAL.value
    del_flag: bool = False
    parent_id: Optional[RoleId] = None
    
    @property
    def is_active(self) -> bool:
        return _is_normal(self.status) and not self.del_flag


@dataclass(frozen=True)
class Menu:
    """菜单（目录 / 菜单 / 按钮）"""
    id: MenuId
    parent_id: MenuId = ROOT_PARENT_ID
    menu_type: str = MenuType.MENU.value
    perms: Optional[PermissionCode] = None
    status: str = Status.NORMAL.value
    visible: bool = True
    del_flag: bool = False
    menu_name: str = ""
    order_num: int = 0
    
    @property
    def is_active(self) -> bool:
        return _is_normal(self.status) and not self.del_flag
    
    @property
    def permission_code(self) -> Optional[PermissionCode]:
        """去除空白后的权限标识，空串视为无"""
        if self.perms is None:
            return None
        code = self.perms.strip()
        return code or None


@dataclass(frozen=True)
class Dept:
    """部门"""
    id: DeptId
    parent_id: DeptId = ROOT_PARENT_ID
    status: str = Status.NORMAL.value
    del_flag: bool = False
    dept_name: str = ""
    order_num: int = 0
    
    @property
    def is_active(self) -> bool:
        return _is_normal(self.status) and not self.del_flag


@dataclass(frozen=True)
class UserDataScope:
    """用户级数据权限覆盖
    
    存在且状态正常时优先于按用户类型/角色推导出的默认数据范围。
    """
    user_id: UserId
    data_scope: str = DataScope.SELF.value
    custom_dept_ids: Tuple[DeptId, ...] = field(default_factory=tuple)
    status: str = Status.NORMAL.value
    remark: str = ""
    
    @property
    def is_enabled(self) -> bool:
        return _is_normal(self.status)
    
    @property
    def scope(self) -> DataScope:
        return DataScope.from_code(self.data_scope)


def parse_dept_ids(text: Optional[str]) -> List[DeptId]:
    """解析逗号分隔的部门编号串
    
    非数字片段会被忽略，重复编号只保留第一次出现。
    
    Example:
        >>> parse_dept_ids("5, 9,,x,5")
        [5, 9]
    """
    if not text:
        return []
    result: List[DeptId] = []
    for part in text.split(","):
        part = part.strip()
        if not part.lstrip("-").isdigit():
            continue
        dept_id = int(part)
        if dept_id not in result:
            result.append(dept_id)
    return result


def join_dept_ids(dept_ids: Iterable[DeptId]) -> str:
    """部门编号列表 -> 逗号分隔串（按编号排序）
    
    Example:
        >>> join_dept_ids([9, 5])
        "5,9"
    """
    return ",".join(str(d) for d in sorted(set(dept_ids)))


__all__ = [
    # 类型别名
    "UserId",
    "RoleId",
    "MenuId",
    "DeptId",
    "PermissionCode",
    "ROOT_PARENT_ID",
    
    # 领域记录
    "User",
    "Role",
    "Menu",
    "Dept",
    "UserDataScope",
    
    # 工具函数
    "parse_dept_ids",
    "join_dept_ids",
]
