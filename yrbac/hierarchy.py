"""
权限引擎 - 层级展开

菜单树与部门树共用同一套遍历算法，树结构通过 ForestLookup 协议传入：
    - find_by_id(id): 返回带 id / parent_id 的节点，不存在返回 None
    - children_of(id): 返回直接子节点列表

遍历使用显式的已访问集合，数据中出现环路时记录警告并返回已收集的结果，
不会无限循环。parent_id 指向不存在的节点时视为根节点。

使用示例:
    from yrbac.hierarchy import ancestors_of, descendants_of

    ancestors_of(menu_store, 105)      # [10, 1]  最近的祖先在前
    descendants_of(dept_store, 1)      # {2, 3}
"""

from collections import deque
from typing import Any, FrozenSet, Iterable, List, Optional, Protocol, Set, runtime_checkable

from .enums import InheritanceStrategy
from .exceptions import CircularReferenceException
from .log import get_logger
from .permission_set import PermissionSet
from .types import ROOT_PARENT_ID, MenuId

logger = get_logger("yrbac.hierarchy")


@runtime_checkable
class TreeNode(Protocol):
    """树节点协议"""
    id: int
    parent_id: Optional[int]


@runtime_checkable
class ForestLookup(Protocol):
    """森林查询协议（菜单树、部门树均满足）"""

    def find_by_id(self, id: int) -> Optional[TreeNode]:
        ...

    def children_of(self, id: int) -> List[TreeNode]:
        ...


def _is_root_parent(parent_id: Optional[int]) -> bool:
    return parent_id is None or parent_id == ROOT_PARENT_ID


def ancestors_of(forest: ForestLookup, node_id: int) -> List[int]:
    """获取祖先节点编号

    Args:
        forest: 树结构查询接口
        node_id: 节点编号

    Returns:
        祖先编号列表，最近的祖先在前、根在最后；节点不存在或本身是根时返回空列表
    """
    node = forest.find_by_id(node_id)
    if node is None:
        return []

    result: List[int] = []
    visited = {node_id}
    parent_id = node.parent_id

    while not _is_root_parent(parent_id):
        if parent_id in visited:
            logger.warning(
                f"Hierarchy cycle detected while walking ancestors of {node_id}: "
                f"revisited {parent_id}, path={result}"
            )
            break

        parent = forest.find_by_id(parent_id)
        if parent is None:
            # 悬空引用，当前节点按根节点处理
            logger.debug(f"Dangling parent {parent_id} above {node_id}, treated as root")
            break

        result.append(parent_id)
        visited.add(parent_id)
        parent_id = parent.parent_id

    return result


def descendants_of(forest: ForestLookup, node_id: int) -> Set[int]:
    """获取所有子孙节点编号（广度优先）

    Args:
        forest: 树结构查询接口
        node_id: 节点编号

    Returns:
        子孙编号集合（不含节点本身）；节点不存在时返回空集合
    """
    if forest.find_by_id(node_id) is None:
        return set()

    result: Set[int] = set()
    visited = {node_id}
    queue = deque([node_id])

    while queue:
        current = queue.popleft()
        for child in forest.children_of(current):
            child_id = child.id
            if child_id in visited:
                logger.warning(
                    f"Hierarchy cycle detected while walking descendants of {node_id}: "
                    f"{current} -> {child_id} revisits a known node, branch stopped"
                )
                continue
            visited.add(child_id)
            result.add(child_id)
            queue.append(child_id)

    return result


def self_and_descendants(forest: ForestLookup, node_id: int) -> Set[int]:
    """节点本身及所有子孙；节点不存在时返回空集合"""
    if forest.find_by_id(node_id) is None:
        return set()
    return {node_id} | descendants_of(forest, node_id)


def validate_no_circular_reference(
    forest: ForestLookup,
    node_id: int,
    new_parent_id: Optional[int],
) -> bool:
    """验证修改上级不会造成循环引用

    Returns:
        True 表示没有循环引用，可以修改
    """
    if _is_root_parent(new_parent_id):
        return True

    if node_id == new_parent_id:
        return False

    # 如果节点出现在新上级的祖先链中，会形成环
    return node_id not in ancestors_of(forest, new_parent_id)


def ensure_no_circular_reference(
    forest: ForestLookup,
    node_id: int,
    new_parent_id: Optional[int],
) -> None:
    """同 validate_no_circular_reference，失败时抛出 CircularReferenceException"""
    if not validate_no_circular_reference(forest, node_id, new_parent_id):
        raise CircularReferenceException(node_id, new_parent_id)


# ==================== 继承策略 ====================

def apply_inheritance(
    menu_ids: Iterable[MenuId],
    strategy: InheritanceStrategy,
    forest: ForestLookup,
) -> FrozenSet[MenuId]:
    """按继承策略展开菜单编号集合

    - ADDITIVE: 每个菜单并入其全部祖先和全部子孙。授予按钮时所在菜单与
      目录链可见；授予目录时目录下的全部菜单可见。
    - OVERRIDE: 不展开，原样返回
    - INTERSECTION: 依次与每个菜单的祖先集合求交集

    传入的应当是直接授予的菜单。已展开的结果里包含祖先目录，直接再展开会
    放开整棵目录；需要再次展开时使用 inherit_permissions，它按集合记录的
    直接授予菜单展开。

    Args:
        menu_ids: 直接授予的菜单编号
        strategy: 继承策略
        forest: 菜单树查询接口

    Returns:
        展开后的菜单编号集合
    """
    granted = sorted(set(menu_ids))
    strategy = InheritanceStrategy(strategy)

    if not granted or strategy is InheritanceStrategy.OVERRIDE:
        return frozenset(granted)

    if strategy is InheritanceStrategy.INTERSECTION:
        result = set(granted)
        for menu_id in granted:
            result.intersection_update(ancestors_of(forest, menu_id))
        return frozenset(result)

    result = set(granted)
    for menu_id in granted:
        result.update(ancestors_of(forest, menu_id))
        result.update(descendants_of(forest, menu_id))
    return frozenset(result)


def permission_codes_of(menu_ids: Iterable[MenuId], forest: Any) -> FrozenSet[str]:
    """查出菜单编号对应的权限标识，没有权限标识的菜单不计入"""
    codes = set()
    for menu_id in menu_ids:
        menu = forest.find_by_id(menu_id)
        if menu is None:
            continue
        code = getattr(menu, "permission_code", None)
        if code:
            codes.add(code)
    return frozenset(codes)


def inherit_permissions(
    permissions: PermissionSet,
    strategy: InheritanceStrategy,
    forest: ForestLookup,
) -> PermissionSet:
    """对权限集合的菜单部分应用继承策略，并按展开后的菜单重新计算权限标识

    ADDITIVE 只展开集合记录的直接授予菜单（granted_menu_ids），结果与已有
    菜单取并集，因此对展开结果再次展开保持不变。数据范围与自定义部门保持不变。
    """
    if not permissions.menu_ids:
        return permissions

    strategy = InheritanceStrategy(strategy)
    granted = permissions.seed_menu_ids
    if strategy is InheritanceStrategy.ADDITIVE:
        menu_ids = permissions.menu_ids | apply_inheritance(granted, strategy, forest)
    else:
        menu_ids = apply_inheritance(permissions.menu_ids, strategy, forest)
        granted = granted & menu_ids

    return permissions.replace(
        menu_ids=menu_ids,
        permission_codes=permission_codes_of(menu_ids, forest),
        granted_menu_ids=granted,
    )


__all__ = [
    "TreeNode",
    "ForestLookup",
    "ancestors_of",
    "descendants_of",
    "self_and_descendants",
    "validate_no_circular_reference",
    "ensure_no_circular_reference",
    "apply_inheritance",
    "permission_codes_of",
    "inherit_permissions",
]
