"""
权限引擎 - 数据范围解析

回答两个问题："用户 U 能否看到部门 D 的数据" 以及 "用户 U 能看到哪些部门"。

有效数据范围的确定顺序:
    1. 超级管理员：ALL
    2. 存在且启用的用户级覆盖：覆盖中的范围
    3. 按默认规则链依次推导（用户类型、角色等），第一个给出结果的规则生效
    4. 都推导不出时使用兜底范围（默认 SELF）

默认规则是业务策略，通过 ScopeRule 注入，不在解析器里写死。

使用示例:
    resolver = DataScopeResolver(
        store.users, store.roles, store.depts, store.data_scopes,
        rules=[RoleScopeRule(), UserTypeScopeRule()],
    )
    resolver.has_access_to_dept(7, 105)
    resolver.accessible_dept_ids(7)
"""

from typing import Dict, FrozenSet, List, Mapping, Optional, Protocol, Sequence

from ..cache import PermissionCache, cached_result
from ..enums import DATA_SCOPE_BREADTH, DataScope
from ..hierarchy import ancestors_of, descendants_of
from ..log import get_logger
from ..stores.base import DeptHierarchy, RoleLookup, UserDataScopeLookup, UserLookup
from ..types import DeptId, Role, User, UserId

logger = get_logger("yrbac.service.data_scope")


# ==================== 默认范围规则 ====================

class ScopeRule(Protocol):
    """默认数据范围推导规则

    返回 None 表示本规则无法判断，交给下一条规则。
    needs_roles 为 False 时解析器不会为它查询用户角色。
    """
    needs_roles: bool

    def __call__(self, user: User, roles: Sequence[Role]) -> Optional[DataScope]:
        ...


class UserTypeScopeRule:
    """按用户类型推导

    默认映射: manager -> DEPT_AND_CHILD, leader -> DEPT，其余交给后续规则
    （兜底为 SELF）。
    """
    needs_roles = False

    DEFAULT_MAPPING: Dict[str, DataScope] = {
        "manager": DataScope.DEPT_AND_CHILD,
        "leader": DataScope.DEPT,
    }

    def __init__(
        self,
        mapping: Optional[Mapping[str, object]] = None,
        default: Optional[DataScope] = None,
    ):
        source = self.DEFAULT_MAPPING if mapping is None else mapping
        self.mapping = {k: DataScope.from_code(v) for k, v in source.items()}
        self.default = default

    def __call__(self, user: User, roles: Sequence[Role]) -> Optional[DataScope]:
        return self.mapping.get(user.user_type or "", self.default)

    def __repr__(self) -> str:
        names = {k: v.name for k, v in self.mapping.items()}
        return f"UserTypeScopeRule({names})"


class RoleScopeRule:
    """按角色推导：取用户有效角色中最宽的数据范围

    宽窄顺序: ALL > DEPT_AND_CHILD > CUSTOM > DEPT > SELF
    """
    needs_roles = True

    def __call__(self, user: User, roles: Sequence[Role]) -> Optional[DataScope]:
        scopes = {
            DataScope.from_code(role.data_scope)
            for role in roles
            if role.is_active and role.data_scope
        }
        for scope in DATA_SCOPE_BREADTH:
            if scope in scopes:
                return scope
        return None

    def __repr__(self) -> str:
        return "RoleScopeRule()"


def build_scope_rules(settings) -> List[ScopeRule]:
    """根据 DataScopeSettings 构造规则链"""
    rules: List[ScopeRule] = []
    for name in settings.default_rules:
        if name == "user_type":
            rules.append(UserTypeScopeRule(settings.parsed_user_type_mapping))
        elif name == "role":
            rules.append(RoleScopeRule())
    return rules


# ==================== 解析器 ====================

class DataScopeResolver:
    """数据范围解析器"""

    def __init__(
        self,
        users: UserLookup,
        roles: RoleLookup,
        depts: DeptHierarchy,
        overrides: Optional[UserDataScopeLookup] = None,
        rules: Optional[Sequence[ScopeRule]] = None,
        fallback: DataScope = DataScope.SELF,
        cache: Optional[PermissionCache] = None,
    ):
        self.users = users
        self.roles = roles
        self.depts = depts
        self.overrides = overrides
        self.rules = list(rules) if rules is not None else [UserTypeScopeRule()]
        self.fallback = DataScope.from_code(fallback)
        self.cache = cache

    # ==================== 有效范围 ====================

    def is_super_admin(self, user_id: UserId) -> bool:
        return self.users.is_super_admin(user_id)

    def _active_user(self, user_id: UserId) -> Optional[User]:
        user = self.users.find_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user

    @cached_result(PermissionCache.USER_DATA_SCOPE)
    def effective_data_scope(self, user_id: UserId) -> DataScope:
        """用户的有效数据范围

        用户不存在或未启用时返回 SELF（没有任何部门级访问权）。
        """
        user = self._active_user(user_id)
        if user is None:
            return DataScope.SELF

        if self.is_super_admin(user_id):
            return DataScope.ALL

        if self.overrides is not None:
            override = self.overrides.find_data_scope_override(user_id)
            if override is not None and override.is_enabled:
                logger.debug(f"User {user_id} data scope from override: {override.scope.name}")
                return override.scope

        roles: Sequence[Role] = ()
        if any(getattr(rule, "needs_roles", True) for rule in self.rules):
            assigned = self.roles.find_roles_of_user(user_id)
            if self.cache is not None:
                self.cache.remember_role_members(user_id, [r.id for r in assigned])
            roles = [r for r in assigned if r.is_active]

        for rule in self.rules:
            scope = rule(user, roles)
            if scope is not None:
                logger.debug(f"User {user_id} data scope from {rule!r}: {scope.name}")
                return DataScope.from_code(scope)

        return self.fallback

    def custom_dept_ids(self, user_id: UserId) -> List[DeptId]:
        """用户的自定义部门列表，缺失时按无权限处理"""
        dept_ids = list(self.depts.custom_dept_ids_of_user(user_id) or [])
        if not dept_ids:
            logger.warning(
                f"User {user_id} has CUSTOM data scope but no stored departments, "
                f"treated as no department access"
            )
        return dept_ids

    # ==================== 部门树 ====================

    @cached_result(PermissionCache.DEPT_TREE)
    def dept_and_children_ids(self, dept_id: DeptId) -> FrozenSet[DeptId]:
        """部门本身及全部下级部门"""
        return frozenset({dept_id} | descendants_of(self.depts, dept_id))

    def parent_dept_ids(self, dept_id: DeptId) -> List[DeptId]:
        """上级部门，最近的在前"""
        return ancestors_of(self.depts, dept_id)

    def all_dept_ids(self) -> FrozenSet[DeptId]:
        return frozenset(dept.id for dept in self.depts.find_all())

    # ==================== 访问判断 ====================

    def has_access_to_dept(self, user_id: UserId, dept_id: DeptId) -> bool:
        """用户能否访问指定部门的数据

        ALL 恒为 True；SELF 恒为 False（本人数据由业务查询单独约束）；
        DEPT 要求是本部门；DEPT_AND_CHILD 要求是本部门或其下级；
        CUSTOM 要求在自定义部门列表中。
        """
        if dept_id is None:
            return False

        user = self._active_user(user_id)
        if user is None:
            return False

        scope = self.effective_data_scope(user_id)
        if scope is DataScope.ALL:
            return True
        if scope is DataScope.SELF:
            return False
        if scope is DataScope.CUSTOM:
            return dept_id in self.custom_dept_ids(user_id)

        if user.dept_id is None:
            return False
        if scope is DataScope.DEPT:
            return dept_id == user.dept_id
        return dept_id in self.dept_and_children_ids(user.dept_id)

    @cached_result(PermissionCache.USER_DEPTS)
    def accessible_dept_ids(self, user_id: UserId) -> FrozenSet[DeptId]:
        """用户可访问的全部部门编号"""
        user = self._active_user(user_id)
        if user is None:
            return frozenset()

        scope = self.effective_data_scope(user_id)
        if scope is DataScope.ALL:
            return self.all_dept_ids()
        if scope is DataScope.SELF:
            return frozenset()
        if scope is DataScope.CUSTOM:
            return frozenset(self.custom_dept_ids(user_id))

        if user.dept_id is None:
            return frozenset()
        if scope is DataScope.DEPT:
            return frozenset({user.dept_id})
        return self.dept_and_children_ids(user.dept_id)


__all__ = [
    "ScopeRule",
    "UserTypeScopeRule",
    "RoleScopeRule",
    "build_scope_rules",
    "DataScopeResolver",
]
