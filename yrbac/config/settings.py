"""
配置模块
提供权限引擎的默认配置，均可通过环境变量或 YAML 文件覆盖
"""

from typing import Dict, List

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings

from ..enums import DataScope, InheritanceStrategy, MergeStrategy


class CacheSettings(BaseSettings):
    """权限缓存配置
    
    使用示例:
        from yrbac.config import CacheSettings
        
        cache_config = CacheSettings(ttl=600, maxsize=20000)
    """
    enabled: bool = Field(default=True, description="是否启用权限缓存")
    maxsize: int = Field(default=10000, description="最大缓存条目数")
    ttl: int = Field(default=300, description="缓存过期时间（秒）")
    enable_stats: bool = Field(default=True, description="是否统计命中率")
    track_role_members: bool = Field(
        default=True,
        description="是否维护角色->用户索引。关闭后角色变更会清空全部用户缓存"
    )
    
    class Config:
        env_prefix = "YRBAC_CACHE_"


class InheritanceSettings(BaseSettings):
    """权限继承配置"""
    enabled: bool = Field(default=True, description="是否启用菜单权限继承，关闭时等同 OVERRIDE")
    default_strategy: InheritanceStrategy = Field(
        default=InheritanceStrategy.ADDITIVE, description="角色权限的继承策略"
    )
    default_merge_strategy: MergeStrategy = Field(
        default=MergeStrategy.UNION, description="多角色权限合并策略"
    )
    admin_auto_inherit_all: bool = Field(
        default=True, description="超级管理员是否自动拥有全部权限"
    )
    
    class Config:
        env_prefix = "YRBAC_INHERITANCE_"
    
    @computed_field
    @property
    def effective_strategy(self) -> InheritanceStrategy:
        """实际生效的继承策略"""
        if not self.enabled:
            return InheritanceStrategy.OVERRIDE
        return self.default_strategy


# 可用的默认数据范围规则名称
DATA_SCOPE_RULE_NAMES = ("user_type", "role")


class DataScopeSettings(BaseSettings):
    """数据权限配置
    
    没有用户级覆盖时，按 default_rules 依次推导默认数据范围，
    都无法推导时使用 fallback_scope。
    
    使用示例:
        from yrbac.config import DataScopeSettings
        
        # 先看角色，角色推导不出再看用户类型
        settings = DataScopeSettings(
            default_rules=["role", "user_type"],
            user_type_mapping={"manager": "4", "leader": "3", "auditor": "1"},
        )
    """
    super_admin_ids: List[int] = Field(default_factory=list, description="超级管理员用户编号")
    super_admin_names: List[str] = Field(default_factory=lambda: ["admin"], description="超级管理员用户名")
    default_rules: List[str] = Field(
        default_factory=lambda: ["user_type"],
        description="默认数据范围推导规则，可选 user_type / role"
    )
    user_type_mapping: Dict[str, str] = Field(
        default_factory=lambda: {
            "manager": DataScope.DEPT_AND_CHILD.value,
            "leader": DataScope.DEPT.value,
        },
        description="用户类型 -> 数据范围编码"
    )
    fallback_scope: str = Field(default=DataScope.SELF.value, description="无法推导时的数据范围编码")
    
    class Config:
        env_prefix = "YRBAC_DATA_SCOPE_"
    
    @field_validator("default_rules")
    @classmethod
    def _check_rules(cls, value: List[str]) -> List[str]:
        unknown = [name for name in value if name not in DATA_SCOPE_RULE_NAMES]
        if unknown:
            raise ValueError(f"未知的数据范围规则: {', '.join(unknown)}")
        return value
    
    @computed_field
    @property
    def parsed_user_type_mapping(self) -> Dict[str, DataScope]:
        return {k: DataScope.from_code(v) for k, v in self.user_type_mapping.items()}
    
    @computed_field
    @property
    def parsed_fallback_scope(self) -> DataScope:
        return DataScope.from_code(self.fallback_scope)


class LoggingSettings(BaseSettings):
    """日志配置"""
    level: str = Field(default="INFO", description="日志级别")
    file_path: str = Field(default="", description="日志文件路径，为空时不写文件")
    console: bool = Field(default=True, description="是否输出到控制台")
    propagate: bool = Field(default=True, description="是否传播到根日志器")
    
    class Config:
        env_prefix = "YRBAC_LOG_"


class RbacSettings(BaseSettings):
    """权限引擎总配置
    
    使用示例:
        from yrbac.config import RbacSettings, load_settings
        
        settings = RbacSettings()                        # 默认值 + 环境变量
        settings = load_settings("config/rbac.yaml")     # YAML 文件
    """
    cache: CacheSettings = Field(default_factory=CacheSettings)
    inheritance: InheritanceSettings = Field(default_factory=InheritanceSettings)
    data_scope: DataScopeSettings = Field(default_factory=DataScopeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    
    class Config:
        env_prefix = "YRBAC_"


__all__ = [
    "CacheSettings",
    "InheritanceSettings",
    "DataScopeSettings",
    "DATA_SCOPE_RULE_NAMES",
    "LoggingSettings",
    "RbacSettings",
]
