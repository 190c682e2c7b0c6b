"""配置模块

使用示例:
    from yrbac.config import RbacSettings, load_settings
    
    settings = load_settings("config/rbac.yaml")
    engine = PermissionEngine.from_store(store, settings=settings)
"""

from .settings import (
    CacheSettings,
    InheritanceSettings,
    DataScopeSettings,
    DATA_SCOPE_RULE_NAMES,
    LoggingSettings,
    RbacSettings,
)
from .loader import ConfigLoader, load_yaml_config, load_settings

__all__ = [
    "CacheSettings",
    "InheritanceSettings",
    "DataScopeSettings",
    "DATA_SCOPE_RULE_NAMES",
    "LoggingSettings",
    "RbacSettings",
    "ConfigLoader",
    "load_yaml_config",
    "load_settings",
]
