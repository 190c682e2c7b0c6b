"""日志模块

使用示例:
    from yrbac.log import get_logger, setup_logger
    
    logger = get_logger("service.role")
    setup_logger("yrbac", level="DEBUG")
"""

from .logger import (
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    create_formatter,
    setup_logger,
    setup_logger_from_settings,
    get_logger,
)

__all__ = [
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "create_formatter",
    "setup_logger",
    "setup_logger_from_settings",
    "get_logger",
]
