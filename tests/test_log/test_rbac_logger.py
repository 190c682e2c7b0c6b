"""日志工具测试"""

import logging

import pytest

from yrbac.config import LoggingSettings
from yrbac.log import (
    MicrosecondFormatter,
    create_formatter,
    get_logger,
    setup_logger,
    setup_logger_from_settings,
)


@pytest.fixture
def restore_yrbac_logger():
    """测试结束后恢复 yrbac 日志器，避免影响 caplog"""
    logger = logging.getLogger("yrbac")
    saved = (logger.level, logger.propagate, list(logger.handlers))
    yield logger
    for handler in logger.handlers:
        if handler not in saved[2]:
            handler.close()
    logger.setLevel(saved[0])
    logger.propagate = saved[1]
    logger.handlers[:] = saved[2]


class TestGetLogger:
    """测试日志器获取"""
    
    def test_short_name_prefixed(self):
        """测试简写自动添加前缀"""
        assert get_logger("cache").name == "yrbac.cache"
    
    def test_dotted_name_kept(self):
        """测试带点号的名称原样使用"""
        assert get_logger("yrbac.store").name == "yrbac.store"
        assert get_logger("myapp.rbac").name == "myapp.rbac"
    
    def test_root_name(self):
        """测试 yrbac 本身"""
        assert get_logger("yrbac").name == "yrbac"
    
    def test_infer_module_name(self):
        """测试无参数时使用调用模块名"""
        assert get_logger().name == __name__


class TestFormatter:
    """测试格式化器"""
    
    def test_microseconds(self):
        """测试微秒精度"""
        formatter = create_formatter("%(asctime)s %(message)s")
        assert isinstance(formatter, MicrosecondFormatter)
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "hello", None, None)
        text = formatter.format(record)
        timestamp = text.split(" hello")[0]
        assert len(timestamp.split(".")[-1]) == 6
    
    def test_plain_formatter(self):
        """测试关闭微秒"""
        formatter = create_formatter(use_microseconds=False)
        assert not isinstance(formatter, MicrosecondFormatter)


class TestSetupLogger:
    """测试日志器配置"""
    
    def test_console_handler(self, restore_yrbac_logger):
        """测试控制台输出"""
        logger = setup_logger("yrbac", level="DEBUG")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
    
    def test_file_handler(self, restore_yrbac_logger, tmp_path):
        """测试文件输出并自动创建目录"""
        log_file = tmp_path / "logs" / "rbac.log"
        logger = setup_logger("yrbac", log_file=str(log_file), console=False)
        logger.info("permission cache cleared")
        for handler in logger.handlers:
            handler.flush()
        assert "permission cache cleared" in log_file.read_text(encoding="utf-8")
    
    def test_invalid_level_falls_back(self, restore_yrbac_logger):
        """测试无效级别使用 INFO"""
        assert setup_logger("yrbac", level="LOUD", console=False).level == logging.INFO
    
    def test_from_settings(self, restore_yrbac_logger):
        """测试从 LoggingSettings 配置"""
        logger = setup_logger_from_settings(LoggingSettings(level="WARNING", console=False, propagate=False))
        assert logger.name == "yrbac"
        assert logger.level == logging.WARNING
        assert logger.propagate is False
        assert logger.handlers == []
