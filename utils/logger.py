"""日志管理模块.

控制台日志可选文本或JSON格式, 文件日志按大小轮转并固定使用JSON格式,
方便与cAdvisor采样记录一起导入日志系统.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

from pythonjsonlogger import jsonlogger

from config.settings import Settings, get_settings

SERVICE_NAME = "cperfc"

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"
JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(module)s %(function)s %(message)s"

# 第三方库日志级别, httpx 每次请求都会输出INFO日志
LIBRARY_LOG_LEVELS = {
    "uvicorn": logging.INFO,
    "fastapi": logging.INFO,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON日志格式化器, 附加服务名和进程号."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = SERVICE_NAME
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["pid"] = record.process


def build_formatter(log_format: str) -> logging.Formatter:
    """按格式名创建格式化器.

    Args:
        log_format: ``text`` 或 ``json``
    """
    if log_format == "json":
        return CustomJsonFormatter(JSON_FORMAT, timestamp=True)
    return logging.Formatter(TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def setup_logging(settings: Settings | None = None) -> None:
    """配置根日志记录器.

    重复调用会替换之前安装的处理器.

    Args:
        settings: 配置, 默认使用全局配置

    Raises:
        OSError: 日志文件无法打开
    """
    settings = settings or get_settings()
    level = settings.log_level.upper()

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(build_formatter(settings.log_format))
    handlers.append(console_handler)

    log_path = settings.get_log_path()
    if log_path is not None:
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(build_formatter("json"))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(level)
    for handler in handlers:
        handler.setLevel(level)
        root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    """获取指定名称的日志记录器, 通常传入 ``__name__``."""
    return logging.getLogger(name)
