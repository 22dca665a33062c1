"""配置管理模块."""

from config.settings import ExitCode, Settings, get_settings

__all__ = ["ExitCode", "Settings", "get_settings"]
