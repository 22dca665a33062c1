"""系统配置管理."""

from enum import IntEnum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExitCode(IntEnum):
    """进程退出码."""

    NORMAL = 0
    NON_ROOT = 1
    LOG = 3
    REGISTRY = 4


class Settings(BaseSettings):
    """系统配置类."""

    model_config = SettingsConfigDict(
        env_prefix="CPERFC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # 服务器配置
    server_host: str = Field(default="0.0.0.0", description="服务监听地址")  # noqa: S104
    server_port: int = Field(default=8088, description="RESTful API 监听端口")

    # cAdvisor配置
    cadvisor_url: str = Field(
        default="http://localhost:8080",
        description="cAdvisor API 地址",
    )
    cadvisor_timeout: float | None = Field(
        default=10.0,
        description="cAdvisor 请求超时(秒), None 表示不限制",
    )

    # 监控配置
    monitoring_interval: float = Field(default=10, description="监控循环间隔(秒)")
    monitoring_num_stats: int = Field(default=64, description="每次拉取的采样点数")
    monitoring_skip_count: int = Field(
        default=5,
        description="cAdvisor 出错后跳过的监控周期数",
    )

    # cgroup配置
    cgroup_root: str = Field(default="/sys/fs/cgroup", description="cgroup挂载点")
    cgroup_subsystems: list[str] = Field(
        default=["cpuset"],
        description="支持的cgroup子系统",
    )
    proc_root: str = Field(default="/proc", description="procfs挂载点")

    # 容器注册表配置
    registry_path: str = Field(default="registered", description="已注册容器元数据文件")

    # 权限配置
    require_root: bool = Field(default=True, description="是否要求root权限运行")

    # 日志配置
    log_level: str = Field(default="INFO", description="日志级别")
    log_format: Literal["text", "json"] = Field(default="text", description="控制台日志格式")
    log_file: str | None = Field(default=None, description="日志文件路径, 为空则不写文件")
    log_max_bytes: int = Field(default=10485760, description="日志文件最大大小(字节)")
    log_backup_count: int = Field(default=5, description="日志备份数量")

    def get_registry_path(self) -> Path:
        """获取注册表文件的绝对路径."""
        registry_path = Path(self.registry_path).expanduser()
        if not registry_path.is_absolute():
            # 相对于当前工作目录
            registry_path = Path.cwd() / registry_path
        registry_path.parent.mkdir(parents=True, exist_ok=True)
        return registry_path

    def get_log_path(self) -> Path | None:
        """获取日志文件的绝对路径."""
        if not self.log_file:
            return None
        log_path = Path(self.log_file).expanduser()
        if not log_path.is_absolute():
            log_path = Path.cwd() / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return log_path


@lru_cache
def get_settings() -> Settings:
    """获取配置单例."""
    return Settings()
