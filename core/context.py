"""应用上下文.

进程内唯一的各组件实例由上下文统一创建和持有, 不使用模块级全局变量.
"""

import os
import signal
from collections.abc import Callable
from dataclasses import dataclass, field

from config.settings import Settings
from core.controller import ContainerController
from core.monitor import MonitoringLoop
from core.registry import ContainerRegistry
from core.telemetry import CAdvisorClient, TelemetryProvider
from utils.cgroup_manager import CGroupManager, SubsystemManager


def _terminate_self() -> None:
    # 由uvicorn接管信号并优雅退出
    os.kill(os.getpid(), signal.SIGTERM)


@dataclass
class AppContext:
    """应用上下文."""

    settings: Settings
    subsystem_manager: SubsystemManager
    cgroup_manager: CGroupManager
    registry: ContainerRegistry
    telemetry: TelemetryProvider
    monitor: MonitoringLoop
    controller: ContainerController
    request_exit: Callable[[], None] = field(default=_terminate_self)

    @classmethod
    def create(
        cls,
        settings: Settings,
        telemetry: TelemetryProvider | None = None,
        request_exit: Callable[[], None] | None = None,
    ) -> "AppContext":
        """根据配置创建所有组件.

        Args:
            settings: 配置
            telemetry: 遥测数据源, 默认连接配置中的cAdvisor
            request_exit: 收到exit控制命令时调用, 默认向自身发送SIGTERM
        """
        subsystem_manager = SubsystemManager(settings.cgroup_root, settings.cgroup_subsystems)
        cgroup_manager = CGroupManager(subsystem_manager)
        registry = ContainerRegistry(settings.get_registry_path())
        if telemetry is None:
            telemetry = CAdvisorClient(settings.cadvisor_url, timeout=settings.cadvisor_timeout)

        monitor = MonitoringLoop(
            registry,
            cgroup_manager,
            telemetry,
            interval=settings.monitoring_interval,
            num_stats=settings.monitoring_num_stats,
            skip_count=settings.monitoring_skip_count,
        )
        controller = ContainerController(
            registry,
            cgroup_manager,
            telemetry,
            proc_root=settings.proc_root,
        )
        return cls(
            settings=settings,
            subsystem_manager=subsystem_manager,
            cgroup_manager=cgroup_manager,
            registry=registry,
            telemetry=telemetry,
            monitor=monitor,
            controller=controller,
            request_exit=request_exit or _terminate_self,
        )
