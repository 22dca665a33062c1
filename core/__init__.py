"""核心模块."""

from core.accounting import InsufficientSamplesError, UsageError, UsageSample, WindowMode, calc_cpu_usage
from core.container import CgroupCPU, CgroupCPUSet, CgroupInfo, Container
from core.controller import ContainerController, ControlResult
from core.monitor import LoopState, MonitoringLoop
from core.registry import ContainerRegistry, RegistryError
from core.telemetry import CAdvisorClient, ContainerInfo, MachineInfo, TelemetryError, TelemetryProvider

__all__ = [
    "CAdvisorClient",
    "CgroupCPU",
    "CgroupCPUSet",
    "CgroupInfo",
    "Container",
    "ContainerController",
    "ContainerInfo",
    "ContainerRegistry",
    "ControlResult",
    "InsufficientSamplesError",
    "LoopState",
    "MachineInfo",
    "MonitoringLoop",
    "RegistryError",
    "TelemetryError",
    "TelemetryProvider",
    "UsageError",
    "UsageSample",
    "WindowMode",
    "calc_cpu_usage",
]
