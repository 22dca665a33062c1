"""
测试公共夹具
"""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from config.settings import Settings
from core.telemetry import ContainerInfo, MachineInfo, TelemetryError
from utils.cgroup_manager import CGroupManager, SubsystemManager

BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


def build_container_info(
    name: str,
    mask: str,
    samples: list[tuple[int, int]],
    namespace: str = "docker",
) -> ContainerInfo:
    """构造cAdvisor容器信息.

    Args:
        name: 容器名
        mask: cpu.mask
        samples: (距基准时间的纳秒数, 累计CPU使用纳秒数) 列表
        namespace: 命名空间
    """
    return ContainerInfo.model_validate(
        {
            "name": name,
            "namespace": namespace,
            "spec": {"image": "nginx:latest", "has_cpu": True, "cpu": {"mask": mask}},
            "stats": [
                {
                    "timestamp": (BASE_TIME + timedelta(microseconds=offset // 1000)).isoformat(),
                    "cpu": {"usage": {"total": usage}},
                }
                for offset, usage in samples
            ],
        },
    )


class FakeTelemetry:
    """内存中的遥测数据源."""

    def __init__(self) -> None:
        self.machine = MachineInfo(num_cores=8, cpu_frequency_khz=2400000)
        self.containers: dict[str, ContainerInfo] = {}
        self.fail_machine = False
        self.fail_containers: set[str] = set()
        self.calls: list[tuple] = []

    async def machine_info(self) -> MachineInfo:
        self.calls.append(("machine",))
        if self.fail_machine:
            raise TelemetryError("cAdvisor 不可用")
        return self.machine

    async def container_info(self, name: str, num_stats: int) -> ContainerInfo:
        self.calls.append(("container", name, num_stats))
        if name in self.fail_containers or name not in self.containers:
            raise TelemetryError(f"未知容器: {name}")
        return self.containers[name].model_copy(deep=True)


@pytest.fixture
def make_info():
    return build_container_info


@pytest.fixture
def cgroup_root(tmp_path: Path) -> Path:
    """构造cgroup v1目录树.

    cpuset/
      docker/abc123/cpuset.cpus   (0-1)
      lxc/web/cpuset.cpus         (2,4-5)
      standalone/
    """
    root = tmp_path / "cgroup"
    cpuset = root / "cpuset"

    (cpuset / "docker" / "abc123").mkdir(parents=True)
    (cpuset / "docker" / "abc123" / "cpuset.cpus").write_text("0-1\n")
    (cpuset / "lxc" / "web").mkdir(parents=True)
    (cpuset / "lxc" / "web" / "cpuset.cpus").write_text("2,4-5\n")
    (cpuset / "standalone").mkdir()
    (cpuset / "cpuset.cpus").write_text("0-7\n")

    (root / "cpu,cpuacct").mkdir()
    (root / "memory").mkdir()
    return root


@pytest.fixture
def subsystem_manager(cgroup_root: Path) -> SubsystemManager:
    manager = SubsystemManager(cgroup_root)
    manager.initialize()
    return manager


@pytest.fixture
def cgroup_manager(subsystem_manager: SubsystemManager) -> CGroupManager:
    return CGroupManager(subsystem_manager)


@pytest.fixture
def telemetry() -> FakeTelemetry:
    return FakeTelemetry()


@pytest.fixture
def settings(tmp_path: Path, cgroup_root: Path) -> Settings:
    return Settings(
        _env_file=None,
        cgroup_root=str(cgroup_root),
        proc_root=str(tmp_path / "proc"),
        registry_path=str(tmp_path / "data" / "registered"),
        require_root=False,
        monitoring_interval=3600,
    )
