"""容器控制接口的核心逻辑."""

import asyncio
from pathlib import Path
from typing import NamedTuple

import psutil

from core.container import Container
from core.registry import ContainerRegistry
from core.telemetry import TelemetryError, TelemetryProvider
from utils.cgroup_manager import CGroupManager, parse_proc_cgroup
from utils.logger import get_logger

logger = get_logger(__name__)


class ControlResult(NamedTuple):
    """控制请求结果."""

    result: bool
    description: str


class ContainerController:
    """容器注册与状态查询.

    注册表中的容器在每次查询时都会核对cgroup是否仍然存在,
    已消失的容器会被自动移除.
    """

    def __init__(
        self,
        registry: ContainerRegistry,
        cgroup_manager: CGroupManager,
        telemetry: TelemetryProvider,
        proc_root: str | Path = "/proc",
    ) -> None:
        self.registry = registry
        self.cgroup_manager = cgroup_manager
        self.telemetry = telemetry
        self.proc_root = Path(proc_root)

    async def _container_exists(self, cid: str) -> bool:
        return await asyncio.to_thread(self.cgroup_manager.container_exists, cid)

    async def _lookup(self, cid: str) -> tuple[Container | None, bool]:
        """查找已注册且仍然存在的容器.

        Returns:
            (容器, 是否因cgroup消失而被移除)
        """
        container = await self.registry.get(cid)
        if container is None:
            return None, False

        if not await self._container_exists(cid):
            logger.warning("容器 %s 已注册但已消失, 清理", container.telemetry_name)
            await self.registry.remove(cid)
            return None, True

        return container, False

    async def register(self, cid: str) -> ControlResult:
        """注册容器.

        容器必须在cpuset子系统中存在. 注册时读取当前的cpuset设置,
        并从cAdvisor获取一次容器元数据(失败不影响注册).
        """
        if not await self._container_exists(cid):
            return ControlResult(False, "容器不存在")

        if await self.registry.is_registered(cid):
            return ControlResult(True, "容器已注册")

        container_type = await asyncio.to_thread(self.cgroup_manager.container_type, cid)
        container_path = await asyncio.to_thread(self.cgroup_manager.container_path, cid)
        container = Container(id=cid, type=container_type, path=container_path or "")

        try:
            container.cgroup_current.cpuset.cpus = await asyncio.to_thread(
                self.cgroup_manager.read_core_assignment,
                container_type,
                cid,
            )
        except OSError as e:
            logger.warning("读取容器 %s 的cpuset设置失败: %s", container.telemetry_name, e)

        try:
            info = await self.telemetry.container_info(container.telemetry_name, 1)
            container.cadvisor = info.metadata()
        except TelemetryError as e:
            logger.warning("获取容器 %s 的元数据失败: %s", container.telemetry_name, e)

        if not await self.registry.add(container):
            return ControlResult(True, "容器已注册")
        return ControlResult(True, "容器注册成功")

    async def unregister(self, cid: str) -> ControlResult:
        if await self.registry.remove(cid):
            return ControlResult(True, "容器已注销")
        return ControlResult(True, "容器未注册")

    async def is_registered(self, cid: str) -> ControlResult:
        container, vanished = await self._lookup(cid)
        if vanished:
            return ControlResult(False, "容器已注册但已消失, 已清理")
        if container is None:
            return ControlResult(False, "容器未注册")
        return ControlResult(True, "容器已注册")

    async def status(self, cid: str) -> Container | None:
        """获取已注册容器的状态, 未注册或已消失时返回None."""
        container, _ = await self._lookup(cid)
        return container

    async def reset_cpu(self, cid: str) -> ControlResult:
        """将容器的cgroup设置恢复为默认值."""
        container, vanished = await self._lookup(cid)
        if vanished:
            return ControlResult(False, "容器不存在, 已从注册表中移除")
        if container is None:
            return ControlResult(False, "容器未注册")

        await asyncio.to_thread(self.cgroup_manager.reset_cgroup_info, cid)
        return ControlResult(True, "容器cgroup设置已重置")

    async def reset_cpuset(self, cid: str) -> ControlResult:
        return await self.reset_cpu(cid)

    async def set_cpu(self, cid: str) -> ControlResult:
        logger.info("设置容器 %s 的cpu份额: 暂不支持", cid)
        return ControlResult(False, "暂不支持设置cpu份额")

    async def set_cpuset(self, cid: str) -> ControlResult:
        logger.info("设置容器 %s 的cpuset: 暂不支持", cid)
        return ControlResult(False, "暂不支持设置cpuset")

    async def process_container(self, pid: int) -> Container | None:
        """查询进程所属的容器.

        Args:
            pid: 进程ID

        Returns:
            容器标识(ID、类型、路径), 进程不属于cpuset层级时返回None

        Raises:
            ProcessLookupError: 进程不存在
        """
        try:
            name = await asyncio.to_thread(lambda: psutil.Process(pid).name())
        except psutil.NoSuchProcess as e:
            raise ProcessLookupError(pid) from e
        except psutil.AccessDenied:
            name = ""
        logger.info("进程 %d: %s", pid, name)

        cgroup_file = self.proc_root / str(pid) / "cgroup"
        try:
            content = await asyncio.to_thread(cgroup_file.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise ProcessLookupError(pid) from e

        cgroup_path = parse_proc_cgroup(content)
        if cgroup_path is None:
            return None

        segments = [s for s in cgroup_path.split("/") if s]
        if not segments:
            # 位于默认容器(根cgroup)
            return Container(id="", type="", path="/")
        return Container(
            id=segments[-1],
            type=segments[-2] if len(segments) >= 2 else "",
            path="/" + "/".join(segments),
        )
