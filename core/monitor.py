"""容器监控循环."""

import asyncio
import logging
from enum import Enum

from core.accounting import UsageError, WindowMode, assigned_cores, calc_cpu_usage
from core.registry import ContainerRegistry
from core.telemetry import MachineInfo, TelemetryError, TelemetryProvider
from utils.cgroup_manager import CGroupManager
from utils.logger import get_logger

logger = get_logger(__name__)


class LoopState(str, Enum):
    """监控循环状态."""

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"  # 终止状态


class MonitoringLoop:
    """周期性监控任务.

    每个周期:
    1. 冷却计数大于0时跳过本周期
    2. 获取宿主机信息, 失败则进入冷却
    3. 逐个拉取已注册容器的采样历史, 任一失败则中止本周期并进入冷却
    4. 计算长/短窗口CPU使用率并写回注册表
    """

    def __init__(
        self,
        registry: ContainerRegistry,
        cgroup_manager: CGroupManager,
        telemetry: TelemetryProvider,
        interval: float = 10,
        num_stats: int = 64,
        skip_count: int = 5,
    ) -> None:
        """初始化监控循环.

        Args:
            registry: 容器注册表
            cgroup_manager: cgroup路径解析器
            telemetry: 遥测数据源
            interval: 监控间隔(秒)
            num_stats: 每个容器每次拉取的采样点数
            skip_count: 遥测失败后跳过的周期数
        """
        self.registry = registry
        self.cgroup_manager = cgroup_manager
        self.telemetry = telemetry
        self.interval = interval
        self.num_stats = num_stats
        self.max_skip_count = skip_count

        self.skip_count = 0
        self._state = LoopState.PAUSED
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._control_lock = asyncio.Lock()

    @property
    def state(self) -> LoopState:
        return self._state

    async def start(self) -> None:
        """(重新)启动监控, 取消之前的循环并创建新的循环任务.

        Raises:
            RuntimeError: 循环已停止
        """
        async with self._control_lock:
            if self._state is LoopState.STOPPED:
                raise RuntimeError("监控循环已停止, 无法重新启动")

            await self._cancel_task()
            self.skip_count = 0
            self._stop_event = asyncio.Event()
            self._task = asyncio.create_task(self._loop(self._stop_event))
            self._state = LoopState.RUNNING
            logger.info("监控已启动: interval=%.1fs", self.interval)

    async def resume(self) -> None:
        """恢复监控."""
        await self.start()

    async def pause(self) -> None:
        """暂停监控.

        等待正在执行的周期结束后返回, 返回后不会再修改注册表.

        Raises:
            RuntimeError: 循环已停止
        """
        async with self._control_lock:
            if self._state is LoopState.STOPPED:
                raise RuntimeError("监控循环已停止")

            await self._cancel_task()
            self._state = LoopState.PAUSED
            logger.info("监控已暂停")

    async def stop(self) -> None:
        """停止监控, 之后不可再启动."""
        async with self._control_lock:
            await self._cancel_task()
            self._state = LoopState.STOPPED
            logger.info("监控已停止")

    async def _cancel_task(self) -> None:
        if self._task is None:
            return

        task, self._task = self._task, None
        if self._stop_event is not None:
            self._stop_event.set()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self, stop_event: asyncio.Event) -> None:
        """监控循环, 只在两个周期之间响应停止信号."""
        logger.info("开始监控循环")

        while True:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                break
            except TimeoutError:
                pass

            try:
                await self.tick()
            except Exception:
                logger.exception("监控循环出错")

        logger.info("监控循环结束")

    async def tick(self) -> bool:
        """执行一个监控周期.

        Returns:
            本周期是否完成了容器更新
        """
        if self.skip_count > 0:
            logger.warning("cAdvisor 冷却中(%d)", self.skip_count)
            self.skip_count -= 1
            return False

        try:
            machine = await self.telemetry.machine_info()
        except TelemetryError as e:
            logger.error("获取宿主机信息失败: %s", e)
            self.skip_count = self.max_skip_count
            return False

        containers = await self.registry.all()
        if not containers:
            return True

        verbose = logger.isEnabledFor(logging.DEBUG)
        lines = [f"容器({len(containers)})监控."]
        for cid, container in containers.items():
            name = container.telemetry_name

            if not await asyncio.to_thread(self.cgroup_manager.container_exists, cid):
                logger.warning("容器 %s 已消失, 从注册表中移除", name)
                await self.registry.remove(cid)
                continue

            try:
                info = await self.telemetry.container_info(name, self.num_stats)
            except TelemetryError as e:
                logger.error("获取容器信息失败, 中止本周期: %s", e)
                self.skip_count = self.max_skip_count
                return False

            try:
                long_usage = calc_cpu_usage(info, WindowMode.LONG)
                short_usage = calc_cpu_usage(info, WindowMode.SHORT)
            except UsageError as e:
                logger.debug("无法计算容器 %s 的CPU使用率: %s", name, e)
                continue

            await self.registry.update_usage(
                cid,
                cpu_usage_long=long_usage.ratio,
                cpu_usage_short=short_usage.ratio,
                timestamp=long_usage.timestamp,
            )

            if verbose:
                title = f"{info.name}({info.spec.image})" if info.namespace == "docker" else info.name or name
                lines.append(title)
                cores = assigned_cores(info)
                for usage in (long_usage, short_usage):
                    lines.append(
                        "\t" + _format_usage(usage.ratio, usage.duration, cores, info.spec.cpu.mask, machine),
                    )

        if verbose:
            logger.debug("\n\t".join(lines))
        return True


def _format_usage(ratio: float, duration: int, cores: int, mask: str, machine: MachineInfo) -> str:
    return (
        f"{ratio:.4f}% of {cores}({mask})/{machine.num_cores}(0-{machine.num_cores - 1}) cores "
        f"at {machine.cpu_frequency_khz / 1000000:.2f}GHz for {duration} seconds"
    )
