"""容器CPU使用率计算."""

from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple

from core.telemetry import ContainerInfo
from utils.cpuset import CpusetParseError, decode_cpuset

NANOSECONDS_PER_SECOND = 1_000_000_000


class WindowMode(str, Enum):
    """采样窗口."""

    LONG = "long"  # 第一个采样点 -> 最后一个采样点
    SHORT = "short"  # 倒数第二个采样点 -> 最后一个采样点


class UsageSample(NamedTuple):
    """CPU使用率计算结果."""

    ratio: float  # 占已分配核心的百分比(0-100)
    duration: int  # 窗口时长(秒)
    timestamp: datetime  # 最后一个采样点的时间


class UsageError(Exception):
    """无法计算CPU使用率."""


class InsufficientSamplesError(UsageError):
    """采样点不足两个."""


def _elapsed_nanoseconds(start: datetime, end: datetime) -> int:
    return (end - start) // timedelta(microseconds=1) * 1000


def assigned_cores(info: ContainerInfo) -> int:
    """容器被分配的核心数, 由cpu.mask解码得到."""
    try:
        return len(decode_cpuset(info.spec.cpu.mask))
    except CpusetParseError as e:
        raise UsageError(str(e)) from e


def calc_cpu_usage(info: ContainerInfo, window: WindowMode = WindowMode.LONG) -> UsageSample:
    """根据两个采样点计算CPU使用率.

    使用率按容器已分配的核心数归一化, 而不是宿主机的核心数:
    ``ratio = usage_delta / (elapsed_ns * cores) * 100``.

    Args:
        info: 带采样历史的容器信息
        window: 采样窗口

    Returns:
        使用率、窗口时长(秒, 向下取整)和最新采样时间

    Raises:
        InsufficientSamplesError: 采样点少于两个
        UsageError: 核心数为0或时间间隔不为正
    """
    stats = info.stats
    if len(stats) < 2:
        raise InsufficientSamplesError(f"采样点不足: {len(stats)}")

    prev = stats[-2] if window is WindowMode.SHORT else stats[0]
    curr = stats[-1]

    time_delta = _elapsed_nanoseconds(prev.timestamp, curr.timestamp)
    if time_delta <= 0:
        raise UsageError(f"采样时间间隔无效: {time_delta}ns")

    cores = assigned_cores(info)
    if cores == 0:
        raise UsageError(f"容器未分配CPU核心: mask={info.spec.cpu.mask!r}")

    usage_delta = curr.cpu.usage.total - prev.cpu.usage.total
    ratio = usage_delta / (time_delta * cores) * 100
    return UsageSample(
        ratio=ratio,
        duration=time_delta // NANOSECONDS_PER_SECOND,
        timestamp=curr.timestamp,
    )
