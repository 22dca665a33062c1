"""CPU 核心集合表达式编解码.

cgroup ``cpuset.cpus`` 与 cAdvisor 的 ``cpu.mask`` 使用同一种列表格式,
例如 ``"0-3,7"`` 表示核心 0,1,2,3,7.
"""

from collections.abc import Iterable


class CpusetParseError(ValueError):
    """核心集合表达式格式错误."""

    def __init__(self, expression: str, token: str) -> None:
        super().__init__(f"无效的核心集合表达式 {expression!r}: 非法片段 {token!r}")
        self.expression = expression
        self.token = token


def _parse_core_id(expression: str, token: str, value: str) -> int:
    if not (value.isascii() and value.isdigit()):
        raise CpusetParseError(expression, token)
    return int(value)


def decode_cpuset(expression: str) -> list[int]:
    """将核心集合表达式解码为核心编号列表.

    顺序与输入一致, 区间按升序展开. 空表达式返回空列表.

    Args:
        expression: 形如 ``"0-3,7"`` 的表达式

    Returns:
        核心编号列表

    Raises:
        CpusetParseError: 存在非数字片段或起点大于终点的区间
    """
    expression = expression.strip()
    if not expression:
        return []

    cores: list[int] = []
    for token in expression.split(","):
        token = token.strip()
        bounds = token.split("-")
        if len(bounds) == 1:
            cores.append(_parse_core_id(expression, token, bounds[0]))
        elif len(bounds) == 2:
            start = _parse_core_id(expression, token, bounds[0].strip())
            end = _parse_core_id(expression, token, bounds[1].strip())
            if start > end:
                raise CpusetParseError(expression, token)
            cores.extend(range(start, end + 1))
        else:
            raise CpusetParseError(expression, token)
    return cores


def encode_cpuset(core_ids: Iterable[int]) -> str:
    """将升序核心编号列表编码为最简表达式.

    连续编号合并为 ``start-end``, 重复编号并入当前区间.

    Args:
        core_ids: 非空且非递减的核心编号序列

    Returns:
        形如 ``"0-3,7"`` 的表达式

    Raises:
        ValueError: 输入为空或未排序
    """
    cores = list(core_ids)
    if not cores:
        raise ValueError("核心编号列表不能为空")

    ranges: list[tuple[int, int]] = []
    start = end = cores[0]
    for core in cores[1:]:
        if core < end:
            raise ValueError(f"核心编号列表必须升序排列: {cores}")
        if core <= end + 1:
            end = core
        else:
            ranges.append((start, end))
            start = end = core
    ranges.append((start, end))

    return ",".join(str(s) if s == e else f"{s}-{e}" for s, e in ranges)
