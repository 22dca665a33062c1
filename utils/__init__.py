"""工具模块."""

from utils.cgroup_manager import CPUSET_SUBSYSTEM, CGroupManager, SubsystemManager, parse_proc_cgroup
from utils.cpuset import CpusetParseError, decode_cpuset, encode_cpuset
from utils.logger import get_logger, setup_logging

__all__ = [
    "CPUSET_SUBSYSTEM",
    "CGroupManager",
    "CpusetParseError",
    "SubsystemManager",
    "decode_cpuset",
    "encode_cpuset",
    "get_logger",
    "parse_proc_cgroup",
    "setup_logging",
]
