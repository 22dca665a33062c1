"""cgroup 层级查询.

在 cgroup v1 层级中按容器ID定位其所在的子系统目录, 并读取控制文件.
"""

import os
from collections.abc import Iterable
from pathlib import Path

from utils.logger import get_logger

logger = get_logger(__name__)

CPUSET_SUBSYSTEM = "cpuset"


class SubsystemManager:
    """已挂载cgroup子系统管理器.

    启动时扫描一次挂载点, 之后只读.
    """

    def __init__(
        self,
        cgroup_root: str | Path = "/sys/fs/cgroup",
        supported: Iterable[str] = (CPUSET_SUBSYSTEM,),
    ) -> None:
        """初始化子系统管理器.

        Args:
            cgroup_root: cgroup挂载点
            supported: 支持的子系统名称
        """
        self.cgroup_root = Path(cgroup_root)
        self.supported = frozenset(supported)
        self._paths: dict[str, Path] = {}

    def initialize(self) -> None:
        """扫描挂载点, 记录受支持的子系统路径."""
        logger.info("初始化cgroup子系统: root=%s", self.cgroup_root)
        self._paths.clear()

        try:
            entries = sorted(os.scandir(self.cgroup_root), key=lambda e: e.name)
        except OSError as e:
            logger.warning("无法读取cgroup挂载点 %s: %s", self.cgroup_root, e)
            return

        for entry in entries:
            if entry.name in self.supported and entry.is_dir(follow_symlinks=False):
                self._paths[entry.name] = Path(entry.path)

        logger.info("支持的cgroup子系统: %s", self.subsystems)

    @property
    def subsystems(self) -> list[str]:
        """已挂载且受支持的子系统."""
        return list(self._paths)

    def get_subsystem_path(self, subsystem: str) -> Path | None:
        """获取子系统根目录, 未挂载时返回None."""
        return self._paths.get(subsystem)


def parse_proc_cgroup(content: str, subsystem: str = CPUSET_SUBSYSTEM) -> str | None:
    """解析 ``/proc/<pid>/cgroup`` 内容.

    每行格式为 ``hierarchy-ID:controller-list:cgroup-path``.

    Returns:
        指定子系统对应的cgroup路径, 未找到返回None
    """
    for line in content.splitlines():
        parts = line.strip().split(":", 2)
        if len(parts) != 3:
            continue
        if subsystem in parts[1].split(","):
            return parts[2]
    return None


class CGroupManager:
    """cgroup路径解析器.

    通过递归遍历子系统目录树, 将容器ID映射到cgroup路径和容器类型.
    """

    def __init__(self, subsystem_manager: SubsystemManager) -> None:
        """初始化cgroup管理器.

        Args:
            subsystem_manager: 已初始化的子系统管理器
        """
        self.subsystem_manager = subsystem_manager

    def find_container_parents(self, subsystem: str, cid: str) -> list[Path]:
        """查找名为 ``cid`` 的目录的所有父目录.

        遍历不会在首次匹配后停止, 同名目录在不同层级出现时全部返回.

        Args:
            subsystem: 子系统名称
            cid: 容器ID

        Returns:
            父目录列表, 子系统未挂载时为空
        """
        parents: list[Path] = []
        root = self.subsystem_manager.get_subsystem_path(subsystem)
        if root is None or not cid:
            return parents

        def walk(parent: Path) -> None:
            try:
                children = sorted(os.scandir(parent), key=lambda e: e.name)
            except OSError:
                return
            for child in children:
                if not child.is_dir(follow_symlinks=False):
                    continue
                if child.name == cid:
                    parents.append(parent)
                else:
                    walk(Path(child.path))

        walk(root)
        return parents

    def container_full_paths(self, subsystem: str, cid: str) -> list[Path]:
        """获取容器cgroup目录的完整路径."""
        return [parent / cid for parent in self.find_container_parents(subsystem, cid)]

    def container_exists(self, cid: str) -> bool:
        """检查容器在cpuset子系统中是否存在."""
        return len(self.find_container_parents(CPUSET_SUBSYSTEM, cid)) >= 1

    def container_type(self, cid: str) -> str:
        """获取容器类型(如docker), 位于子系统根目录或不存在时返回空字符串."""
        parents = self.find_container_parents(CPUSET_SUBSYSTEM, cid)
        if not parents:
            return ""
        if parents[0] == self.subsystem_manager.get_subsystem_path(CPUSET_SUBSYSTEM):
            return ""
        return parents[0].name

    def container_path(self, cid: str) -> str | None:
        """获取容器相对子系统根目录的cgroup路径, 如 ``/docker/<id>``."""
        root = self.subsystem_manager.get_subsystem_path(CPUSET_SUBSYSTEM)
        full_paths = self.container_full_paths(CPUSET_SUBSYSTEM, cid)
        if root is None or not full_paths:
            return None
        return "/" + full_paths[0].relative_to(root).as_posix()

    def read_core_assignment(
        self,
        container_type: str,
        cid: str,
        filename: str = "cpuset.cpus",
    ) -> str:
        """读取容器cpuset控制文件内容.

        Args:
            container_type: 容器类型, 空字符串表示位于子系统根目录
            cid: 容器ID
            filename: 控制文件名

        Returns:
            去除首尾空白后的文件内容

        Raises:
            FileNotFoundError: 子系统未挂载或文件不存在
        """
        root = self.subsystem_manager.get_subsystem_path(CPUSET_SUBSYSTEM)
        if root is None:
            raise FileNotFoundError(f"cgroup子系统未挂载: {CPUSET_SUBSYSTEM}")

        path = root / container_type / cid / filename
        return path.read_text(encoding="utf-8").strip()

    def reset_cgroup_info(self, cid: str) -> bool:
        """将容器的cgroup设置恢复为默认值.

        目前各子系统均未实现写入逻辑.

        Returns:
            容器是否存在
        """
        found = False
        for subsystem in self.subsystem_manager.subsystems:
            full_paths = self.container_full_paths(subsystem, cid)
            if not full_paths:
                continue
            found = True
            self._reset_subsystem(subsystem, full_paths[0])
        return found

    def _reset_subsystem(self, subsystem: str, full_path: Path) -> None:
        if subsystem == CPUSET_SUBSYSTEM:
            logger.info("重置cpuset设置(未实现): %s", full_path)
        else:
            logger.debug("不支持重置的子系统: %s", subsystem)
