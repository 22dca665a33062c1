"""已注册容器管理.

注册表同时被监控循环和控制API修改, 所有操作在同一把锁下串行执行,
保证内存中的数据与磁盘文件一致.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from core.container import Container
from utils.logger import get_logger

logger = get_logger(__name__)


class RegistryError(Exception):
    """注册表文件无法读取或写入."""


class ContainerRegistry:
    """容器注册表.

    以容器ID为键, 每次增删后立即将完整内容写回JSON文件.
    """

    def __init__(self, path: str | Path) -> None:
        """初始化注册表.

        Args:
            path: 注册表文件路径
        """
        self.path = Path(path)
        self._containers: dict[str, Container] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> int:
        """从文件加载已注册的容器.

        文件不存在时视为首次启动.

        Returns:
            加载的容器数量

        Raises:
            RegistryError: 文件存在但无法读取或内容无效
        """
        async with self._lock:
            self._containers = await asyncio.to_thread(self._read_document)
            self._loaded = True
            if self._containers:
                logger.info(
                    "%d 个容器受控:%s",
                    len(self._containers),
                    "".join(f"\n\t{c.telemetry_name}" for c in self._containers.values()),
                )
            else:
                logger.info("没有已注册的容器")
            return len(self._containers)

    async def store(self) -> None:
        """将注册表完整写回文件.

        Raises:
            RegistryError: 写入失败
        """
        async with self._lock:
            await self._store()

    async def add(self, container: Container) -> bool:
        """注册容器.

        Returns:
            已存在同ID容器时返回False

        Raises:
            RegistryError: 写入失败, 此时本次注册被撤销
        """
        async with self._lock:
            if container.id in self._containers:
                return False
            self._containers[container.id] = container.model_copy(deep=True)
            try:
                await self._store()
            except RegistryError:
                del self._containers[container.id]
                raise
            logger.info("注册容器: %s", container.telemetry_name)
            return True

    async def remove(self, cid: str) -> bool:
        """注销容器.

        Returns:
            容器未注册时返回False

        Raises:
            RegistryError: 写入失败, 此时本次注销被撤销
        """
        async with self._lock:
            container = self._containers.pop(cid, None)
            if container is None:
                return False
            try:
                await self._store()
            except RegistryError:
                self._containers[cid] = container
                raise
            logger.info("注销容器: %s", container.telemetry_name)
            return True

    async def get(self, cid: str) -> Container | None:
        """获取容器副本."""
        async with self._lock:
            container = self._containers.get(cid)
            return container.model_copy(deep=True) if container else None

    async def all(self) -> dict[str, Container]:
        """获取所有容器的副本."""
        async with self._lock:
            return {cid: c.model_copy(deep=True) for cid, c in self._containers.items()}

    async def is_registered(self, cid: str) -> bool:
        async with self._lock:
            return cid in self._containers

    async def update_usage(
        self,
        cid: str,
        cpu_usage_long: float,
        cpu_usage_short: float,
        timestamp: datetime,
    ) -> bool:
        """更新容器的CPU使用率(仅内存).

        Returns:
            容器已被注销时返回False
        """
        async with self._lock:
            container = self._containers.get(cid)
            if container is None:
                return False
            container.cpu_usage_long = cpu_usage_long
            container.cpu_usage_short = cpu_usage_short
            container.timestamp = timestamp
            return True

    async def _store(self) -> None:
        document = {cid: c.to_document() for cid, c in self._containers.items()}
        await asyncio.to_thread(self._write_document, document)

    def _read_document(self) -> dict[str, Container]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                document = json.load(f)
            if document is None:
                return {}
            if not isinstance(document, dict):
                raise RegistryError(f"注册表格式错误: {self.path}")
            return {cid: Container.model_validate(data) for cid, data in document.items()}
        except (OSError, ValueError, ValidationError) as e:
            raise RegistryError(f"无法加载注册表 {self.path}: {e}") from e

    def _write_document(self, document: dict) -> None:
        # 写临时文件后原子替换
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent="\t", ensure_ascii=False)
                    f.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise RegistryError(f"无法保存注册表 {self.path}: {e}") from e
