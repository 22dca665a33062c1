"""容器遥测数据源(cAdvisor)."""

import re
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from utils.logger import get_logger

logger = get_logger(__name__)

CADVISOR_API_VERSION = "v1.3"

# cAdvisor 输出纳秒精度的时间戳, datetime 只保留到微秒
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class TelemetryError(Exception):
    """遥测数据源不可用或返回了无效数据."""


class MachineInfo(BaseModel):
    """宿主机信息."""

    model_config = ConfigDict(extra="allow")

    num_cores: int = 0
    cpu_frequency_khz: int = 0


class CpuSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    limit: int | None = None
    mask: str = ""


class ContainerSpec(BaseModel):
    model_config = ConfigDict(extra="allow")

    image: str = ""
    has_cpu: bool = False
    cpu: CpuSpec = Field(default_factory=CpuSpec)


class CpuUsage(BaseModel):
    model_config = ConfigDict(extra="allow")

    total: int = Field(default=0, description="累计CPU使用时间(纳秒)")


class CpuStats(BaseModel):
    model_config = ConfigDict(extra="allow")

    usage: CpuUsage = Field(default_factory=CpuUsage)


class ContainerStats(BaseModel):
    """单个采样点."""

    model_config = ConfigDict(extra="allow")

    timestamp: datetime
    cpu: CpuStats = Field(default_factory=CpuStats)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _truncate_nanoseconds(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _FRACTION_RE.sub(r"\1", value)
        return value


class ContainerInfo(BaseModel):
    """容器信息及最近的采样历史."""

    model_config = ConfigDict(extra="allow")

    name: str = ""
    namespace: str = ""
    aliases: list[str] = Field(default_factory=list)
    spec: ContainerSpec = Field(default_factory=ContainerSpec)
    stats: list[ContainerStats] = Field(default_factory=list)

    def metadata(self) -> "ContainerInfo":
        """返回去掉采样历史的副本."""
        return self.model_copy(update={"stats": []}, deep=True)


class TelemetryProvider(Protocol):
    """遥测数据源接口."""

    async def machine_info(self) -> MachineInfo: ...

    async def container_info(self, name: str, num_stats: int) -> ContainerInfo: ...


class CAdvisorClient:
    """cAdvisor REST API 客户端."""

    def __init__(
        self,
        base_url: str,
        timeout: float | None = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化客户端.

        Args:
            base_url: cAdvisor 地址, 如 ``http://localhost:8080``
            timeout: 请求超时(秒), None 表示不限制
            transport: 自定义传输层
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api/{CADVISOR_API_VERSION}",
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def close(self) -> None:
        """关闭底层连接池."""
        await self._client.aclose()

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        logger.debug("请求cAdvisor: %s %s", method, url)
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise TelemetryError(f"cAdvisor[{self.base_url}] 请求失败: {e}") from e
        except ValueError as e:
            raise TelemetryError(f"cAdvisor[{self.base_url}] 返回了无效JSON: {e}") from e

    async def machine_info(self) -> MachineInfo:
        """获取宿主机信息."""
        payload = await self._request_json("GET", "/machine")
        try:
            return MachineInfo.model_validate(payload)
        except ValidationError as e:
            raise TelemetryError(f"无效的宿主机信息: {e}") from e

    async def container_info(self, name: str, num_stats: int) -> ContainerInfo:
        """获取容器信息及最近 ``num_stats`` 个采样点.

        Args:
            name: cAdvisor 容器名, 即cgroup路径, 如 ``/docker/<id>``
            num_stats: 采样点数
        """
        name = "/" + name.lstrip("/")
        payload = await self._request_json(
            "POST",
            f"/containers{name}",
            json={"num_stats": num_stats},
        )
        try:
            return ContainerInfo.model_validate(payload)
        except ValidationError as e:
            raise TelemetryError(f"无效的容器信息[{name}]: {e}") from e
