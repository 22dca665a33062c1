"""容器数据模型.

JSON字段名与已持久化的注册表文件保持兼容.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from core.telemetry import ContainerInfo

ZERO_TIME = datetime(1, 1, 1)


class CgroupCPU(BaseModel):
    """cpu子系统设置."""

    shares: str = ""
    thresh_min: int = 0
    thresh_max: int = 0
    cooltime: datetime = ZERO_TIME  # 调整冷却时间, 目前仅作记录


class CgroupCPUSet(BaseModel):
    """cpuset子系统设置."""

    cpus: str = ""  # 核心集合表达式, 如 "0-3,7"
    thresh_min: int = 0
    thresh_max: int = 0
    min_cores: int = 0
    max_cores: int = 0
    cooltime: datetime = ZERO_TIME


class CgroupInfo(BaseModel):
    cpuset: CgroupCPUSet = Field(default_factory=CgroupCPUSet)
    cpu: CgroupCPU = Field(default_factory=CgroupCPU)


class Container(BaseModel):
    """受管理的容器."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str = ""
    path: str = ""
    cgroup_current: CgroupInfo = Field(default_factory=CgroupInfo, alias="cgroup_cur")
    cgroup_request: CgroupInfo = Field(default_factory=CgroupInfo, alias="cgroup_req")
    cadvisor: ContainerInfo | None = Field(default=None, alias="cAdvisor")
    cpu_usage_short: float = 0.0
    cpu_usage_long: float = 0.0
    timestamp: datetime | None = Field(default=None, alias="Timestamp")

    @property
    def telemetry_name(self) -> str:
        """cAdvisor中的容器名."""
        if self.path:
            return self.path
        return "/" + "/".join(part for part in (self.type, self.id) if part)

    def to_document(self) -> dict:
        """转换为可写入JSON文件的字典."""
        return self.model_dump(mode="json", by_alias=True)
