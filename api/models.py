"""API数据模型."""

from pydantic import BaseModel, Field

from core.controller import ControlResult


class SimpleResult(BaseModel):
    """控制请求响应."""

    result: bool = Field(description="请求是否成功")
    description: str = Field(default="", description="结果说明")

    @classmethod
    def from_control(cls, control: ControlResult) -> "SimpleResult":
        return cls(result=control.result, description=control.description)


class ContainerIdentity(BaseModel):
    """进程所属容器."""

    id: str
    type: str
    path: str


class LoopStatusResponse(BaseModel):
    """监控循环状态响应."""

    state: str
    interval: float
    skip_count: int
    registered: int
