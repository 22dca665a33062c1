"""API路由."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from api.models import ContainerIdentity, LoopStatusResponse, SimpleResult
from core.container import Container
from core.context import AppContext
from core.controller import ContainerController
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

CONTAINER_METHODS = ["GET", "POST"]


def get_context(request: Request) -> AppContext:
    """获取应用上下文."""
    return request.app.state.context


def get_controller(context: AppContext = Depends(get_context)) -> ContainerController:
    return context.controller


@router.get("/")
async def index() -> dict[str, str]:
    logger.info("index")
    return {"service": "cperfc"}


@router.api_route("/control/{control_msg}", methods=CONTAINER_METHODS, response_class=PlainTextResponse)
async def control(
    control_msg: str,
    background_tasks: BackgroundTasks,
    context: AppContext = Depends(get_context),
) -> str:
    """控制监控循环: resume / pause / exit."""
    logger.info("收到控制请求: %s", control_msg)
    command = control_msg.lower()

    try:
        if command == "resume":
            await context.monitor.resume()
            return "resumed\n"
        if command == "pause":
            await context.monitor.pause()
            return "paused\n"
        if command == "exit":
            await context.monitor.stop()
            background_tasks.add_task(context.request_exit)
            return "exited\n"
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))

    raise HTTPException(status_code=400, detail=f"未知的控制命令: {control_msg}")


@router.get("/api/monitor/status")
async def monitor_status(context: AppContext = Depends(get_context)) -> LoopStatusResponse:
    """获取监控循环状态."""
    registered = await context.registry.all()
    return LoopStatusResponse(
        state=context.monitor.state.value,
        interval=context.monitor.interval,
        skip_count=context.monitor.skip_count,
        registered=len(registered),
    )


@router.api_route("/api/process/getcontainer/{pid}", methods=CONTAINER_METHODS)
async def process_get_container(
    pid: str,
    controller: ContainerController = Depends(get_controller),
) -> ContainerIdentity:
    """查询进程所属的容器."""
    try:
        process_id = int(pid, 10)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"错误的进程ID: {pid!r}")
    if process_id < 0:
        raise HTTPException(status_code=400, detail=f"错误的进程ID: {pid!r}")

    try:
        container = await controller.process_container(process_id)
    except ProcessLookupError:
        raise HTTPException(status_code=400, detail=f"进程不存在: {process_id}")

    if container is None:
        raise HTTPException(status_code=400, detail=f"进程 {process_id} 不属于cpuset层级")

    return ContainerIdentity(id=container.id, type=container.type, path=container.path)


@router.api_route("/api/container/register/{cid}", methods=CONTAINER_METHODS)
async def container_register(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    """注册容器."""
    result = await controller.register(cid)
    logger.info("注册容器 %s: %s", cid, result.description)
    return SimpleResult.from_control(result)


@router.api_route("/api/container/unregister/{cid}", methods=CONTAINER_METHODS)
async def container_unregister(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    """注销容器."""
    result = await controller.unregister(cid)
    logger.info("注销容器 %s: %s", cid, result.description)
    return SimpleResult.from_control(result)


@router.api_route("/api/container/isregistered/{cid}", methods=CONTAINER_METHODS)
async def container_is_registered(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    """查询容器是否已注册."""
    result = await controller.is_registered(cid)
    logger.info("查询容器 %s: %s", cid, result.description)
    return SimpleResult.from_control(result)


@router.api_route("/api/container/status/{cid}", methods=CONTAINER_METHODS)
async def container_status(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> Container:
    """获取容器状态, 未注册时返回空容器."""
    container = await controller.status(cid)
    if container is None:
        logger.info("容器 %s 未注册", cid)
        return Container(id="")
    return container


@router.api_route("/api/container/set/cpu/{cid}", methods=CONTAINER_METHODS)
async def container_set_cpu(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    return SimpleResult.from_control(await controller.set_cpu(cid))


@router.api_route("/api/container/set/cpuset/{cid}", methods=CONTAINER_METHODS)
async def container_set_cpuset(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    return SimpleResult.from_control(await controller.set_cpuset(cid))


@router.api_route("/api/container/reset/cpu/{cid}", methods=CONTAINER_METHODS)
async def container_reset_cpu(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    """重置容器的cgroup设置."""
    return SimpleResult.from_control(await controller.reset_cpu(cid))


@router.api_route("/api/container/reset/cpuset/{cid}", methods=CONTAINER_METHODS)
async def container_reset_cpuset(
    cid: str,
    controller: ContainerController = Depends(get_controller),
) -> SimpleResult:
    return SimpleResult.from_control(await controller.reset_cpuset(cid))
