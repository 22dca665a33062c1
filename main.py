"""
cperfc - 容器CPU资源监控服务

功能:
1. 按容器ID在cgroup cpuset层级中定位容器
2. 周期性地从cAdvisor拉取容器采样数据, 计算CPU使用率
3. 通过RESTful API注册/注销容器、查询状态、控制监控循环

使用方法:
    sudo python main.py --cadvisor http://localhost:8080 --port 8088

要求:
- Linux 系统使用 cgroups v1 (cpuset子系统)
- root 权限
- 运行中的 cAdvisor
"""

import argparse
import asyncio
import os
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api import routes
from config.settings import ExitCode, Settings, get_settings
from core.context import AppContext
from core.monitor import LoopState
from core.registry import RegistryError
from core.telemetry import TelemetryError, TelemetryProvider
from utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    context: AppContext = app.state.context

    # 启动时
    logger.info("应用启动中...")
    context.subsystem_manager.initialize()

    if not context.registry.loaded:
        await context.registry.load()

    try:
        await context.telemetry.machine_info()
        logger.info("cAdvisor[%s] 运行中", context.settings.cadvisor_url)
    except TelemetryError as e:
        # 监控循环会在冷却后重试
        logger.error("无法连接cAdvisor[%s]: %s", context.settings.cadvisor_url, e)

    logger.info("开始监控")
    await context.monitor.start()

    yield

    # 关闭时
    logger.info("应用关闭中...")
    if context.monitor.state is not LoopState.STOPPED:
        await context.monitor.stop()

    close = getattr(context.telemetry, "close", None)
    if close is not None:
        await close()

    logger.info("应用已关闭")


async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    logger.error("注册表操作失败: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


def create_app(
    settings: Settings | None = None,
    *,
    context: AppContext | None = None,
    telemetry: TelemetryProvider | None = None,
    request_exit: Callable[[], None] | None = None,
) -> FastAPI:
    """创建 FastAPI 应用.

    Args:
        settings: 配置, 默认使用全局配置
        context: 已创建的应用上下文, 为空时根据配置创建
        telemetry: 遥测数据源, 默认连接cAdvisor
        request_exit: 收到exit控制命令时的回调
    """
    if context is None:
        context = AppContext.create(
            settings or get_settings(),
            telemetry=telemetry,
            request_exit=request_exit,
        )

    app = FastAPI(
        title="cperfc",
        description="容器CPU资源监控服务",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.context = context
    app.add_exception_handler(RegistryError, registry_error_handler)
    app.include_router(routes.router)
    return app


def parse_args(argv: list[str] | None = None) -> dict[str, object]:
    """解析命令行参数, 只返回显式指定的配置项."""
    parser = argparse.ArgumentParser(description="容器CPU资源监控服务")
    parser.add_argument("--loglevel", dest="log_level", help="日志级别 {debug, info, warning, error}")
    parser.add_argument("--logformat", dest="log_format", choices=["text", "json"], help="日志格式")
    parser.add_argument("--interval", dest="monitoring_interval", type=float, help="监控间隔(秒)")
    parser.add_argument("--port", dest="server_port", type=int, help="RESTful API 端口")
    parser.add_argument("--cadvisor", dest="cadvisor_url", help="cAdvisor API 地址")
    parser.add_argument("--registry", dest="registry_path", help="已注册容器元数据文件")
    args = parser.parse_args(argv)
    return {key: value for key, value in vars(args).items() if value is not None}


def main(argv: list[str] | None = None) -> int:
    """程序入口."""
    import uvicorn

    settings = Settings(**parse_args(argv))

    try:
        setup_logging(settings)
    except OSError as e:
        print(f"无法初始化日志: {e}", file=sys.stderr)
        return ExitCode.LOG

    if settings.require_root and os.geteuid() != 0:
        logger.error("请使用root权限运行")
        logger.info("退出")
        return ExitCode.NON_ROOT

    context = AppContext.create(settings)
    try:
        asyncio.run(context.registry.load())
    except RegistryError as e:
        logger.error("加载已注册容器失败: %s", e)
        logger.info("退出")
        return ExitCode.REGISTRY

    logger.info("初始化RESTful API端口(%d)", settings.server_port)
    uvicorn.run(
        create_app(context=context),
        host=settings.server_host,
        port=settings.server_port,
        log_config=None,
    )
    logger.info("退出")
    return ExitCode.NORMAL


if __name__ == "__main__":
    sys.exit(main())
