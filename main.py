"""
@description FastAPI 应用入口
@responsibility 初始化存储与连通性组件、集成路由、启动后台监控与清扫任务
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from offline_cache.api import cache, entities, system
from offline_cache.api.cache import init_cache_router
from offline_cache.api.entities import init_entities_router
from offline_cache.api.system import init_system_router
from offline_cache.core.config import load_config
from offline_cache.core.database import Database
from offline_cache.core.errors import NoDataAvailable, NotFound
from offline_cache.schemas.api import error_response, success_response
from offline_cache.services.connectivity import ConnectivityGate, HttpConnectivityProbe
from offline_cache.services.dispatcher import FetchDispatcher
from offline_cache.services.entity_store import EntityStore
from offline_cache.services.ttl_store import TTLStore
from offline_cache.tasks.cache_sweeper import CacheSweeper
from offline_cache.tasks.connectivity_monitor import ConnectivityMonitor


config_obj = None
database: Optional[Database] = None
ttl_store: Optional[TTLStore] = None
entity_store: Optional[EntityStore] = None
gate: Optional[ConnectivityGate] = None
dispatcher: Optional[FetchDispatcher] = None
connectivity_monitor: Optional[ConnectivityMonitor] = None
cache_sweeper: Optional[CacheSweeper] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global config_obj, database, ttl_store, entity_store, gate, dispatcher
    global connectivity_monitor, cache_sweeper

    logger.info("应用启动中...")

    config_obj = load_config()
    logger.info("配置加载完成")

    database = Database(config_obj.database.url, echo=config_obj.database.echo)
    await database.init()
    logger.info("数据库初始化完成")

    ttl_store = TTLStore.from_config(database, config_obj.cache)
    await ttl_store.init()
    entity_store = EntityStore(database)

    gate = ConnectivityGate(initial_online=config_obj.connectivity.initial_online)
    dispatcher = FetchDispatcher(
        ttl_store, gate, fetch_timeout=config_obj.dispatcher.fetch_timeout
    )

    probe = HttpConnectivityProbe(
        config_obj.connectivity.probe_url, timeout=config_obj.connectivity.probe_timeout
    )
    connectivity_monitor = ConnectivityMonitor(
        gate, probe, interval=config_obj.connectivity.probe_interval
    )
    cache_sweeper = CacheSweeper(
        ttl_store,
        interval=config_obj.cache.sweep_interval,
        batch_size=config_obj.cache.sweep_batch_size,
    )

    init_cache_router(ttl_store)
    init_entities_router(entity_store)
    init_system_router(gate, connectivity_monitor, cache_sweeper)

    await connectivity_monitor.start()
    await cache_sweeper.start()

    yield

    await connectivity_monitor.stop()
    await cache_sweeper.stop()
    await ttl_store.close()
    await database.close()

    logger.info("应用已关闭")


app = FastAPI(
    title="离线内容缓存",
    description="在线优先、离线回退的影视内容缓存服务",
    version="1.0.0",
    lifespan=lifespan,
)


# 全局异常处理器
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """处理 HTTP 异常"""
    logger.info(f"HTTP 异常处理器被调用: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.status_code, exc.detail).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """处理请求参数验证错误"""
    logger.info(f"验证错误处理器被调用: {len(exc.errors())} 个错误")
    errors = [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_response(422, "请求参数验证失败", {"errors": errors}).model_dump(),
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    """实体记录不存在"""
    return JSONResponse(
        status_code=404,
        content=error_response(404, str(exc)).model_dump(),
    )


@app.exception_handler(NoDataAvailable)
async def no_data_handler(request: Request, exc: NoDataAvailable):
    """远程与缓存均不可用"""
    logger.warning(f"无可用数据: {exc}")
    return JSONResponse(
        status_code=503,
        content=error_response(503, str(exc), {"online": exc.online}).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """处理通用异常"""
    logger.info(f"通用异常处理器被调用: {type(exc).__name__}")
    logger.exception(f"服务器内部错误: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=error_response(500, "服务器内部错误").model_dump(),
    )


app.include_router(cache.router, prefix="/api", tags=["cache"])
app.include_router(entities.router, prefix="/api", tags=["entities"])
app.include_router(system.router, prefix="/api", tags=["system"])


@app.get("/")
async def root():
    return success_response(
        data={"message": "离线内容缓存 API", "version": "1.0.0"},
        message="服务运行中",
    )


@app.get("/health")
async def health_check():
    return success_response(data={"status": "healthy"}, message="健康检查通过")
