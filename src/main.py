from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.handlers import MessagesHandler
from src.api.handlers import router as messages_router
from src.api.middleware.auth import APIKeyMiddleware
from src.api.middleware.timing import setup_middlewares
from src.api.routes import router as health_router
from src.common.logging import (
    configure_logging,
    get_logger_with_request_id,
    get_request_id_from_request,
)
from src.config.settings import Config, get_config_file_path, reload_config, set_config
from src.config.watcher import ConfigWatcher
from src.models.errors import get_error_response

# 启动时同步加载配置（模块级别，应用启动时执行）
config = Config.from_file_sync()
set_config(config)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    host, port = await config.get_server_config()

    configure_logging(config.logging)

    app.state.messages_handler = await MessagesHandler.create(config)
    # 热重载替换下来的处理器，关闭时统一释放
    app.state.retired_handlers = []

    async def on_config_reload():
        """配置重载时的回调函数"""
        new_config = await reload_config()
        configure_logging(new_config.logging)

        current = app.state.messages_handler
        if new_config.kiro == current.config.kiro:
            # 上游配置未变，沿用现有连接池，进行中的流不受影响
            app.state.messages_handler = MessagesHandler(new_config, current.client)
        else:
            app.state.messages_handler = await MessagesHandler.create(new_config)
            app.state.retired_handlers.append(current)

        logger.info("配置热重载完成，服务已更新")

    config_watcher = ConfigWatcher(get_config_file_path())
    config_watcher.add_reload_callback(on_config_reload)
    await config_watcher.start_watching()
    app.state.config_watcher = config_watcher

    logger.info(
        f"启动 Kiro To Claude 服务器 - Host: {host}, Port: {port}, "
        f"Region: {config.kiro.region}, LogLevel: {config.logging.level}"
    )

    yield

    logger.info("正在停止配置文件监听...")
    app.state.config_watcher.stop_watching()
    await app.state.messages_handler.close()
    for handler in app.state.retired_handlers:
        await handler.close()
    logger.info("服务器已停止")


app = FastAPI(
    title="Kiro To Claude Server",
    version="0.1.0",
    description="Anthropic Messages API proxy backed by Kiro (AWS CodeWhisperer).",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_middlewares(app)
app.add_middleware(APIKeyMiddleware, api_key=config.api_key)

app.include_router(health_router)
app.include_router(messages_router)


@app.get("/")
async def root():
    return {"message": "Welcome to the Kiro To Claude Server"}


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理，防止Internal Server Error直接返回给客户端"""
    bound_logger = get_logger_with_request_id(get_request_id_from_request(request))
    bound_logger.opt(exception=exc).error(
        f"捕获未处理的服务器异常 - {type(exc).__name__}: {exc}, "
        f"{request.method} {request.url.path}"
    )

    error_response = await get_error_response(500)
    return JSONResponse(status_code=500, content=error_response.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求体验证失败，按Anthropic约定返回400"""
    bound_logger = get_logger_with_request_id(get_request_id_from_request(request))
    bound_logger.warning(f"请求验证失败: {exc.errors()[:3]}")

    first_error = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first_error.get("loc", ()) if part != "body")
    message = f"{location}: {first_error.get('msg', '')}" if location else first_error.get("msg")
    error_response = await get_error_response(400, message=message)
    return JSONResponse(status_code=400, content=error_response.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """404等HTTP错误统一为Anthropic错误格式"""
    message = exc.detail if exc.status_code != 404 else None
    error_response = await get_error_response(exc.status_code, message=message)
    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())
