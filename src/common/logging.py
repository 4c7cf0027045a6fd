"""Loguru日志配置

控制台和文件两个输出，每条记录都带有请求ID（没有时为"---"）。
"""

import sys
import uuid
from pathlib import Path

from loguru import logger

REQUEST_ID_HEADER = "X-Request-ID"
DEFAULT_REQUEST_ID = "---"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[request_id]}</cyan> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | "
    "{name}:{line} | {message}"
)


def _ensure_request_id(record) -> bool:
    record["extra"].setdefault("request_id", DEFAULT_REQUEST_ID)
    return True


def configure_logging(log_config) -> None:
    """配置Loguru日志系统

    Args:
        log_config: 日志配置对象（LoggingConfig）
    """
    logger.remove()

    logger.add(
        sys.stdout,
        format=CONSOLE_FORMAT,
        level=log_config.level,
        colorize=True,
        filter=_ensure_request_id,
    )

    if log_config.file:
        log_path = Path(log_config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_path),
            format=FILE_FORMAT,
            level=log_config.level,
            rotation=log_config.rotation,
            retention=log_config.retention,
            encoding="utf-8",
            backtrace=True,
            diagnose=False,
            filter=_ensure_request_id,
        )

    def exception_handler(exc_type, exc_value, exc_traceback):
        """未捕获异常写入日志"""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.opt(exception=(exc_type, exc_value, exc_traceback)).critical("未捕获的异常")

    sys.excepthook = exception_handler


class RequestLogger:
    """请求日志处理器"""

    async def log_response(
        self, status_code: int, response_time: float, request_id: str = None
    ):
        """记录响应结束"""
        bound_logger = get_logger_with_request_id(request_id)
        response_time_ms = round(response_time * 1000, 2)
        bound_logger.info(f"请求完成 - Status: {status_code}, Time: {response_time_ms}ms")

    async def log_error(self, error: Exception, context: dict = None, request_id: str = None):
        """记录错误及堆栈"""
        bound_logger = get_logger_with_request_id(request_id)
        context_str = f", Context: {context}" if context else ""
        bound_logger.opt(exception=error).error(
            f"请求处理错误 - Type: {type(error).__name__}, Message: {error}{context_str}"
        )


request_logger = RequestLogger()


async def generate_request_id() -> str:
    """生成唯一的请求ID

    Returns:
        str: 格式为 req_<uuid4> 的请求ID
    """
    return f"req_{uuid.uuid4()}"


def get_request_id_from_request(request) -> str | None:
    """从请求对象中获取中间件写入的请求ID"""
    return getattr(request.state, "request_id", None)


def get_logger_with_request_id(request_id: str = None):
    """获取绑定了请求ID的日志器实例"""
    return logger.bind(request_id=request_id or DEFAULT_REQUEST_ID)
