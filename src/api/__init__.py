"""
API模块

提供FastAPI应用的路由、处理器和中间件。

子模块:
- handlers: Messages API 处理器
- routes: 健康检查与模型列表
- middleware: 中间件实现
"""

from .handlers import MessagesHandler, count_tokens_endpoint, messages_endpoint
from .handlers import router as handlers_router
from .middleware import (
    APIKeyMiddleware,
    RequestTimingMiddleware,
    setup_middlewares,
)
from .routes import health_check, list_models
from .routes import router as routes_router

__all__ = [
    # 路由
    "routes_router",
    "handlers_router",
    "health_check",
    "list_models",
    # 处理器
    "MessagesHandler",
    "messages_endpoint",
    "count_tokens_endpoint",
    # 中间件
    "APIKeyMiddleware",
    "RequestTimingMiddleware",
    "setup_middlewares",
]
