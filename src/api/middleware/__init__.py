"""
中间件模块

- timing: 请求ID分配与处理耗时记录
- auth: /v1/ 接口的访问密钥校验
"""

from .auth import APIKeyMiddleware
from .timing import RequestTimingMiddleware, setup_middlewares

__all__ = [
    "APIKeyMiddleware",
    "RequestTimingMiddleware",
    "setup_middlewares",
]
