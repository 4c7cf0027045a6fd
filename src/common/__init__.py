"""
通用工具模块

提供项目中共享的工具和实用功能。

主要功能:
- 日志配置和管理
- 请求ID生成和追踪
- Token计数功能

使用示例:
    from src.common import configure_logging, get_logger_with_request_id

    configure_logging(config.logging)
    bound_logger = get_logger_with_request_id(request_id)
"""

# 导入日志相关功能
from .logging import (
    REQUEST_ID_HEADER,
    RequestLogger,
    configure_logging,
    generate_request_id,
    get_logger_with_request_id,
    get_request_id_from_request,
    request_logger,
)

# 导入Token计数功能
from .token_counter import TokenCounter, token_counter

__all__ = [
    # 日志功能
    "configure_logging",
    "RequestLogger",
    "request_logger",
    "generate_request_id",
    "get_request_id_from_request",
    "get_logger_with_request_id",
    "REQUEST_ID_HEADER",
    # Token计数
    "TokenCounter",
    "token_counter",
]
