"""
核心功能模块

提供代理服务的核心功能，包括：
- Kiro 客户端封装
- AWS event-stream 解码
- 请求/响应格式转换器

子模块:
- clients: Kiro API 客户端与凭据
- eventstream: 二进制事件流帧解码和增量读取
- converters: Anthropic ↔ Kiro 格式转换器
"""

from .clients import KiroServiceClient
from .converters import (
    AnthropicToKiroConverter,
    KiroToAnthropicConverter,
)

__all__ = [
    # 客户端
    "KiroServiceClient",
    # 转换器
    "AnthropicToKiroConverter",
    "KiroToAnthropicConverter",
]
