"""
转换器模块

提供Anthropic和Kiro API格式之间的数据转换功能。
"""

from .request_converter import AnthropicToKiroConverter, validate_anthropic_request
from .response_converter import KiroToAnthropicConverter

__all__ = [
    "AnthropicToKiroConverter",
    "KiroToAnthropicConverter",
    "validate_anthropic_request",
]
