"""
Kiro-Claude Proxy

把 Anthropic Messages API 请求转发到 Kiro (AWS CodeWhisperer) 的代理服务。

主要功能:
- Anthropic 请求到 Kiro 对话请求的转换
- AWS event-stream 二进制响应的增量解码
- Kiro 事件到 Anthropic SSE 事件的转换，支持文本和工具调用
- 支持流式和非流式响应
- 请求ID追踪和日志记录
- 配置文件热重载

使用示例:
    from src.main import app
"""

__version__ = "1.0.0"
__author__ = "Kiro-Claude Proxy Team"
__description__ = "Anthropic Messages API proxy backed by Kiro (AWS CodeWhisperer)"

__all__ = [
    "__version__",
    "__author__",
    "__description__",
]
