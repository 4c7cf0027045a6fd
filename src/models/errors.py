"""Anthropic 错误响应模型

错误响应体格式: {"type": "error", "error": {"type": ..., "message": ...}}
"""

from pydantic import BaseModel, Field

from src.core.clients.exceptions import KiroServiceError


class ErrorDetail(BaseModel):
    """错误详细信息"""

    type: str = Field(description="错误类型")
    message: str = Field(description="错误消息")


class AnthropicErrorResponse(BaseModel):
    """Anthropic 错误响应"""

    type: str = Field("error", description="响应类型")
    error: ErrorDetail = Field(description="错误详情")


# HTTP状态码 -> (错误类型, 默认消息)
ERROR_TYPE_MAPPING = {
    400: ("invalid_request_error", "请求格式错误或参数无效"),
    401: ("authentication_error", "无效的API密钥或未经授权的访问"),
    403: ("permission_error", "没有访问该资源的权限"),
    404: ("not_found_error", "请求的资源不存在"),
    413: ("request_too_large", "请求体过大"),
    429: ("rate_limit_error", "请求频率超出限制，请稍后重试"),
    500: ("api_error", "服务器内部错误，请稍后重试"),
    502: ("api_error", "上游服务错误，请稍后重试"),
    503: ("overloaded_error", "服务暂时不可用，请稍后重试"),
    504: ("timeout_error", "请求超时，请稍后重试"),
}


async def get_error_response(
    status_code: int,
    message: str | None = None,
    error_type: str | None = None,
) -> AnthropicErrorResponse:
    """根据HTTP状态码构建错误响应"""
    default_type, default_message = ERROR_TYPE_MAPPING.get(
        status_code, ERROR_TYPE_MAPPING[500]
    )
    return AnthropicErrorResponse(
        error=ErrorDetail(
            type=error_type or default_type,
            message=message or default_message,
        )
    )


async def error_response_from_exception(exc: Exception) -> tuple[int, AnthropicErrorResponse]:
    """把异常转换为 (HTTP状态码, 错误响应)

    上游异常使用自身携带的状态码和错误类型，其他异常视为500。
    """
    if isinstance(exc, KiroServiceError):
        error_response = await get_error_response(
            exc.status_code, message=exc.message, error_type=exc.error_type
        )
        return exc.status_code, error_response
    return 500, await get_error_response(500)
