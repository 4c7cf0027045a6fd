"""上游服务异常

每个异常携带对外返回的HTTP状态码和Anthropic错误类型。
"""

import httpx


class KiroServiceError(Exception):
    """Kiro 上游调用失败"""

    status_code = 502
    error_type = "api_error"

    def __init__(self, message: str, upstream_status: int | None = None):
        super().__init__(message)
        self.message = message
        self.upstream_status = upstream_status


class KiroAuthenticationError(KiroServiceError):
    """凭据缺失、过期或被上游拒绝"""

    status_code = 401
    error_type = "authentication_error"


class KiroPermissionError(KiroAuthenticationError):
    status_code = 403
    error_type = "permission_error"


class KiroRateLimitError(KiroServiceError):
    """重试后仍被限流"""

    status_code = 429
    error_type = "rate_limit_error"

    def __init__(
        self,
        message: str,
        upstream_status: int | None = 429,
        retry_after: int | None = None,
    ):
        super().__init__(message, upstream_status)
        self.retry_after = retry_after


class KiroRequestError(KiroServiceError):
    """上游认为请求无效（其他4xx）"""

    status_code = 400
    error_type = "invalid_request_error"


class KiroServerError(KiroServiceError):
    """重试后上游仍返回5xx"""

    status_code = 502
    error_type = "api_error"


class KiroTimeoutError(KiroServiceError):
    status_code = 504
    error_type = "timeout_error"


class KiroConnectionError(KiroServiceError):
    status_code = 503
    error_type = "overloaded_error"


def map_transport_error(error: httpx.HTTPError) -> KiroServiceError:
    """把 httpx 传输层异常转换为上游服务异常"""
    if isinstance(error, httpx.TimeoutException):
        return KiroTimeoutError(f"Kiro request timed out: {error}")
    return KiroConnectionError(f"Kiro connection failed: {error}")
