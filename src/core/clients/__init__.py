"""
上游客户端模块

- kiro_client: Kiro (AWS CodeWhisperer) HTTP客户端
- credentials: Kiro CLI 凭据读取与缓存
- exceptions: 上游异常类型
"""

from .credentials import (
    CredentialCache,
    KiroCredentials,
    is_kiro_database_accessible,
    load_kiro_credentials,
)
from .exceptions import (
    KiroAuthenticationError,
    KiroConnectionError,
    KiroPermissionError,
    KiroRateLimitError,
    KiroRequestError,
    KiroServerError,
    KiroServiceError,
    KiroTimeoutError,
)
from .kiro_client import KIRO_ENDPOINTS, KiroServiceClient, build_kiro_headers, get_kiro_endpoint

__all__ = [
    "KiroServiceClient",
    "KIRO_ENDPOINTS",
    "get_kiro_endpoint",
    "build_kiro_headers",
    "CredentialCache",
    "KiroCredentials",
    "load_kiro_credentials",
    "is_kiro_database_accessible",
    "KiroServiceError",
    "KiroAuthenticationError",
    "KiroPermissionError",
    "KiroRateLimitError",
    "KiroRequestError",
    "KiroServerError",
    "KiroTimeoutError",
    "KiroConnectionError",
]
