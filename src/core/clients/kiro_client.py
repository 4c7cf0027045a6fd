"""Kiro (AWS CodeWhisperer) 服务客户端

负责获取凭据、发送 generateAssistantResponse 请求，以及认证、限流、
服务端错误的重试。响应体为 AWS event-stream 二进制格式，由调用方解码。
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import httpx
from loguru import logger

from src.common.logging import get_logger_with_request_id
from src.config.settings import KiroConfig
from src.models.kiro import KiroRequest

from .credentials import CredentialCache, is_kiro_database_accessible
from .exceptions import (
    KiroAuthenticationError,
    KiroPermissionError,
    KiroRateLimitError,
    KiroRequestError,
    KiroServerError,
    KiroServiceError,
    map_transport_error,
)

KIRO_ENDPOINTS = {
    "us-east-1": "https://codewhisperer.us-east-1.amazonaws.com",
    "us-west-2": "https://codewhisperer.us-west-2.amazonaws.com",
    "eu-west-1": "https://codewhisperer.eu-west-1.amazonaws.com",
    "ap-northeast-1": "https://codewhisperer.ap-northeast-1.amazonaws.com",
}
KIRO_DEFAULT_REGION = "us-east-1"
GENERATE_ASSISTANT_RESPONSE_PATH = "/generateAssistantResponse"
EVENTSTREAM_CONTENT_TYPE = "application/vnd.amazon.eventstream"
DEFAULT_RATE_LIMIT_WAIT = 5
USER_AGENT = "kiro-to-claude/1.0.0"


def get_kiro_endpoint(region: str | None) -> str:
    """区域到上游地址的静态映射，未知区域回退到 us-east-1"""
    return KIRO_ENDPOINTS.get(region or KIRO_DEFAULT_REGION, KIRO_ENDPOINTS[KIRO_DEFAULT_REGION])


def build_kiro_headers(
    token: str, region: str = KIRO_DEFAULT_REGION, streaming: bool = False
) -> dict[str, str]:
    """构建上游请求头"""
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": EVENTSTREAM_CONTENT_TYPE if streaming else "application/json",
        "X-Amz-Region": region,
        "User-Agent": USER_AGENT,
    }


def _parse_retry_after(value: str | None) -> int:
    try:
        return max(int(value), 0) if value else DEFAULT_RATE_LIMIT_WAIT
    except ValueError:
        return DEFAULT_RATE_LIMIT_WAIT


class KiroServiceClient:
    """Kiro 异步HTTP客户端

    凭据缓存由客户端持有，每次请求前显式获取。
    """

    def __init__(
        self,
        config: KiroConfig,
        credential_cache: CredentialCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.credential_cache = credential_cache or CredentialCache(
            config.db_path,
            refresh_interval=config.token_refresh_interval,
            expiry_buffer=config.expiry_buffer,
        )
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout, connect=30.0),
            transport=transport,
        )
        self._sleep = sleep

    async def close(self) -> None:
        """关闭底层HTTP连接池"""
        await self.client.aclose()

    async def __aenter__(self) -> "KiroServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_endpoint(self, region: str | None) -> str:
        base = self.config.endpoint or get_kiro_endpoint(region or self.config.region)
        return base.rstrip("/") + GENERATE_ASSISTANT_RESPONSE_PATH

    async def _build_request(self, kiro_request: KiroRequest, streaming: bool) -> httpx.Request:
        credentials = await self.credential_cache.get()
        region = credentials.region or self.config.region
        url = self.get_endpoint(region)
        headers = build_kiro_headers(credentials.access_token, region, streaming)
        headers["x-amzn-access-model"] = kiro_request.modelId
        body = kiro_request.model_dump_json(exclude_none=True)
        return self.client.build_request("POST", url, headers=headers, content=body.encode("utf-8"))

    async def _send_with_retry(
        self,
        kiro_request: KiroRequest,
        streaming: bool,
        request_id: str | None = None,
    ) -> httpx.Response:
        """发送请求并在可重试的错误上重试

        返回状态码为200且尚未读取响应体的响应，调用方负责关闭。

        Raises:
            KiroServiceError: 认证失败、请求无效或重试耗尽
        """
        bound_logger = get_logger_with_request_id(request_id)
        max_retries = self.config.max_retries
        last_error: KiroServiceError | None = None

        for attempt in range(max_retries):
            is_last = attempt == max_retries - 1
            request = await self._build_request(kiro_request, streaming)
            bound_logger.debug(f"[Kiro] 发送请求 {request.url} (第{attempt + 1}/{max_retries}次)")

            try:
                response = await self.client.send(request, stream=True)
            except httpx.HTTPError as e:
                last_error = map_transport_error(e)
                bound_logger.warning(f"[Kiro] 请求失败: {last_error.message}")
                if not is_last:
                    await self._sleep(2**attempt)
                continue

            if response.status_code == 200:
                return response

            await response.aread()
            await response.aclose()
            error_text = response.text[:500]
            status = response.status_code

            if status == 401:
                self.credential_cache.clear()
                raise KiroAuthenticationError(
                    "Kiro authentication expired. Please log in again.", upstream_status=status
                )
            if status == 403:
                self.credential_cache.clear()
                raise KiroPermissionError(
                    f"Kiro access denied: {error_text}", upstream_status=status
                )
            if status == 429:
                wait_seconds = _parse_retry_after(response.headers.get("Retry-After"))
                last_error = KiroRateLimitError(
                    f"Kiro rate limit exceeded: {error_text}", retry_after=wait_seconds
                )
                bound_logger.warning(f"[Kiro] 触发限流，{wait_seconds}秒后重试")
                if not is_last:
                    await self._sleep(wait_seconds)
                continue
            if status >= 500:
                last_error = KiroServerError(
                    f"Kiro API error {status}: {error_text}", upstream_status=status
                )
                bound_logger.warning(f"[Kiro] 上游服务错误 {status}，准备重试")
                if not is_last:
                    await self._sleep(2**attempt)
                continue

            raise KiroRequestError(f"Kiro API error {status}: {error_text}", upstream_status=status)

        bound_logger.error(f"[Kiro] 已达最大重试次数 {max_retries}")
        raise last_error or KiroServerError("Max retries exceeded")

    async def send_message(self, kiro_request: KiroRequest, request_id: str | None = None) -> bytes:
        """发送请求并读取完整响应体（非流式）"""
        response = await self._send_with_retry(kiro_request, streaming=False, request_id=request_id)
        try:
            return await response.aread()
        except httpx.HTTPError as e:
            raise map_transport_error(e) from e
        finally:
            await response.aclose()

    @asynccontextmanager
    async def open_stream(
        self, kiro_request: KiroRequest, request_id: str | None = None
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """打开上游流式响应

        重试结束后才进入上下文，产出原始字节块迭代器；退出上下文时关闭响应。
        """
        response = await self._send_with_retry(kiro_request, streaming=True, request_id=request_id)
        try:
            yield self._iter_bytes(response)
        finally:
            await response.aclose()

    @staticmethod
    async def _iter_bytes(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as e:
            raise map_transport_error(e) from e

    async def health_check(self) -> dict[str, str]:
        """检查凭据数据库与令牌状态"""
        db_path = self.config.db_path
        if not is_kiro_database_accessible(db_path):
            return {"status": "unhealthy", "reason": f"Kiro database not accessible: {db_path}"}
        try:
            credentials = await self.credential_cache.get()
        except KiroAuthenticationError as e:
            return {"status": "unhealthy", "reason": e.message}
        logger.debug("[Kiro] 健康检查通过")
        return {
            "status": "healthy",
            "region": credentials.region or self.config.region,
        }
