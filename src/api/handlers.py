"""Messages API 处理器

/v1/messages 支持流式和非流式两种模式；流式模式在上游连接建立（包括
重试）之后才开始返回SSE，因此建立阶段的错误仍以普通JSON错误响应返回。
"""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from src.common.logging import get_logger_with_request_id, get_request_id_from_request
from src.common.token_counter import token_counter
from src.config.settings import Config
from src.core.clients import KiroServiceClient, KiroServiceError
from src.core.converters import (
    AnthropicToKiroConverter,
    KiroToAnthropicConverter,
    validate_anthropic_request,
)
from src.core.converters.stream_converters import format_event, format_stream_event
from src.core.eventstream import EventStreamFrameError
from src.models.anthropic import (
    AnthropicMessageResponse,
    AnthropicRequest,
    AnthropicStreamEventTypes,
    AnthropicTokenCountRequest,
    AnthropicTokenCountResponse,
)
from src.models.errors import error_response_from_exception, get_error_response

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

router = APIRouter()


class MessagesHandler:
    """消息处理器，持有当前配置下的上游客户端"""

    def __init__(self, config: Config, client: KiroServiceClient):
        self.config = config
        self.client = client

    @classmethod
    async def create(cls, config: Config) -> "MessagesHandler":
        """根据配置创建处理器"""
        return cls(config, KiroServiceClient(config.kiro))

    async def close(self) -> None:
        await self.client.close()

    async def process_message(
        self, request: AnthropicRequest, request_id: str = None
    ) -> AnthropicMessageResponse:
        """非流式：读取完整上游响应后一次性转换"""
        kiro_request = AnthropicToKiroConverter.convert_anthropic_to_kiro(
            request, self.config.models, request_id
        )
        body = await self.client.send_message(kiro_request, request_id)
        return await KiroToAnthropicConverter.convert_response(
            body, request.model, request_id, request
        )

    async def open_message_stream(
        self, request: AnthropicRequest, request_id: str = None
    ) -> AsyncIterator[str]:
        """流式：先建立上游连接，再返回SSE文本生成器

        Raises:
            KiroServiceError: 建立连接阶段失败（认证、限流、重试耗尽等）
        """
        kiro_request = AnthropicToKiroConverter.convert_anthropic_to_kiro(
            request, self.config.models, request_id
        )
        stack = AsyncExitStack()
        try:
            byte_source = await stack.enter_async_context(
                self.client.open_stream(kiro_request, request_id)
            )
        except BaseException:
            await stack.aclose()
            raise
        return stream_anthropic_sse(stack, byte_source, request.model, request_id)


async def stream_anthropic_sse(
    stack: AsyncExitStack,
    byte_source: AsyncIterator[bytes],
    model: str,
    request_id: str = None,
) -> AsyncIterator[str]:
    """把转换后的事件渲染为SSE文本

    流已开始后出现的错误以 event: error 结束流。客户端断开时关闭上游连接。
    """
    bound_logger = get_logger_with_request_id(request_id)
    try:
        async for event in KiroToAnthropicConverter.convert_kiro_stream_to_anthropic_stream(
            byte_source, model, request_id
        ):
            yield format_stream_event(event)
    except Exception as e:
        bound_logger.opt(exception=e).error(f"流式响应中断 - Error: {e}")
        _, error_response = await error_response_from_exception(e)
        if not isinstance(e, KiroServiceError):
            error_response.error.message = str(e) or error_response.error.message
        yield format_event(AnthropicStreamEventTypes.ERROR, error_response.model_dump())
    finally:
        await stack.aclose()


def get_messages_handler(request: Request) -> MessagesHandler:
    return request.app.state.messages_handler


async def _error_json(exc: Exception) -> JSONResponse:
    status_code, error_response = await error_response_from_exception(exc)
    return JSONResponse(status_code=status_code, content=error_response.model_dump())


@router.post("/v1/messages")
async def messages_endpoint(request: Request, body: AnthropicRequest):
    """Anthropic Messages API"""
    request_id = get_request_id_from_request(request)
    bound_logger = get_logger_with_request_id(request_id)
    handler = get_messages_handler(request)

    try:
        validate_anthropic_request(body, request_id)
    except ValueError as e:
        error_response = await get_error_response(400, message=str(e))
        return JSONResponse(status_code=400, content=error_response.model_dump())

    bound_logger.info(
        f"处理消息请求 - Model: {body.model}, Stream: {bool(body.stream)}, "
        f"Messages: {len(body.messages)}"
    )

    try:
        if body.stream:
            sse_stream = await handler.open_message_stream(body, request_id)
            return StreamingResponse(
                sse_stream, media_type="text/event-stream", headers=SSE_HEADERS
            )

        response = await handler.process_message(body, request_id)
        content = response.model_dump(exclude_none=True)
        content.setdefault("stop_sequence", None)
        return JSONResponse(content=content)
    except KiroServiceError as e:
        bound_logger.warning(
            f"上游请求失败 - Type: {type(e).__name__}, Status: {e.status_code}, Message: {e.message}"
        )
        return await _error_json(e)
    except EventStreamFrameError as e:
        bound_logger.error(f"上游响应帧损坏: {e}")
        error_response = await get_error_response(502, message=str(e))
        return JSONResponse(status_code=502, content=error_response.model_dump())


@router.post("/v1/messages/count_tokens")
async def count_tokens_endpoint(
    request: Request, body: AnthropicTokenCountRequest
) -> AnthropicTokenCountResponse:
    """估算请求的输入token数量"""
    request_id = get_request_id_from_request(request)
    input_tokens = await token_counter.count_tokens(body.messages, body.system, body.tools)
    get_logger_with_request_id(request_id).debug(f"Token计数 - {input_tokens}")
    return AnthropicTokenCountResponse(input_tokens=input_tokens)
