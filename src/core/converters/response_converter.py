"""
Kiro -> Anthropic 响应转换器

流式和非流式两条路径使用同一套事件转换逻辑：上游事件流帧解码后逐个
分类、转换。非流式路径把转换结果折叠成完整的消息响应。
"""

from collections.abc import AsyncIterator
from typing import Any

from src.common.logging import get_logger_with_request_id
from src.common.token_counter import token_counter
from src.core.eventstream import decode_frames, iter_kiro_events
from src.models.anthropic import (
    AnthropicMessageResponse,
    AnthropicRequest,
    AnthropicStopReasons,
    AnthropicStreamEvent,
    AnthropicUsage,
)

from .stream_converters import (
    StreamState,
    _log_stream_completion_details,
    build_complete_anthropic_response,
    classify_kiro_event,
    process_finish_event,
    process_stream_start,
    translate_kiro_event,
)


class KiroToAnthropicConverter:
    """Kiro响应到Anthropic格式的转换器"""

    @staticmethod
    def fold_payloads(payloads: list[Any], model: str) -> StreamState:
        """把解码后的负载依次送入转换器，返回累积后的状态"""
        state = StreamState(model)
        process_stream_start(state)
        for payload in payloads:
            translate_kiro_event(classify_kiro_event(payload), state)
        stop_reason = (
            AnthropicStopReasons.TOOL_USE if state.tool_uses else AnthropicStopReasons.END_TURN
        )
        process_finish_event(state, stop_reason)
        return state

    @staticmethod
    async def convert_response(
        body: bytes,
        original_model: str,
        request_id: str = None,
        anthropic_request: AnthropicRequest | None = None,
    ) -> AnthropicMessageResponse:
        """
        将Kiro非流式响应体转换为Anthropic格式

        Args:
            body: 上游返回的完整事件流字节
            original_model: 原始请求的Anthropic模型
            request_id: 请求ID用于日志追踪
            anthropic_request: 原始请求，上游没有返回用量时用于估算输入token

        Returns:
            AnthropicMessageResponse: 转换后的Anthropic格式响应
        """
        bound_logger = get_logger_with_request_id(request_id)

        payloads = decode_frames(body)
        bound_logger.debug(f"解码上游响应 - Bytes: {len(body)}, Payloads: {len(payloads)}")

        state = KiroToAnthropicConverter.fold_payloads(payloads, original_model)
        response = AnthropicMessageResponse.model_validate(
            build_complete_anthropic_response(state)
        )
        response.usage = await KiroToAnthropicConverter._convert_usage(
            state, response, anthropic_request
        )
        return response

    @staticmethod
    async def _convert_usage(
        state: StreamState,
        response: AnthropicMessageResponse,
        anthropic_request: AnthropicRequest | None = None,
    ) -> AnthropicUsage:
        """上游用量优先，缺失时用tiktoken估算"""
        input_tokens = state.input_tokens
        output_tokens = state.output_tokens

        if not input_tokens and anthropic_request is not None:
            input_tokens = await token_counter.count_tokens(
                anthropic_request.messages,
                anthropic_request.system,
                anthropic_request.tools,
            )

        if not output_tokens:
            output_tokens = token_counter.count_response_tokens(response.content)

        return AnthropicUsage(input_tokens=input_tokens, output_tokens=output_tokens)

    @staticmethod
    async def convert_kiro_stream_to_anthropic_stream(
        byte_source: AsyncIterator[bytes],
        model: str = "unknown",
        request_id: str = None,
    ) -> AsyncIterator[AnthropicStreamEvent]:
        """将 Kiro 事件流转换为 Anthropic 流式事件

        收到第一个负载时发送 message_start 和第0个文本块的开始；上游结束后
        关闭打开的块并发送 message_delta / message_stop。上游中途出错时异常
        直接向外抛出，已经产出的事件不受影响。

        Args:
            byte_source: 上游原始字节块
            model: 原始请求的模型名称
            request_id: 请求ID用于日志追踪

        Yields:
            AnthropicStreamEvent: Anthropic 流式事件模型
        """
        state = StreamState(model)

        async for payload in iter_kiro_events(byte_source, request_id):
            if not state.has_started:
                for event in process_stream_start(state):
                    yield event

            for event in translate_kiro_event(classify_kiro_event(payload), state):
                yield event

        # 上游没有任何负载时仍然输出完整的消息结构
        if not state.has_started:
            for event in process_stream_start(state):
                yield event

        for event in process_finish_event(state):
            yield event

        _log_stream_completion_details(state, request_id)
