import json
import uuid
from typing import Any

from loguru import logger
from pydantic import ValidationError

from src.models.anthropic import (
    AnthropicContentTypes,
    AnthropicStopReasons,
    AnthropicStreamContentBlock,
    AnthropicStreamContentBlockStart,
    AnthropicStreamContentBlockStop,
    AnthropicStreamEvent,
    AnthropicStreamEventTypes,
    AnthropicStreamMessage,
    AnthropicStreamMessageStartMessage,
    AnthropicUsage,
    ContentBlock,
    Delta,
    MessageDelta,
)
from src.models.kiro import (
    KiroEvent,
    KiroEventKind,
    KiroTokenUsage,
    KiroToolUse,
)


def generate_message_id() -> str:
    return f"msg_{uuid.uuid4().hex[:24]}"


def generate_tool_use_id() -> str:
    return f"toolu_{uuid.uuid4().hex[:24]}"


class StreamState:
    """流状态管理类

    每个请求独占一个实例，流结束后丢弃。
    """

    def __init__(self, model: str = "unknown"):
        self.message_id = generate_message_id()
        # 原始请求的模型名称，在message_start中回显
        self.model = model
        # message_start 是否已发送
        self.has_started = False
        # 当前内容块索引
        self.content_index = 0
        # 当前内容块是否处于打开状态
        self.block_open = False

        self.input_tokens = 0
        self.output_tokens = 0
        self.stop_reason: str | None = None

        # 计数器
        self.total_events = 0

        # 累积输出内容，用于完成日志和非流式响应
        self.text_parts: list[str] = []
        self.tool_uses: list[dict[str, Any]] = []

    @property
    def usage(self) -> AnthropicUsage:
        return AnthropicUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


def format_event(event_type: str, data: dict[str, Any]) -> str:
    """格式化事件为 SSE 格式"""
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


def dump_stream_event(event: AnthropicStreamEvent) -> dict[str, Any]:
    """把事件模型转换为线上JSON结构

    message_start 和 message_delta 需要保留 stop_reason / stop_sequence 的 null 值，
    其余事件省略空字段。
    """
    if event.type == AnthropicStreamEventTypes.MESSAGE_START:
        return event.model_dump(exclude={"delta", "usage"})
    if event.type == AnthropicStreamEventTypes.MESSAGE_DELTA:
        return event.model_dump(exclude={"message"})
    return event.model_dump(exclude_none=True)


def format_stream_event(event: AnthropicStreamEvent) -> str:
    return format_event(event.type, dump_stream_event(event))


def classify_kiro_event(payload: Any) -> KiroEvent:
    """按优先级识别上游负载形态，先匹配者生效

    Args:
        payload: 事件流帧解码后的负载

    Returns:
        KiroEvent: 分类后的事件，无法识别时 kind 为 UNRECOGNIZED
    """
    if not isinstance(payload, dict):
        return KiroEvent(kind=KiroEventKind.UNRECOGNIZED)

    try:
        # 直接文本 {"content": "Hello"}
        if isinstance(payload.get("content"), str):
            return KiroEvent(kind=KiroEventKind.TEXT, text=payload["content"])

        # {"assistantResponseEvent": {"content": "..."}}
        wrapper = payload.get("assistantResponseEvent")
        if wrapper:
            content = wrapper.get("content") if isinstance(wrapper, dict) else None
            return KiroEvent(
                kind=KiroEventKind.ASSISTANT_RESPONSE,
                text=content if isinstance(content, str) and content else None,
            )

        # 计量信息 {"unit": "credit", "usage": 0.0022}
        if "usage" in payload and "unit" in payload:
            usage = payload.get("usage")
            return KiroEvent(
                kind=KiroEventKind.METERING,
                metering_usage=usage if isinstance(usage, (int, float)) else None,
                metering_unit=payload.get("unitPlural") or payload.get("unit"),
            )

        metadata = payload.get("metadataEvent")
        token_usage = (
            metadata.get("tokenUsage") if isinstance(metadata, dict) else None
        ) or payload.get("tokenUsage")
        if token_usage:
            return KiroEvent(
                kind=KiroEventKind.TOKEN_USAGE,
                token_usage=KiroTokenUsage.model_validate(token_usage),
            )

        tool_use = payload.get("toolUseEvent") or payload.get("toolUse")
        if tool_use:
            return KiroEvent(
                kind=KiroEventKind.TOOL_USE,
                tool_use=KiroToolUse.model_validate(tool_use),
            )

        code_event = payload.get("codeEvent")
        if code_event:
            content = code_event.get("content") if isinstance(code_event, dict) else None
            return KiroEvent(
                kind=KiroEventKind.CODE,
                text=content if isinstance(content, str) else "",
            )
    except ValidationError as e:
        logger.warning(f"无法解析的上游事件，已忽略 - Error: {e.errors()[:1]}")

    return KiroEvent(kind=KiroEventKind.UNRECOGNIZED)


def process_stream_start(state: StreamState) -> list[AnthropicStreamEvent]:
    """生成 message_start 和第0个文本块的 content_block_start"""
    state.has_started = True
    state.content_index = 0
    state.block_open = True
    return [
        AnthropicStreamMessage(
            message=AnthropicStreamMessageStartMessage(
                id=state.message_id,
                model=state.model,
                usage=AnthropicUsage(),
            ),
        ),
        AnthropicStreamContentBlockStart(
            index=0,
            content_block=ContentBlock(type=AnthropicContentTypes.TEXT, text=""),
        ),
    ]


def process_text_content(text: str, state: StreamState) -> list[AnthropicStreamEvent]:
    """处理文本内容"""
    events = []

    # 工具块关闭后又收到文本，在新索引上重新打开一个文本块
    if not state.block_open:
        state.content_index += 1
        state.block_open = True
        events.append(
            AnthropicStreamContentBlockStart(
                index=state.content_index,
                content_block=ContentBlock(type=AnthropicContentTypes.TEXT, text=""),
            )
        )

    state.text_parts.append(text)
    events.append(
        AnthropicStreamContentBlock(
            index=state.content_index,
            delta=Delta(type=AnthropicContentTypes.TEXT_DELTA, text=text),
        )
    )
    return events


def process_token_usage(
    token_usage: KiroTokenUsage, state: StreamState
) -> list[AnthropicStreamEvent]:
    """处理token使用量，只更新统计，不切换内容块"""
    state.input_tokens = token_usage.inputTokens or state.input_tokens
    state.output_tokens = token_usage.outputTokens or state.output_tokens
    return [
        AnthropicStreamMessage(
            type=AnthropicStreamEventTypes.MESSAGE_DELTA,
            delta=MessageDelta(),
            usage=state.usage,
        )
    ]


def _serialize_tool_input(tool_input: Any) -> str | None:
    if tool_input is None or tool_input == "":
        return None
    if isinstance(tool_input, str):
        # 已经是JSON文本，原样透传
        return tool_input
    return json.dumps(tool_input, ensure_ascii=False, separators=(",", ":"))


def process_tool_use(tool_use: KiroToolUse, state: StreamState) -> list[AnthropicStreamEvent]:
    """处理工具调用

    上游的工具调用一次性完整到达，因此在同一步内完成
    content_block_start -> (input_json_delta) -> content_block_stop。
    """
    events = []

    # 先结束当前打开的块
    if state.block_open:
        events.append(AnthropicStreamContentBlockStop(index=state.content_index))
        state.block_open = False

    new_index = state.content_index + 1
    tool_use_id = tool_use.toolUseId or generate_tool_use_id()
    tool_name = tool_use.name or f"tool_{new_index}"

    events.append(
        AnthropicStreamContentBlockStart(
            index=new_index,
            content_block=ContentBlock(
                type=AnthropicContentTypes.TOOL_USE,
                id=tool_use_id,
                name=tool_name,
                input={},
            ),
        )
    )

    partial_json = _serialize_tool_input(tool_use.input)
    if partial_json is not None:
        events.append(
            AnthropicStreamContentBlock(
                index=new_index,
                delta=Delta(
                    type=AnthropicContentTypes.INPUT_JSON_DELTA,
                    partial_json=partial_json,
                ),
            )
        )

    events.append(AnthropicStreamContentBlockStop(index=new_index))

    state.content_index = new_index
    state.tool_uses.append(
        {
            "id": tool_use_id,
            "name": tool_name,
            "input": tool_use.input,
        }
    )
    return events


def translate_kiro_event(event: KiroEvent, state: StreamState) -> list[AnthropicStreamEvent]:
    """把一个上游事件转换为零个或多个 Anthropic 流式事件

    不负责 message_start / message_stop 以及第0个块的开始，这些由编排器生成。
    """
    state.total_events += 1
    try:
        if event.kind in (KiroEventKind.TEXT, KiroEventKind.CODE):
            return process_text_content(event.text or "", state)

        if event.kind == KiroEventKind.ASSISTANT_RESPONSE:
            if event.text:
                return process_text_content(event.text, state)
            return []

        if event.kind == KiroEventKind.METERING:
            logger.debug(f"[Kiro] Usage: {event.metering_usage} {event.metering_unit}")
            return []

        if event.kind == KiroEventKind.TOKEN_USAGE and event.token_usage is not None:
            return process_token_usage(event.token_usage, state)

        if event.kind == KiroEventKind.TOOL_USE and event.tool_use is not None:
            return process_tool_use(event.tool_use, state)
    except Exception as e:
        logger.opt(exception=e).error(
            f"Failed to translate upstream event - Kind: {event.kind.value}, Error: {str(e)}"
        )
    return []


def process_finish_event(
    state: StreamState, stop_reason: str = AnthropicStopReasons.END_TURN
) -> list[AnthropicStreamEvent]:
    """处理流结束：关闭打开的块，发送 message_delta 和 message_stop"""
    events = []

    if state.block_open:
        events.append(AnthropicStreamContentBlockStop(index=state.content_index))
        state.block_open = False

    state.stop_reason = stop_reason
    events.append(
        AnthropicStreamMessage(
            type=AnthropicStreamEventTypes.MESSAGE_DELTA,
            delta=MessageDelta(stop_reason=stop_reason, stop_sequence=None),
            usage=state.usage,
        )
    )
    events.append(AnthropicStreamMessage(type=AnthropicStreamEventTypes.MESSAGE_STOP))
    return events


def safe_json_parse(json_str: str) -> dict[str, Any]:
    """
    安全地解析JSON字符串

    Args:
        json_str: 待解析的JSON字符串

    Returns:
        解析后的字典对象，解析失败时返回 {"arguments": 原始字符串}
    """
    if not json_str:
        return {}

    try:
        parsed = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.warning(
            f"JSON解析失败，保留原始内容 - Error: {e}, Content: {json_str[:100]}..."
        )
        return {"arguments": json_str}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def build_complete_anthropic_response(state: StreamState) -> dict[str, Any]:
    """
    根据流状态构建完整的Anthropic响应JSON

    Args:
        state: 流状态对象

    Returns:
        dict: 完整的Anthropic响应JSON
    """
    content_blocks = []

    text = "".join(state.text_parts)
    if text:
        content_blocks.append({"type": AnthropicContentTypes.TEXT, "text": text})

    for tool_use in state.tool_uses:
        tool_input = tool_use.get("input")
        if isinstance(tool_input, str):
            tool_input = safe_json_parse(tool_input)
        elif not isinstance(tool_input, dict):
            tool_input = {}
        content_blocks.append(
            {
                "type": AnthropicContentTypes.TOOL_USE,
                "id": tool_use["id"],
                "name": tool_use["name"],
                "input": tool_input,
            }
        )

    # 如果没有任何内容，添加空文本块
    if not content_blocks:
        content_blocks.append({"type": AnthropicContentTypes.TEXT, "text": ""})

    return {
        "id": state.message_id,
        "type": "message",
        "role": "assistant",
        "content": content_blocks,
        "model": state.model,
        "stop_reason": state.stop_reason,
        "stop_sequence": None,
        "usage": state.usage.model_dump(),
    }


def _log_stream_completion_details(state: StreamState, request_id: str = None) -> None:
    """
    流式响应完成时的详细日志记录（输出完整JSON格式）

    Args:
        state: 流状态对象，包含累积的内容信息
        request_id: 请求ID，用于绑定日志
    """
    from src.common.logging import get_logger_with_request_id

    bound_logger = get_logger_with_request_id(request_id)

    try:
        response_json = build_complete_anthropic_response(state)
        formatted_json = json.dumps(response_json, ensure_ascii=False, indent=4)
        bound_logger.info(
            f"流式响应生成完成，共处理 {state.total_events} 个上游事件: {formatted_json}"
        )
    except Exception as e:
        # 记录日志失败不应影响正常流程
        bound_logger.warning(f"流式响应日志记录失败 - Error: {str(e)}")
