"""上游事件分类与转换测试"""

import pytest
from loguru import logger

from src.core.converters.stream_converters import (
    StreamState,
    _log_stream_completion_details,
    classify_kiro_event,
    dump_stream_event,
    format_event,
    format_stream_event,
    process_finish_event,
    process_stream_start,
    translate_kiro_event,
)
from src.models.anthropic import AnthropicStreamEventTypes
from src.models.kiro import KiroEvent, KiroEventKind, KiroToolUse


def event_types(events) -> list[str]:
    return [event.type for event in events]


def started_state() -> StreamState:
    state = StreamState("claude-sonnet-4-5")
    process_stream_start(state)
    return state


class TestClassifyKiroEvent:
    """负载形态识别，按优先级先匹配者生效"""

    @pytest.mark.parametrize(
        "payload, kind",
        [
            ({"content": "Hello"}, KiroEventKind.TEXT),
            ({"assistantResponseEvent": {"content": "Hi"}}, KiroEventKind.ASSISTANT_RESPONSE),
            ({"unit": "credit", "usage": 0.01}, KiroEventKind.METERING),
            ({"metadataEvent": {"tokenUsage": {"inputTokens": 1}}}, KiroEventKind.TOKEN_USAGE),
            ({"tokenUsage": {"outputTokens": 2}}, KiroEventKind.TOKEN_USAGE),
            ({"toolUseEvent": {"name": "read"}}, KiroEventKind.TOOL_USE),
            ({"toolUse": {"name": "read"}}, KiroEventKind.TOOL_USE),
            ({"codeEvent": {"content": "print(1)"}}, KiroEventKind.CODE),
            ({"followupPrompt": {}}, KiroEventKind.UNRECOGNIZED),
            ({"raw": "not json"}, KiroEventKind.UNRECOGNIZED),
            (["list"], KiroEventKind.UNRECOGNIZED),
            ("text", KiroEventKind.UNRECOGNIZED),
        ],
    )
    def test_kinds(self, payload, kind):
        assert classify_kiro_event(payload).kind == kind

    def test_text_wins_over_tool_use(self):
        event = classify_kiro_event({"content": "x", "toolUseEvent": {"name": "read"}})
        assert event.kind == KiroEventKind.TEXT
        assert event.text == "x"

    def test_metering_wins_over_token_usage(self):
        event = classify_kiro_event({"unit": "credit", "usage": 1, "tokenUsage": {"inputTokens": 3}})
        assert event.kind == KiroEventKind.METERING

    def test_tool_use_fields(self):
        event = classify_kiro_event(
            {"toolUseEvent": {"toolUseId": "abc", "name": "search", "input": {"q": "x"}}}
        )
        assert event.tool_use.toolUseId == "abc"
        assert event.tool_use.name == "search"
        assert event.tool_use.input == {"q": "x"}

    def test_token_usage_fields(self):
        event = classify_kiro_event({"tokenUsage": {"inputTokens": 10, "outputTokens": 5}})
        assert event.token_usage.inputTokens == 10
        assert event.token_usage.outputTokens == 5

    def test_malformed_token_usage_is_unrecognized(self):
        event = classify_kiro_event({"tokenUsage": {"inputTokens": "many"}})
        assert event.kind == KiroEventKind.UNRECOGNIZED


class TestTranslateKiroEvent:
    """事件转换状态机"""

    def test_text_delta_on_open_block(self):
        state = started_state()
        events = translate_kiro_event(KiroEvent(kind=KiroEventKind.TEXT, text="Hi"), state)

        assert len(events) == 1
        assert events[0].type == AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA
        assert events[0].index == 0
        assert events[0].delta.text == "Hi"
        assert state.text_parts == ["Hi"]

    def test_code_event_as_text(self):
        state = started_state()
        events = translate_kiro_event(classify_kiro_event({"codeEvent": {"content": "x = 1"}}), state)
        assert events[0].delta.text == "x = 1"

    def test_assistant_response_without_content_emits_nothing(self):
        state = started_state()
        events = translate_kiro_event(
            classify_kiro_event({"assistantResponseEvent": {"messageId": "m1"}}), state
        )
        assert events == []

    def test_metering_and_unrecognized_emit_nothing(self):
        state = started_state()
        assert translate_kiro_event(classify_kiro_event({"unit": "credit", "usage": 1}), state) == []
        assert translate_kiro_event(classify_kiro_event({"other": 1}), state) == []
        assert state.block_open

    def test_token_usage_updates_state(self):
        state = started_state()
        events = translate_kiro_event(
            classify_kiro_event({"tokenUsage": {"inputTokens": 10, "outputTokens": 5}}), state
        )

        assert event_types(events) == [AnthropicStreamEventTypes.MESSAGE_DELTA]
        assert events[0].usage.input_tokens == 10
        assert events[0].usage.output_tokens == 5
        assert events[0].delta.stop_reason is None
        assert state.block_open

    def test_tool_use_closes_text_block(self):
        state = started_state()
        tool_use = KiroToolUse(toolUseId="abc", name="search", input={"q": "x"})
        events = translate_kiro_event(KiroEvent(kind=KiroEventKind.TOOL_USE, tool_use=tool_use), state)

        assert event_types(events) == [
            AnthropicStreamEventTypes.CONTENT_BLOCK_STOP,
            AnthropicStreamEventTypes.CONTENT_BLOCK_START,
            AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA,
            AnthropicStreamEventTypes.CONTENT_BLOCK_STOP,
        ]
        assert events[0].index == 0
        assert events[1].index == 1
        assert events[1].content_block.type == "tool_use"
        assert events[1].content_block.id == "abc"
        assert events[1].content_block.name == "search"
        assert events[1].content_block.input == {}
        assert events[2].delta.type == "input_json_delta"
        assert events[2].delta.partial_json == '{"q":"x"}'
        assert events[3].index == 1
        assert state.content_index == 1
        assert not state.block_open

    def test_consecutive_tool_uses_get_fresh_indices(self):
        state = started_state()
        for name in ("a", "b"):
            translate_kiro_event(
                KiroEvent(kind=KiroEventKind.TOOL_USE, tool_use=KiroToolUse(name=name, input={})),
                state,
            )

        assert state.content_index == 2
        assert [tool["name"] for tool in state.tool_uses] == ["a", "b"]

    def test_tool_use_without_input_has_no_delta(self):
        state = started_state()
        events = translate_kiro_event(
            KiroEvent(kind=KiroEventKind.TOOL_USE, tool_use=KiroToolUse(name="noop")), state
        )
        assert AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA not in event_types(events)

    def test_tool_use_string_input_passed_through(self):
        state = started_state()
        events = translate_kiro_event(
            KiroEvent(
                kind=KiroEventKind.TOOL_USE,
                tool_use=KiroToolUse(name="read", input='{"path": "/x"}'),
            ),
            state,
        )
        assert events[2].delta.partial_json == '{"path": "/x"}'

    def test_tool_use_generates_missing_id(self):
        state = started_state()
        events = translate_kiro_event(
            KiroEvent(kind=KiroEventKind.TOOL_USE, tool_use=KiroToolUse(name="read")), state
        )
        assert events[1].content_block.id.startswith("toolu_")

    def test_text_after_tool_reopens_block(self):
        state = started_state()
        translate_kiro_event(
            KiroEvent(kind=KiroEventKind.TOOL_USE, tool_use=KiroToolUse(name="read")), state
        )
        events = translate_kiro_event(KiroEvent(kind=KiroEventKind.TEXT, text="done"), state)

        assert event_types(events) == [
            AnthropicStreamEventTypes.CONTENT_BLOCK_START,
            AnthropicStreamEventTypes.CONTENT_BLOCK_DELTA,
        ]
        assert events[0].index == 2
        assert events[0].content_block.type == "text"
        assert events[1].index == 2
        assert state.block_open


class TestFinishAndFormatting:
    def test_finish_closes_open_block(self):
        state = started_state()
        events = process_finish_event(state)

        assert event_types(events) == [
            AnthropicStreamEventTypes.CONTENT_BLOCK_STOP,
            AnthropicStreamEventTypes.MESSAGE_DELTA,
            AnthropicStreamEventTypes.MESSAGE_STOP,
        ]
        assert events[1].delta.stop_reason == "end_turn"

    def test_finish_without_open_block(self):
        state = started_state()
        state.block_open = False
        events = process_finish_event(state)
        assert event_types(events) == [
            AnthropicStreamEventTypes.MESSAGE_DELTA,
            AnthropicStreamEventTypes.MESSAGE_STOP,
        ]

    def test_format_event(self):
        assert format_event("ping", {"type": "ping"}) == 'event: ping\ndata: {"type": "ping"}\n\n'

    def test_message_start_wire_shape(self):
        state = StreamState("claude-sonnet-4-5")
        message_start = process_stream_start(state)[0]
        data = dump_stream_event(message_start)

        assert data["type"] == "message_start"
        assert data["message"]["id"].startswith("msg_")
        assert data["message"]["model"] == "claude-sonnet-4-5"
        assert data["message"]["content"] == []
        assert data["message"]["stop_reason"] is None
        assert data["message"]["usage"] == {"input_tokens": 0, "output_tokens": 0}
        assert "delta" not in data

    def test_message_delta_keeps_null_stop_sequence(self):
        state = started_state()
        message_delta = process_finish_event(state)[1]
        data = dump_stream_event(message_delta)

        assert data["delta"] == {"stop_reason": "end_turn", "stop_sequence": None}
        assert "message" not in data

    def test_format_stream_event_uses_event_type(self):
        state = started_state()
        text = format_stream_event(process_finish_event(state)[-1])
        assert text == 'event: message_stop\ndata: {"type": "message_stop"}\n\n'

    def test_completion_log_reports_upstream_event_count(self):
        state = started_state()
        for text in ("a", "b"):
            translate_kiro_event(KiroEvent(kind=KiroEventKind.TEXT, text=text), state)
        translate_kiro_event(KiroEvent(kind=KiroEventKind.METERING), state)

        messages = []
        sink_id = logger.add(messages.append, format="{message}")
        try:
            _log_stream_completion_details(state, "req-1")
        finally:
            logger.remove(sink_id)

        assert state.total_events == 3
        assert "共处理 3 个上游事件" in messages[0]
