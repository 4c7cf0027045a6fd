"""事件流帧解码测试"""

import struct

import pytest

from src.core.eventstream import (
    EventStreamFrameError,
    decode_frame,
    decode_frames,
    encode_frame,
)
from src.core.eventstream.frame_decoder import MIN_FRAME_LENGTH, PRELUDE_LENGTH
from tests.fixtures import TEXT_HELLO, TEXT_WORLD, TOOL_USE_READ, build_stream


class TestDecodeFrame:
    """单帧解码"""

    def test_decode_json_payload(self):
        frame = encode_frame(TEXT_HELLO)
        decoded = decode_frame(frame)

        assert decoded is not None
        assert decoded.payload == TEXT_HELLO
        assert decoded.next_offset == len(frame)

    def test_empty_payload_is_control_frame(self):
        frame = encode_frame(b"")
        decoded = decode_frame(frame)

        assert len(frame) == MIN_FRAME_LENGTH
        assert decoded.is_empty
        assert decoded.next_offset == MIN_FRAME_LENGTH

    def test_single_byte_payload(self):
        decoded = decode_frame(encode_frame(b"7"))
        assert decoded.payload == 7

    def test_non_json_payload_wrapped_as_raw(self):
        decoded = decode_frame(encode_frame(b"not json"))
        assert decoded.payload == {"raw": "not json"}

    def test_large_payload(self):
        payload = {"content": "x" * 70000}
        decoded = decode_frame(encode_frame(payload))
        assert decoded.payload == payload

    def test_headers_are_skipped(self):
        headers = b"\x0b:event-type\x07\x00\x05chunk"
        frame = encode_frame(TEXT_HELLO, headers=headers)
        decoded = decode_frame(frame)

        assert decoded.payload == TEXT_HELLO
        assert decoded.next_offset == len(frame)

    def test_prelude_incomplete(self):
        frame = encode_frame(TEXT_HELLO)
        assert decode_frame(frame[: PRELUDE_LENGTH - 1]) is None
        assert decode_frame(b"") is None

    def test_declared_length_exceeds_buffer_then_completes(self):
        frame = encode_frame(TEXT_HELLO)
        partial = bytearray(frame[:-3])

        assert decode_frame(partial) is None

        partial.extend(frame[-3:])
        decoded = decode_frame(partial)
        assert decoded is not None
        assert decoded.payload == TEXT_HELLO

    def test_decode_at_offset(self):
        first = encode_frame(TEXT_HELLO)
        data = first + encode_frame(TEXT_WORLD)

        decoded = decode_frame(data, len(first))
        assert decoded.payload == TEXT_WORLD
        assert decoded.next_offset == len(data)

    @pytest.mark.parametrize("total_length", [12, 14, 15])
    def test_short_frame_skipped_as_control_frame(self, total_length):
        short = struct.pack(">II", total_length, 0) + b"\x00" * (total_length - 8)
        data = short + encode_frame({"content": "after"})

        decoded = decode_frame(data)
        assert decoded.is_empty
        assert decoded.next_offset == total_length
        assert decode_frames(data) == [{"content": "after"}]

    def test_total_length_shorter_than_prelude_raises(self):
        corrupt = struct.pack(">II", 8, 0) + b"\x00" * 8
        with pytest.raises(EventStreamFrameError):
            decode_frame(corrupt)


class TestDecodeFrames:
    """完整缓冲区解码"""

    def test_multiple_frames_in_order(self):
        payloads = [TEXT_HELLO, TEXT_WORLD, TOOL_USE_READ]
        assert decode_frames(build_stream(payloads)) == payloads

    def test_empty_frames_are_skipped(self):
        data = encode_frame(TEXT_HELLO) + encode_frame(b"") + encode_frame(TEXT_WORLD)
        assert decode_frames(data) == [TEXT_HELLO, TEXT_WORLD]

    def test_trailing_partial_frame_dropped(self):
        data = build_stream([TEXT_HELLO]) + encode_frame(TEXT_WORLD)[:10]
        assert decode_frames(data) == [TEXT_HELLO]

    def test_empty_buffer(self):
        assert decode_frames(b"") == []
