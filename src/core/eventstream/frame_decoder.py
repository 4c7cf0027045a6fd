"""AWS 二进制事件流帧解码

CodeWhisperer 的 generateAssistantResponse 接口返回
application/vnd.amazon.eventstream 格式，每一帧的布局如下（大端序）:

    [total_length:4][headers_length:4][prelude_crc:4][headers][payload][message_crc:4]

本模块只负责长度计算和负载解析，头部和CRC不做解释。
"""

import json
import struct
import zlib
from dataclasses import dataclass
from typing import Any

# 前导部分: total_length + headers_length + prelude_crc
PRELUDE_LENGTH = 12
# 末尾消息CRC
MESSAGE_CRC_LENGTH = 4
# 一帧最小长度（无头部、无负载）
MIN_FRAME_LENGTH = PRELUDE_LENGTH + MESSAGE_CRC_LENGTH

_PRELUDE = struct.Struct(">II")


class EventStreamFrameError(ValueError):
    """帧前导损坏，无法继续定位后续帧"""


@dataclass(frozen=True)
class DecodedFrame:
    """单帧解码结果

    payload 为 None 表示空帧/控制帧，调用方应跳过但仍需前进偏移量。
    总长度在 12 到 15 字节之间的帧同样按空帧处理。
    """

    payload: dict[str, Any] | list[Any] | str | int | float | bool | None
    next_offset: int

    @property
    def is_empty(self) -> bool:
        return self.payload is None


def parse_payload(raw: bytes) -> Any:
    """解析负载字节，非JSON内容包装为 {"raw": text}"""
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {"raw": text}


def decode_frame(buffer: bytes | bytearray | memoryview, offset: int = 0) -> DecodedFrame | None:
    """从缓冲区指定偏移处尝试解码一帧

    Args:
        buffer: 已接收的字节
        offset: 帧起始偏移

    Returns:
        DecodedFrame: 完整帧的解码结果
        None: 数据不足，需要更多字节

    Raises:
        EventStreamFrameError: 声明的总长度比前导还短，游标无法前进
    """
    available = len(buffer) - offset
    if available < PRELUDE_LENGTH:
        return None

    total_length, headers_length = _PRELUDE.unpack_from(buffer, offset)

    if offset + total_length > len(buffer):
        return None

    if total_length < PRELUDE_LENGTH:
        raise EventStreamFrameError(
            f"Invalid frame length {total_length} at offset {offset}"
        )

    next_offset = offset + total_length
    payload_offset = offset + PRELUDE_LENGTH + headers_length
    payload_length = total_length - headers_length - MIN_FRAME_LENGTH

    if payload_length <= 0:
        return DecodedFrame(payload=None, next_offset=next_offset)

    raw = bytes(buffer[payload_offset : payload_offset + payload_length])
    return DecodedFrame(payload=parse_payload(raw), next_offset=next_offset)


def decode_frames(buffer: bytes | bytearray) -> list[Any]:
    """解码完整缓冲区中的所有帧（非流式响应使用）

    末尾不完整的帧被丢弃，空帧不出现在结果中。
    """
    payloads = []
    offset = 0
    while offset < len(buffer):
        frame = decode_frame(buffer, offset)
        if frame is None:
            break
        if not frame.is_empty:
            payloads.append(frame.payload)
        offset = frame.next_offset
    return payloads


def encode_frame(payload: Any, headers: bytes = b"") -> bytes:
    """将负载编码为一帧事件流

    payload 为 bytes 时原样写入，否则序列化为JSON。主要用于测试和本地回放。
    """
    if isinstance(payload, bytes):
        body = payload
    else:
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")

    total_length = MIN_FRAME_LENGTH + len(headers) + len(body)
    prelude = _PRELUDE.pack(total_length, len(headers))
    prelude_crc = struct.pack(">I", zlib.crc32(prelude) & 0xFFFFFFFF)
    message = prelude + prelude_crc + headers + body
    message_crc = struct.pack(">I", zlib.crc32(message) & 0xFFFFFFFF)
    return message + message_crc
