"""
AWS 事件流模块

提供 application/vnd.amazon.eventstream 二进制格式的解码和增量读取。
"""

from .frame_decoder import (
    DecodedFrame,
    EventStreamFrameError,
    decode_frame,
    decode_frames,
    encode_frame,
)
from .stream_reader import iter_kiro_events

__all__ = [
    "DecodedFrame",
    "EventStreamFrameError",
    "decode_frame",
    "decode_frames",
    "encode_frame",
    "iter_kiro_events",
]
