"""增量事件流读取器

把任意切分的字节块还原为一个个解码后的负载。缓冲区为每个请求独占，
已消费的前缀在每个块处理完后原地删除。
"""

from collections.abc import AsyncIterator
from typing import Any

from loguru import logger

from .frame_decoder import decode_frame


async def iter_kiro_events(
    byte_source: AsyncIterator[bytes],
    request_id: str | None = None,
) -> AsyncIterator[Any]:
    """逐个产出事件流中的负载

    Args:
        byte_source: 字节块异步迭代器（如 httpx 响应的 aiter_bytes()）
        request_id: 请求ID用于日志追踪

    Yields:
        解码后的负载，按到达顺序
    """
    bound_logger = logger.bind(request_id=request_id or "---")
    buffer = bytearray()

    try:
        async for chunk in byte_source:
            if not chunk:
                continue
            buffer.extend(chunk)

            cursor = 0
            while True:
                frame = decode_frame(buffer, cursor)
                if frame is None:
                    break
                cursor = frame.next_offset
                if not frame.is_empty:
                    yield frame.payload

            if cursor:
                del buffer[:cursor]

        if buffer:
            bound_logger.debug(f"事件流结束，丢弃 {len(buffer)} 字节未完成的帧")
    finally:
        aclose = getattr(byte_source, "aclose", None)
        if aclose is not None:
            await aclose()
