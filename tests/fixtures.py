"""测试用的事件流构造工具和样例负载"""

import json
import sqlite3
from collections.abc import AsyncIterator, Iterable
from pathlib import Path

import httpx

from src.api.handlers import MessagesHandler
from src.config.settings import Config, KiroConfig
from src.core.clients import KiroCredentials, KiroServiceClient
from src.core.eventstream import encode_frame

TEXT_HELLO = {"content": "Hello"}
TEXT_WORLD = {"content": " world"}
TOKEN_USAGE = {"metadataEvent": {"tokenUsage": {"inputTokens": 10, "outputTokens": 5}}}
METERING = {"unit": "credit", "unitPlural": "credits", "usage": 0.0022}
TOOL_USE_READ = {
    "toolUseEvent": {
        "toolUseId": "toolu_read_1",
        "name": "read",
        "input": {"path": "/x"},
    }
}


def build_stream(payloads: Iterable) -> bytes:
    """把负载序列编码为连续的事件流字节"""
    return b"".join(encode_frame(payload) for payload in payloads)


def split_every(data: bytes, size: int) -> list[bytes]:
    """按固定大小切分字节"""
    return [data[i : i + size] for i in range(0, len(data), size)]


async def aiter_chunks(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class FailingByteSource:
    """产出若干块后抛出异常的字节源，记录是否被关闭"""

    def __init__(self, chunks: list[bytes], error: Exception):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self.chunks:
            return self.chunks.pop(0)
        raise self.error

    async def aclose(self):
        self.closed = True


def create_kiro_db(path: Path, token_data: dict | None, prefix: str | None = None) -> str:
    """创建与 Kiro CLI 结构一致的凭据数据库"""
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE auth_kv (key TEXT PRIMARY KEY, value TEXT)")
        if token_data is not None:
            value = json.dumps(token_data)
            if prefix:
                value = f"{prefix}|{value}"
            conn.execute(
                "INSERT INTO auth_kv (key, value) VALUES (?, ?)",
                ("kirocli:odic:token", value),
            )
        conn.commit()
    finally:
        conn.close()
    return str(path)


def parse_sse(text: str) -> list[tuple[str, dict]]:
    """把SSE文本解析为 (事件类型, 数据) 列表"""
    events = []
    for block in text.strip().split("\n\n"):
        if not block.strip():
            continue
        event_type = None
        data = None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event_type = line[len("event: ") :]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: ") :])
        events.append((event_type, data))
    return events


class StubCredentialCache:
    """返回固定凭据的缓存，记录被清空的次数"""

    def __init__(self, credentials=None, error: Exception | None = None):
        self.credentials = credentials or KiroCredentials(access_token="tok")
        self.error = error
        self.cleared = 0

    async def get(self) -> KiroCredentials:
        if self.error is not None:
            raise self.error
        return self.credentials

    def clear(self) -> None:
        self.cleared += 1


class FakeSleep:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class SequenceHandler:
    """按顺序返回预设响应，记录收到的请求"""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class BrokenStream(httpx.AsyncByteStream):
    """先产出若干块，然后模拟连接中断"""

    def __init__(self, chunks: list[bytes], error: Exception):
        self.chunks = chunks
        self.error = error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk
        raise self.error


def make_kiro_client(handler, cache=None, **config_overrides) -> tuple[KiroServiceClient, FakeSleep]:
    """创建使用 MockTransport 的客户端"""
    config_overrides.setdefault("db_path", "unused")
    sleep = FakeSleep()
    client = KiroServiceClient(
        KiroConfig(**config_overrides),
        credential_cache=cache or StubCredentialCache(),
        transport=httpx.MockTransport(handler),
        sleep=sleep,
    )
    return client, sleep


def install_kiro_upstream(app, responses, cache=None, **config_overrides) -> SequenceHandler:
    """让应用使用模拟上游，返回记录请求的处理函数"""
    upstream = SequenceHandler(responses)
    client, _ = make_kiro_client(upstream, cache, **config_overrides)
    app.state.messages_handler = MessagesHandler(Config(), client)
    return upstream
