import json
from typing import Any

import tiktoken

ENCODING_NAME = "o200k_base"


def _get(obj: Any, field_name: str, default: Any = None) -> Any:
    """同时支持pydantic模型和字典的取值"""
    if isinstance(obj, dict):
        return obj.get(field_name, default)
    return getattr(obj, field_name, default)


class TokenCounter:
    """基于tiktoken的token估算

    上游没有返回用量时使用，结果为近似值。编码器在第一次使用时加载。
    """

    def __init__(self, encoding_name: str = ENCODING_NAME):
        self.encoding_name = encoding_name
        self._encoder = None

    @property
    def encoder(self):
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.encoding_name)
        return self._encoder

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoder.encode(text))

    def _content_part_texts(self, content_part) -> list[str]:
        part_type = _get(content_part, "type")

        if part_type == "text":
            return [_get(content_part, "text") or ""]
        if part_type == "thinking":
            return [_get(content_part, "thinking") or ""]
        if part_type == "tool_use":
            texts = [_get(content_part, "name") or ""]
            input_data = _get(content_part, "input")
            if input_data:
                texts.append(json.dumps(input_data, ensure_ascii=False))
            return texts
        if part_type == "tool_result":
            result = _get(content_part, "content")
            if isinstance(result, str):
                return [result]
            if isinstance(result, list):
                return [json.dumps(result, ensure_ascii=False)]
        return []

    async def count_tokens(
        self,
        messages: list[Any] = None,
        system: Any = None,
        tools: list[Any] = None,
    ) -> int:
        """计算完整请求的token总数

        Args:
            messages: 消息列表
            system: 系统提示
            tools: 工具定义

        Returns:
            int: 总计token数量
        """
        text_parts = []

        for message in messages or []:
            content = _get(message, "content", "")
            if isinstance(content, str):
                text_parts.append(content)
            elif isinstance(content, list):
                for content_part in content:
                    text_parts.extend(self._content_part_texts(content_part))

        if isinstance(system, str):
            text_parts.append(system)
        elif isinstance(system, list):
            text_parts.extend(_get(item, "text") or "" for item in system)

        for tool in tools or []:
            text_parts.append(_get(tool, "name") or "")
            text_parts.append(_get(tool, "description") or "")
            schema = _get(tool, "input_schema")
            if schema:
                text_parts.append(json.dumps(schema, ensure_ascii=False))

        return self.count_text("".join(text_parts))

    def count_response_tokens(self, content_blocks: list) -> int:
        """计算响应内容块的token数量"""
        text_parts = []
        for block in content_blocks or []:
            for field_name in ("text", "thinking", "name"):
                value = _get(block, field_name)
                if value:
                    text_parts.append(str(value))
            input_data = _get(block, "input")
            if input_data:
                text_parts.append(json.dumps(input_data, ensure_ascii=False))

        return self.count_text("".join(text_parts))


# 全局实例
token_counter = TokenCounter()
