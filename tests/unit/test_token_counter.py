"""token估算测试

编码器替换为按空白切分的假实现，不依赖 tiktoken 的编码文件。
"""

from src.common.token_counter import TokenCounter
from src.models.anthropic import AnthropicContentBlock, AnthropicRequest


class WhitespaceEncoder:
    def encode(self, text: str) -> list[str]:
        return text.split()


def make_counter() -> TokenCounter:
    counter = TokenCounter()
    counter._encoder = WhitespaceEncoder()
    return counter


class TestTokenCounter:
    def test_empty_text(self):
        assert make_counter().count_text("") == 0

    async def test_string_messages_and_system(self):
        counter = make_counter()
        total = await counter.count_tokens(
            [{"role": "user", "content": "one two "}], system="three four "
        )
        assert total == 4

    async def test_structured_content(self):
        request = AnthropicRequest(
            model="claude-sonnet-4-5",
            messages=[
                {
                    "role": "assistant",
                    "content": [
                        {"type": "text", "text": "a b "},
                        {"type": "thinking", "thinking": "c "},
                        {"type": "tool_use", "id": "t1", "name": "read ", "input": {"k": "v"}},
                    ],
                },
                {
                    "role": "user",
                    "content": [{"type": "tool_result", "tool_use_id": "t1", "content": " done"}],
                },
            ],
            system=[{"type": "text", "text": " sys"}],
        )
        total = await make_counter().count_tokens(request.messages, request.system, request.tools)

        # "a b c read {"k": "v"} done sys" 按空白切分
        assert total == 8

    async def test_tools_counted(self):
        total = await make_counter().count_tokens(
            [],
            tools=[{"name": "search ", "description": "find things ", "input_schema": {"type": "object"}}],
        )
        assert total == 5

    def test_response_tokens(self):
        blocks = [
            AnthropicContentBlock(type="text", text="hello there "),
            AnthropicContentBlock(type="tool_use", id="t1", name="read ", input={"path": "/x"}),
        ]
        assert make_counter().count_response_tokens(blocks) == 5
