"""
Anthropic -> Kiro 请求转换器

Kiro 的对话接口只接受纯文本消息，因此工具调用、工具结果、思考内容等
结构化内容块会被展开为带标签的文本。最后一条用户消息作为当前消息，
之前的消息作为历史。
"""

import json
import uuid

from src.common.logging import get_logger_with_request_id
from src.config.settings import ModelConfig
from src.models.anthropic import (
    AnthropicContentTypes,
    AnthropicMessage,
    AnthropicMessageContent,
    AnthropicRequest,
    AnthropicRoles,
    AnthropicSystemMessage,
)
from src.models.kiro import (
    KiroAssistantResponseMessage,
    KiroChatTriggerTypes,
    KiroConversationState,
    KiroCurrentMessage,
    KiroHistoryEntry,
    KiroOrigins,
    KiroRequest,
    KiroUserInputMessage,
    KiroUserInputMessageContext,
)

IMAGE_PLACEHOLDER = "[Image attached]"


class AnthropicToKiroConverter:
    """将Anthropic请求转换为Kiro格式"""

    @staticmethod
    def map_model_to_kiro(model: str | None, model_config: ModelConfig | None = None) -> str:
        """
        Anthropic模型名映射为Kiro内部模型ID

        先查配置中的映射表，再按名称模糊匹配，都不命中时使用默认模型。

        Args:
            model: 请求中的模型名
            model_config: 模型映射配置

        Returns:
            Kiro模型ID
        """
        model_config = model_config or ModelConfig()
        lower = (model or "").lower()

        if lower in model_config.mapping:
            return model_config.mapping[lower]

        if "opus" in lower:
            return "claude-opus-4.5"
        if "sonnet" in lower and ("4.5" in lower or "4-5" in lower):
            return "claude-sonnet-4.5"
        if "sonnet" in lower and "4" in lower:
            return "claude-sonnet-4"
        if "haiku" in lower:
            return "claude-haiku-4.5"

        return model_config.default

    @staticmethod
    def convert_anthropic_to_kiro(
        anthropic_request: AnthropicRequest,
        model_config: ModelConfig | None = None,
        request_id: str = None,
    ) -> KiroRequest:
        """
        将Anthropic请求转换为Kiro generateAssistantResponse 请求

        Args:
            anthropic_request: Anthropic格式的请求
            model_config: 模型映射配置
            request_id: 请求ID用于日志追踪

        Returns:
            Kiro格式请求
        """
        bound_logger = get_logger_with_request_id(request_id)

        model_id = AnthropicToKiroConverter.map_model_to_kiro(
            anthropic_request.model, model_config
        )

        turns = AnthropicToKiroConverter._convert_messages(anthropic_request)
        prompt, history = AnthropicToKiroConverter._split_current_message(turns)

        if anthropic_request.tools:
            # 上游对话接口不接受工具定义，工具调用依赖历史中的文本标签
            bound_logger.debug(f"忽略 {len(anthropic_request.tools)} 个工具定义")

        kiro_request = KiroRequest(
            conversationState=KiroConversationState(
                conversationId=str(uuid.uuid4()),
                chatTriggerType=KiroChatTriggerTypes.MANUAL,
                customizationArn=None,
                currentMessage=KiroCurrentMessage(
                    userInputMessage=KiroUserInputMessage(
                        content=prompt,
                        userInputMessageContext=KiroUserInputMessageContext(),
                    )
                ),
                history=history,
            ),
            profileArn=None,
            source=KiroOrigins.AI_EDITOR,
            modelId=model_id,
            origin=KiroOrigins.AI_EDITOR,
        )

        bound_logger.info(
            f"模型转换完成 - Anthropic: {anthropic_request.model} -> Kiro: {model_id}"
        )
        bound_logger.debug(
            f"Kiro 请求: history={len(history)}, prompt_chars={len(prompt)}"
        )
        return kiro_request

    @staticmethod
    def _convert_messages(anthropic_request: AnthropicRequest) -> list[tuple[str, str]]:
        """把system和消息列表展开为 (角色, 文本) 序列"""
        turns = []

        if anthropic_request.system:
            system_text = AnthropicToKiroConverter._convert_system_message(
                anthropic_request.system
            )
            if system_text:
                # Kiro 没有 system 角色，按用户消息发送
                turns.append(("system", system_text))

        for message in anthropic_request.messages:
            turns.append(
                (message.role, AnthropicToKiroConverter._convert_message_content(message))
            )

        return turns

    @staticmethod
    def _convert_system_message(system: str | list[AnthropicSystemMessage]) -> str:
        if isinstance(system, str):
            return system
        return "\n".join(item.text for item in system if item.text)

    @staticmethod
    def _convert_message_content(message: AnthropicMessage) -> str:
        if isinstance(message.content, str):
            return message.content

        parts = []
        for block in message.content:
            text = AnthropicToKiroConverter._convert_content_block(block)
            if text is not None:
                parts.append(text)
        return "\n".join(parts)

    @staticmethod
    def _convert_content_block(block: AnthropicMessageContent) -> str | None:
        """单个内容块转换为文本，无法表示的类型返回None"""
        if block.type == AnthropicContentTypes.TEXT:
            return block.text or ""
        if block.type == AnthropicContentTypes.THINKING:
            return f"<thinking>{block.thinking or ''}</thinking>"
        if block.type == AnthropicContentTypes.TOOL_USE:
            tool_input = json.dumps(block.input or {}, ensure_ascii=False)
            return f'<tool_use name="{block.name}">{tool_input}</tool_use>'
        if block.type == AnthropicContentTypes.TOOL_RESULT:
            content = block.content
            if not isinstance(content, str):
                content = json.dumps(content or [], ensure_ascii=False)
            return f'<tool_result tool_use_id="{block.tool_use_id}">{content}</tool_result>'
        if block.type == AnthropicContentTypes.IMAGE:
            return IMAGE_PLACEHOLDER
        return None

    @staticmethod
    def _split_current_message(
        turns: list[tuple[str, str]],
    ) -> tuple[str, list[KiroHistoryEntry]]:
        """
        最后一条用户消息作为当前消息，之前的消息作为历史

        当前消息之后的助手消息（预填充）上游无法表示，直接丢弃。
        没有用户消息时当前消息为空，全部作为历史。
        """
        last_user_index = None
        for index in range(len(turns) - 1, -1, -1):
            if turns[index][0] == AnthropicRoles.USER:
                last_user_index = index
                break

        if last_user_index is None:
            prompt, previous = "", turns
        else:
            prompt, previous = turns[last_user_index][1], turns[:last_user_index]

        history = []
        for role, content in previous:
            if role == AnthropicRoles.ASSISTANT:
                history.append(
                    KiroHistoryEntry(
                        assistantResponseMessage=KiroAssistantResponseMessage(content=content)
                    )
                )
            else:
                history.append(
                    KiroHistoryEntry(userInputMessage=KiroUserInputMessage(content=content))
                )
        return prompt, history


def validate_anthropic_request(request: AnthropicRequest, request_id: str = None) -> None:
    """
    验证Anthropic请求的完整性

    Args:
        request: 要验证的Anthropic请求
        request_id: 请求ID用于日志追踪

    Raises:
        ValueError: 如果请求格式不正确
    """
    bound_logger = get_logger_with_request_id(request_id)

    if not request.model:
        raise ValueError("模型字段不能为空")

    if not request.messages:
        raise ValueError("消息列表不能为空")

    if request.max_tokens <= 0:
        raise ValueError("max_tokens必须是正整数")

    bound_logger.debug("Anthropic请求验证通过")
