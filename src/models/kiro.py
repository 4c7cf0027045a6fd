"""Kiro (AWS CodeWhisperer) API 数据模型定义

字段名与线上JSON保持一致（驼峰命名）。
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class KiroOrigins:
    """请求来源常量"""

    KIRO_CLI = "KIRO_CLI"
    IDE = "IDE"
    AI_EDITOR = "AI_EDITOR"


class KiroChatTriggerTypes:
    """对话触发类型常量"""

    MANUAL = "MANUAL"
    DIAGNOSTIC = "DIAGNOSTIC"
    INLINE_CHAT = "INLINE_CHAT"


class KiroEditorState(BaseModel):
    """编辑器状态"""

    cursorState: dict[str, Any] | None = Field(None, description="光标状态")


class KiroUserInputMessageContext(BaseModel):
    """用户输入消息上下文"""

    editorState: KiroEditorState = Field(
        default_factory=KiroEditorState, description="编辑器状态"
    )


class KiroUserInputMessage(BaseModel):
    """用户输入消息"""

    content: str = Field(description="消息文本")
    userInputMessageContext: KiroUserInputMessageContext | None = Field(
        None, description="消息上下文"
    )


class KiroAssistantResponseMessage(BaseModel):
    """助手历史消息"""

    content: str = Field(description="消息文本")


class KiroHistoryEntry(BaseModel):
    """对话历史条目，二者必居其一"""

    userInputMessage: KiroUserInputMessage | None = None
    assistantResponseMessage: KiroAssistantResponseMessage | None = None


class KiroCurrentMessage(BaseModel):
    """当前消息"""

    userInputMessage: KiroUserInputMessage


class KiroConversationState(BaseModel):
    """对话状态"""

    conversationId: str = Field(description="会话ID")
    chatTriggerType: str = Field(
        KiroChatTriggerTypes.MANUAL, description="对话触发类型"
    )
    customizationArn: str | None = Field(None, description="定制ARN")
    currentMessage: KiroCurrentMessage = Field(description="当前用户消息")
    history: list[KiroHistoryEntry] = Field([], description="历史消息")


class KiroRequest(BaseModel):
    """generateAssistantResponse 请求体"""

    conversationState: KiroConversationState
    profileArn: str | None = Field(None, description="Profile ARN")
    source: str = Field(KiroOrigins.AI_EDITOR, description="请求来源")
    modelId: str = Field(description="Kiro内部模型ID")
    origin: str = Field(KiroOrigins.AI_EDITOR, description="请求来源")


class KiroEventKind(str, Enum):
    """上游负载形态

    按识别优先级排列，先匹配者生效。
    """

    TEXT = "text"
    ASSISTANT_RESPONSE = "assistant_response"
    METERING = "metering"
    TOKEN_USAGE = "token_usage"
    TOOL_USE = "tool_use"
    CODE = "code"
    UNRECOGNIZED = "unrecognized"


class KiroToolUse(BaseModel):
    """工具调用事件"""

    toolUseId: str | None = Field(None, description="工具调用ID")
    name: str | None = Field(None, description="工具名称")
    input: Any = Field(None, description="工具输入")


class KiroTokenUsage(BaseModel):
    """token使用量"""

    inputTokens: int | None = Field(0, description="输入token数量")
    outputTokens: int | None = Field(0, description="输出token数量")


class KiroEvent(BaseModel):
    """分类后的上游事件"""

    kind: KiroEventKind
    text: str | None = Field(None, description="文本内容")
    tool_use: KiroToolUse | None = Field(None, description="工具调用")
    token_usage: KiroTokenUsage | None = Field(None, description="token使用量")
    metering_usage: float | None = Field(None, description="计量值")
    metering_unit: str | None = Field(None, description="计量单位")

