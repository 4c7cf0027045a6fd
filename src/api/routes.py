"""健康检查与模型列表"""

import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.common.logging import get_logger_with_request_id, get_request_id_from_request
from src.models.anthropic import AnthropicModelInfo, AnthropicModelList

router = APIRouter()

# (模型名, 所属方, 描述, Kiro模型ID)
KIRO_MODELS = [
    ("claude-opus-4-5", "anthropic", "Claude Opus 4.5 - Most capable Claude model", "claude-opus-4.5"),
    ("claude-sonnet-4-5", "anthropic", "Claude Sonnet 4.5 - Balanced performance and speed", "claude-sonnet-4.5"),
    ("claude-sonnet-4", "anthropic", "Claude Sonnet 4 - Fast and efficient", "claude-sonnet-4"),
    ("claude-haiku-4-5", "anthropic", "Claude Haiku 4.5 - Fastest Claude model", "claude-haiku-4.5"),
    ("auto", "amazon", "Auto - Let Kiro choose the best model", "auto"),
    ("claude-opus-4-5-thinking", "anthropic", "Claude Opus 4.5 with extended thinking", "claude-opus-4.5"),
    ("claude-sonnet-4-5-thinking", "anthropic", "Claude Sonnet 4.5 with extended thinking", "claude-sonnet-4.5"),
    ("claude-sonnet-4-thinking", "anthropic", "Claude Sonnet 4 with extended thinking", "claude-sonnet-4"),
]


def list_kiro_models() -> AnthropicModelList:
    created = int(time.time())
    return AnthropicModelList(
        data=[
            AnthropicModelInfo(
                id=model_id,
                created=created,
                owned_by=owned_by,
                description=description,
                kiro_id=kiro_id,
            )
            for model_id, owned_by, description, kiro_id in KIRO_MODELS
        ]
    )


@router.get("/health")
async def health_check(request: Request):
    """健康检查：凭据数据库可读且令牌未过期时返回200"""
    handler = request.app.state.messages_handler
    result = await handler.client.health_check()
    body = {"backend": "kiro", "timestamp": int(time.time()), **result}

    if result["status"] != "healthy":
        bound_logger = get_logger_with_request_id(get_request_id_from_request(request))
        bound_logger.warning(f"健康检查失败: {result.get('reason')}")
        return JSONResponse(status_code=503, content=body)
    return body


@router.get("/v1/models")
async def list_models() -> AnthropicModelList:
    """可用模型列表"""
    return list_kiro_models()
