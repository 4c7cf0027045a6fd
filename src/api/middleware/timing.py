"""请求ID与计时中间件"""

import time
from collections.abc import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.common.logging import (
    REQUEST_ID_HEADER,
    generate_request_id,
    get_logger_with_request_id,
    request_logger,
)
from src.models.errors import get_error_response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """为每个请求分配请求ID并记录处理时间

    客户端在 X-Request-ID 中带了请求ID时沿用，否则生成新的。
    流式响应的耗时统计到响应头发出为止。
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_id = request.headers.get(REQUEST_ID_HEADER) or await generate_request_id()
        request.state.request_id = request_id

        bound_logger = get_logger_with_request_id(request_id)
        bound_logger.info(f"收到请求 - {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception as exc:
            await request_logger.log_error(
                exc,
                context={"method": request.method, "path": request.url.path},
                request_id=request_id,
            )
            error_response = await get_error_response(500)
            response = JSONResponse(status_code=500, content=error_response.model_dump())

        response_time = time.perf_counter() - start_time
        await request_logger.log_response(response.status_code, response_time, request_id)

        response.headers["X-Process-Time"] = f"{response_time:.3f}s"
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_middlewares(app: FastAPI) -> None:
    """设置所有中间件"""
    app.add_middleware(RequestTimingMiddleware)
