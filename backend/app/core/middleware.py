"""Request-scoped middleware: correlation ids, access logs and body limits."""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import request_id_ctx_var, user_id_ctx_var

REQUEST_ID_HEADER = "X-Request-ID"


def _access_level(status_code: int) -> str:
    if status_code >= 500:
        return "ERROR"
    if status_code >= 400:
        return "WARNING"
    return "INFO"


class RequestContextLogMiddleware(BaseHTTPMiddleware):
    """Tag every log line of a request with its id and emit one access record."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        tokens = (request_id_ctx_var.set(request_id), user_id_ctx_var.set("-"))
        started = time.perf_counter()
        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
            response.headers.setdefault(REQUEST_ID_HEADER, request_id)
            return response
        finally:
            route = request.scope.get("route")
            logger.bind(
                method=request.method,
                path=request.url.path,
                route=getattr(route, "path", None),
                status=status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                client=request.client.host if request.client else None,
                # Set by the identity dependency once the bearer token resolves.
                user_id=getattr(request.state, "user_id", "-"),
            ).log(_access_level(status_code), "request_completed")
            request_id_ctx_var.reset(tokens[0])
            user_id_ctx_var.reset(tokens[1])


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Refuse bodies whose declared length exceeds ``MAX_REQUEST_BYTES``."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        declared = request.headers.get("content-length")
        if declared is not None:
            if not declared.isdigit():
                return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length"})
            if int(declared) > settings.MAX_REQUEST_BYTES:
                logger.bind(declared=int(declared), limit=settings.MAX_REQUEST_BYTES).warning(
                    "request_body_too_large"
                )
                return JSONResponse(status_code=413, content={"detail": "Request entity too large"})
        return await call_next(request)
