"""Per-caller rate limits for the write endpoints, via SlowAPI."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address


def _identity_or_address(request: Request) -> str:
    # Authenticated callers are limited per user, anonymous ones per address.
    user_id = getattr(request.state, "user_id", None)
    return f"user:{user_id}" if user_id else f"ip:{get_remote_address(request)}"


limiter = Limiter(key_func=_identity_or_address)


def init_rate_limiter(app: FastAPI) -> None:
    """Attach the limiter and map ``RateLimitExceeded`` to a 429 response."""

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)

    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        logger.bind(
            path=request.url.path,
            key=_identity_or_address(request),
            limit=str(exc.detail),
        ).warning("rate_limited")
        return JSONResponse(status_code=429, content={"detail": "Too many requests"})

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
