"""Domain error taxonomy shared by the ledgers, messaging and the API layer."""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class CollabError(Exception):
    """Base class for errors surfaced synchronously to the caller."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(CollabError):
    """No identity, or an identity that may not act on the resource."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class Forbidden(Unauthorized):
    """Identity is known but lacks the role or ownership for this resource."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Access denied"


class NotFound(CollabError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(CollabError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class InvalidState(CollabError):
    """The operation is not valid for the entity's current lifecycle state."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Operation not allowed in the current state"


class InvalidInput(CollabError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request data"


def init_error_handlers(app: FastAPI) -> None:
    """Map domain errors onto JSON responses."""

    async def collab_error_handler(request: Request, exc: CollabError):
        logger.bind(
            error=type(exc).__name__,
            status=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        ).info("request_rejected")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    app.add_exception_handler(CollabError, collab_error_handler)
