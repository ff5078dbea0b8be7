"""Error taxonomy raised by services and mapped to HTTP responses at the edge.

Services never build HTTP responses themselves. They raise one of the
``StandupError`` subclasses below and ``register_exception_handlers``
translates the error kind into a status code and a JSON body of the form
``{"detail": ..., "code": ...}``. Anything that is not a ``StandupError``
is logged and reported as a generic 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StandupError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "unexpected"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(StandupError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AuthenticationError(StandupError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"


class UnauthorizedError(StandupError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class BadRequestError(StandupError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"


class ConflictError(BadRequestError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StandupError, _handle_standup_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


async def _handle_standup_error(request: Request, exc: StandupError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed path=%s detail=%s", request.url.path, exc.detail)
        return _error_response(exc.status_code, "Internal server error.", exc.code)
    return _error_response(exc.status_code, exc.detail, exc.code)


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error path=%s", request.url.path, exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error.",
        StandupError.code,
    )


def _error_response(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})
