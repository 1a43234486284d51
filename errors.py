"""Exception taxonomy for the users service and the FastAPI handlers that
render it.

Domain errors carry their HTTP status and JSON body. Request parsing errors
from FastAPI are folded into the same ``{"errors": [...]}`` shape as
validation failures. Anything else becomes a generic 500 that never leaks
internals.
"""

from typing import Callable, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

INTERNAL_ERROR_MESSAGE = "Internal server error."
USER_NOT_FOUND_MESSAGE = "User not found."


class UsersServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "internal"

    def __init__(self, message: str = INTERNAL_ERROR_MESSAGE):
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"error": self.message}

    @property
    def headers(self) -> Optional[dict]:
        return None


class UserValidationError(UsersServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation"

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = list(errors)

    def to_response(self) -> dict:
        return {"errors": self.errors}


class AuthenticationError(UsersServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "unauthorized"

    @property
    def headers(self) -> Optional[dict]:
        return {"WWW-Authenticate": "Bearer"}


class UserNotFoundError(UsersServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"

    def __init__(self, user_id: int):
        super().__init__(USER_NOT_FOUND_MESSAGE)
        self.user_id = user_id


def format_request_errors(exc: RequestValidationError) -> List[str]:
    """Flatten FastAPI's parser errors into ``"field: message"`` strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def register_error_handlers(app: FastAPI, on_error: Callable[[Request, str], None]) -> None:
    """Install the handlers on ``app``.

    ``on_error`` is called with the request and the error type label of every
    handled error, so the caller can count them.
    """

    @app.exception_handler(UsersServiceError)
    async def users_service_error_handler(request: Request, exc: UsersServiceError):
        on_error(request, exc.error_type)
        return JSONResponse(status_code=exc.status_code, content=exc.to_response(), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        messages = format_request_errors(exc)
        logger.warning(f"Malformed request on {request.url.path}: {messages}")
        on_error(request, "bad_request")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": messages})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return internal_error_response(request, exc, on_error)


def internal_error_response(
    request: Request, exc: Exception, on_error: Callable[[Request, str], None]
) -> JSONResponse:
    """Log ``exc`` with its traceback, count it and build the generic 500."""
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    on_error(request, "internal")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": INTERNAL_ERROR_MESSAGE},
    )
