# src/todo_ui_bff/errors.py
"""Error taxonomy and the JSON / redirect responses each error maps to."""

import logging
import typing

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"


class TodoValidationError(Exception):
    """Rejected to-do input, e.g. a blank title on create."""

    def __init__(self, message: str = "Title is required"):
        super().__init__(message)
        self.message = message


class TodoNotFound(Exception):
    """No to-do with the given id is owned by the requesting user."""

    def __init__(self, todo_id: typing.Any = None, message: str = "Todo not found"):
        super().__init__(message)
        self.todo_id = todo_id
        self.message = message


class UpstreamAuthError(Exception):
    """The identity service answered non-2xx or could not be reached.

    ``status_code`` is None for transport failures.
    """

    def __init__(self, status_code: typing.Optional[int] = None, message: typing.Optional[str] = None):
        super().__init__(message or f"Identity service error (status={status_code})")
        self.status_code = status_code
        self.message = message

    @property
    def response_status(self) -> int:
        return self.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR


class NotAuthenticated(Exception):
    """Missing or inactive bearer token. Rendered as a navigation to the login page."""

    def __init__(self, reason: str = "missing_token"):
        super().__init__(reason)
        self.reason = reason


def failure_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def register_error_handlers(app: FastAPI) -> None:
    """Register the exception handlers on the FastAPI app."""

    @app.exception_handler(NotAuthenticated)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticated):
        logger.info("Unauthenticated request to %s (%s). Redirecting to %s.", request.url.path, exc.reason, LOGIN_PATH)
        return RedirectResponse(url=LOGIN_PATH, status_code=status.HTTP_302_FOUND)

    @app.exception_handler(TodoValidationError)
    async def todo_validation_handler(request: Request, exc: TodoValidationError):
        return failure_response(status.HTTP_400_BAD_REQUEST, exc.message)

    @app.exception_handler(TodoNotFound)
    async def todo_not_found_handler(request: Request, exc: TodoNotFound):
        return failure_response(status.HTTP_404_NOT_FOUND, exc.message)

    @app.exception_handler(UpstreamAuthError)
    async def upstream_auth_handler(request: Request, exc: UpstreamAuthError):
        return failure_response(exc.response_status, exc.message or "Identity service request failed")

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("Rejected request body for %s: %s", request.url.path, exc.errors())
        return failure_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")
