"""
Error taxonomy and the global FastAPI handlers that turn it into JSON.

Domain operations raise AppError subclasses before touching any document.
Every error response is a JSON object with a human-readable "detail".
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "missing"


class TokenExpired(Unauthenticated):
    reason = "expired"

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenInvalid(Unauthenticated):
    reason = "invalid"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class InvalidCredentials(Unauthenticated):
    """Login failure. Same message whether the e-mail or the password was wrong."""

    status_code = status.HTTP_400_BAD_REQUEST
    reason = "credentials"

    def __init__(self):
        super().__init__("Invalid credentials")


def register_error_handlers(app: FastAPI) -> None:
    """Register the domain, validation and catch-all handlers on the app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "Invalid request data",
                "errors": [
                    {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
                    for e in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Server error", "error": str(exc)},
        )
