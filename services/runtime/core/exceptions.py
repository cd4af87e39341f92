"""
Custom exception classes.

Represent errors related to function invocation.
"""

import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

logger = logging.getLogger(__name__)


class FunctionInvokeError(Exception):
    """Base exception class for function invocation."""

    pass


class EventBodyError(FunctionInvokeError):
    """Raised when a JSON request body cannot be parsed."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Unable to parse JSON body: {cause}")


class HandlerLoadError(FunctionInvokeError):
    """Raised when the user module does not provide a usable handler."""

    pass


class DependencyResolutionError(FunctionInvokeError, ImportError):
    """Raised when a declared dependency is missing from the private directory."""

    def __init__(self, name: str, libs_path: str):
        self.libs_path = libs_path
        super().__init__(f"Declared dependency {name!r} not found in {libs_path}", name=name)


class InvocationTimeoutError(FunctionInvokeError):
    """Raised when the handler does not settle within the time budget."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Function execution timed out after {timeout:g}s")


class PayloadTooLargeError(FunctionInvokeError):
    """Raised when the request body exceeds the configured limit."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Request body of {size} bytes exceeds limit of {limit} bytes")


# ===========================================
# Exception Handlers
# ===========================================


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {exc}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


async def payload_too_large_handler(request: Request, exc: PayloadTooLargeError):
    """
    Handler for oversized request bodies.
    """
    logger.warning(
        str(exc),
        extra={"path": request.url.path, "size": exc.size, "limit": exc.limit},
    )
    return PlainTextResponse("Payload Too Large", status_code=413)
