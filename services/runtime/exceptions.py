"""
Where: services/runtime/exceptions.py
What: Runtime exception handler registration.
Why: Keep error handling setup isolated from route and lifecycle concerns.
"""

from fastapi import FastAPI

from .core.exceptions import (
    PayloadTooLargeError,
    global_exception_handler,
    payload_too_large_handler,
)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, global_exception_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
    app.add_exception_handler(PayloadTooLargeError, payload_too_large_handler)  # ty: ignore[invalid-argument-type]  # Starlette type stubs incomplete
