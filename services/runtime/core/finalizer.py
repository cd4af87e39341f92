"""
Response finalization.

Turns the value a handler settled with into the HTTP response, based on
the value's shape.
"""

import logging
from typing import Any

from fastapi.responses import JSONResponse
from starlette.responses import PlainTextResponse, Response

from services.runtime.models.result import PayloadKind, ResultPayload
from services.runtime.services.metrics import FunctionMetrics, InvocationTimer

logger = logging.getLogger("runtime.finalizer")

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def new_response_sink() -> Response:
    """
    Response handed to the handler through ``event.extensions["response"]``.

    Starts without status or Content-Length so only what the handler sets
    is merged into the final response.
    """
    sink = Response()
    if "content-length" in sink.headers:
        del sink.headers["content-length"]
    sink.status_code = None  # type: ignore[assignment]
    return sink


def merge_sink(response: Response, sink: Response) -> Response:
    if sink.status_code:
        response.status_code = sink.status_code
    for key, value in sink.headers.items():
        if key == "content-length":
            continue
        if key == "set-cookie":
            response.headers.append(key, value)
        else:
            response.headers[key] = value
    return response


class ResponseFinalizer:
    def __init__(self, metrics: FunctionMetrics):
        self.metrics = metrics

    def build_response(self, payload: ResultPayload) -> Response:
        if payload.kind is PayloadKind.TEXT:
            content = payload.value
            if isinstance(content, bytearray):
                content = bytes(content)
            return Response(content=content)
        if payload.kind is PayloadKind.STRUCTURED:
            return JSONResponse(content=payload.value)
        if payload.kind is PayloadKind.EMPTY:
            return Response(content=b"")
        return Response(content=payload.render_other())

    def finalize(self, value: Any, sink: Response, timer: InvocationTimer) -> Response:
        """
        Serialize a successful result.

        A Response returned by the handler is considered complete and is
        passed through untouched. The duration timer is stopped last.
        """
        try:
            payload = ResultPayload.classify(value)
            if payload.kind is PayloadKind.RESPONSE:
                return payload.value
            return merge_sink(self.build_response(payload), sink)
        finally:
            timer.stop()

    def handle_error(self, error: Exception, label: str, timer: InvocationTimer) -> Response:
        """Ordinary failure: count it, log it, answer with a generic 500."""
        try:
            self.metrics.inc_errors(label)
            logger.error(
                f"Function failed to execute: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra={"label": label, "error_type": type(error).__name__},
            )
            return PlainTextResponse(INTERNAL_ERROR_MESSAGE, status_code=500)
        finally:
            timer.stop()
