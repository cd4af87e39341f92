"""
Function Request Processor - Service Layer

Standardizes the flow: Request -> (Event, Context) -> InvocationOutcome -> Response.
"""

import logging

from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from services.runtime.core.event_builder import EventBuilder
from services.runtime.core.exceptions import EventBodyError
from services.runtime.core.finalizer import ResponseFinalizer, new_response_sink
from services.runtime.models.params import InvocationParams
from services.runtime.models.result import (
    AsyncError,
    InvocationOutcome,
    Success,
    SyncError,
    Timeout,
)
from services.runtime.services.engine import InvocationEngine
from services.runtime.services.metrics import FunctionMetrics, InvocationTimer

logger = logging.getLogger("runtime.processor")

CORS_ALLOW_ORIGIN = "*"


class FunctionRequestProcessor:
    """
    Orchestrates one invocation.

    Metrics are started before the handler runs and the duration timer is
    stopped on whichever terminal branch is reached.
    """

    def __init__(
        self,
        params: InvocationParams,
        event_builder: EventBuilder,
        engine: InvocationEngine,
        finalizer: ResponseFinalizer,
        metrics: FunctionMetrics,
    ):
        self.params = params
        self.event_builder = event_builder
        self.engine = engine
        self.finalizer = finalizer
        self.metrics = metrics

    def label_for(self, method: str) -> str:
        return f"{self.params.module_name}-{method}"

    async def process_request(self, request: Request, body: bytes) -> Response:
        label = self.label_for(request.method)
        timer = self.metrics.start_timer(label)
        self.metrics.inc_calls(label)

        sink = new_response_sink()
        try:
            event, context = self.event_builder.build(request, body, sink)
        except EventBodyError as e:
            outcome: InvocationOutcome = SyncError(e)
        else:
            outcome = await self.engine.invoke(event, context)

        response = self.dispatch(outcome, label, timer, sink)
        response.headers["Access-Control-Allow-Origin"] = CORS_ALLOW_ORIGIN
        return response

    def dispatch(
        self, outcome: InvocationOutcome, label: str, timer: InvocationTimer, sink: Response
    ) -> Response:
        if isinstance(outcome, Success):
            try:
                return self.finalizer.finalize(outcome.value, sink, timer)
            except Exception as e:
                return self.finalizer.handle_error(e, label, timer)

        if isinstance(outcome, (SyncError, AsyncError)):
            return self.finalizer.handle_error(outcome.error, label, timer)

        if isinstance(outcome, Timeout):
            return self.handle_timeout(outcome.error, label, timer)

        raise TypeError(f"Unknown invocation outcome: {outcome!r}")

    def handle_timeout(self, error: Exception, label: str, timer: InvocationTimer) -> Response:
        """
        Answer 408 with the error text, then exit once the response is sent.

        The error counter is not incremented on this path.
        """
        timer.stop()
        logger.critical(
            "Unable to stop running handler. Exiting",
            extra={"label": label, "timeout": self.engine.timeout},
        )
        return PlainTextResponse(
            str(error), status_code=408, background=BackgroundTask(self.engine.terminate)
        )
