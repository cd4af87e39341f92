import json
import logging
from types import MappingProxyType
from typing import Any, Tuple

from starlette.requests import Request
from starlette.responses import Response

from services.runtime.core.exceptions import EventBodyError
from services.runtime.models.event import Context, Event
from services.runtime.models.params import InvocationParams

logger = logging.getLogger("runtime.event_builder")

JSON_MEDIA_TYPE = "application/json"


def media_type_of(content_type: str) -> str:
    """Return the bare, lower-cased media type of a Content-Type header."""
    return content_type.split(";", 1)[0].strip().lower()


def is_multipart(content_type: str) -> bool:
    return media_type_of(content_type).startswith("multipart/")


def parse_body(content_type: str, body: bytes) -> Any:
    """
    Interpret a raw request body according to its Content-Type.

    - multipart: the untouched bytes, left for the handler to parse
    - empty: the original (empty) bytes
    - application/json: the parsed JSON value
    - anything else: UTF-8 text

    Raises:
        EventBodyError: if a JSON body is malformed
    """
    if is_multipart(content_type) or len(body) == 0:
        return body

    if media_type_of(content_type) == JSON_MEDIA_TYPE:
        try:
            return json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise EventBodyError(e) from e

    return body.decode("utf-8", errors="replace")


class EventBuilder:
    """Maps an inbound HTTP request onto the (Event, Context) pair."""

    def __init__(self, params: InvocationParams):
        self.params = params

    def build(self, request: Request, body: bytes, response: Response) -> Tuple[Event, Context]:
        """
        Build the invocation payload for one request.

        ``response`` is the sink handed to the handler through the event
        extensions; headers and status set on it reach the final response.
        """
        data = parse_body(request.headers.get("content-type", ""), body)

        event = Event(
            event_type=request.headers.get("event-type"),
            event_id=request.headers.get("event-id"),
            event_time=request.headers.get("event-time"),
            event_namespace=request.headers.get("event-namespace"),
            data=data,
            extensions=MappingProxyType({"request": request, "response": response}),
        )
        return event, self.build_context()

    def build_context(self) -> Context:
        function = self.params.function
        return Context(
            function_name=function.handler,
            timeout=function.timeout,
            runtime=function.runtime,
            memory_limit=function.memory_limit,
        )
