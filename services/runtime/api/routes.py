"""
HTTP front door.

Health and metrics endpoints, CORS preflight, and the catch-all route that
feeds every other request into the invocation pipeline.
"""

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response

from ..core.exceptions import PayloadTooLargeError
from .deps import InvocationParamsDep, MetricsDep, ProcessorDep

router = APIRouter()

INVOCATION_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]


async def read_body(request: Request, limit: int) -> bytes:
    """
    Read the request body, rejecting anything larger than ``limit`` bytes.

    Chunked uploads are counted while they stream in, so at most one chunk
    past the limit is ever held in memory.
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(int(declared), limit)

    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise PayloadTooLargeError(received, limit)
        chunks.append(chunk)
    return b"".join(chunks)


@router.get("/healthz")
async def health_check():
    """Health check endpoint. Independent of the function module."""
    return PlainTextResponse("OK")


@router.get("/metrics")
async def metrics_endpoint(metrics: MetricsDep):
    """Prometheus exposition of the function instruments."""
    return Response(content=metrics.render(), media_type=metrics.content_type)


@router.options("/{path:path}")
async def cors_preflight(request: Request, path: str):
    """CORS preflight: allow whatever method and headers were requested."""
    response = Response(status_code=200)
    response.headers["Access-Control-Allow-Origin"] = "*"
    requested_method = request.headers.get("access-control-request-method")
    if requested_method:
        response.headers["Access-Control-Allow-Methods"] = requested_method
    requested_headers = request.headers.get("access-control-request-headers")
    if requested_headers:
        response.headers["Access-Control-Allow-Headers"] = requested_headers
    return response


@router.api_route("/{path:path}", methods=INVOCATION_METHODS)
async def invoke_function(
    request: Request,
    path: str,
    params: InvocationParamsDep,
    processor: ProcessorDep,
):
    """
    Catch-all route: run the user function for this request.
    """
    body = await read_body(request, params.request_byte_limit)
    return await processor.process_request(request, body)
