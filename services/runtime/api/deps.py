"""
Dependency Injection for the runtime API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..models.params import InvocationParams
from ..services.metrics import FunctionMetrics
from ..services.processor import FunctionRequestProcessor


def get_invocation_params(request: Request) -> InvocationParams:
    return request.app.state.invocation_params


def get_metrics(request: Request) -> FunctionMetrics:
    return request.app.state.metrics


def get_processor(request: Request) -> FunctionRequestProcessor:
    return request.app.state.processor


InvocationParamsDep = Annotated[InvocationParams, Depends(get_invocation_params)]
MetricsDep = Annotated[FunctionMetrics, Depends(get_metrics)]
ProcessorDep = Annotated[FunctionRequestProcessor, Depends(get_processor)]
