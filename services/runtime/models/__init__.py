"""
Data model definitions package.

Aggregates the records that flow through the invocation pipeline.
"""

from .event import Context, Event
from .params import FunctionParams, FunctionPaths, InvocationParams
from .result import (
    AsyncError,
    InvocationOutcome,
    PayloadKind,
    ResultPayload,
    Success,
    SyncError,
    Timeout,
)

__all__ = [
    "AsyncError",
    "Context",
    "Event",
    "FunctionParams",
    "FunctionPaths",
    "InvocationOutcome",
    "InvocationParams",
    "PayloadKind",
    "ResultPayload",
    "Success",
    "SyncError",
    "Timeout",
]
