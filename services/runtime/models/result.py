"""
Invocation outcome models.

An invocation ends in exactly one of Success, SyncError, AsyncError or
Timeout. Success values are classified once into a ResultPayload so that
finalization dispatches on a closed set of shapes.
"""

import enum
import json
from dataclasses import dataclass
from typing import Any, Union

from starlette.responses import Response


@dataclass(frozen=True)
class Success:
    value: Any


@dataclass(frozen=True)
class SyncError:
    """Raised while loading the module or calling the handler."""

    error: Exception


@dataclass(frozen=True)
class AsyncError:
    """Raised by the awaitable the handler returned."""

    error: Exception


@dataclass(frozen=True)
class Timeout:
    error: Exception


InvocationOutcome = Union[Success, SyncError, AsyncError, Timeout]


class PayloadKind(enum.Enum):
    TEXT = "text"
    STRUCTURED = "structured"
    EMPTY = "empty"
    OTHER = "other"
    RESPONSE = "response"


@dataclass(frozen=True)
class ResultPayload:
    kind: PayloadKind
    value: Any

    @classmethod
    def classify(cls, value: Any) -> "ResultPayload":
        if isinstance(value, Response):
            return cls(PayloadKind.RESPONSE, value)
        if value is None:
            return cls(PayloadKind.EMPTY, None)
        if isinstance(value, (str, bytes, bytearray, memoryview)):
            return cls(PayloadKind.TEXT, value)
        if isinstance(value, (dict, list, tuple)):
            return cls(PayloadKind.STRUCTURED, value)
        return cls(PayloadKind.OTHER, value)

    def render_other(self) -> str:
        """Default stringification: JSON for scalars, str() for the rest."""
        try:
            return json.dumps(self.value)
        except (TypeError, ValueError):
            return str(self.value)
