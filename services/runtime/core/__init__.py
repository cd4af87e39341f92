"""
Core logic package.

Provides request-to-event mapping and response finalization.
"""

from .event_builder import EventBuilder, parse_body
from .finalizer import ResponseFinalizer, new_response_sink

__all__ = [
    "EventBuilder",
    "parse_body",
    "ResponseFinalizer",
    "new_response_sink",
]
