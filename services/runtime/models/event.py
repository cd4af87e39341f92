"""
Event and Context models handed to the user handler.

Both records are frozen. Handlers may read them either as attributes
(``event.data``) or with the hyphenated keys of the wire format
(``event["event-id"]``, ``context["function-name"]``).
"""

from typing import Any, Dict, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvocationRecord(BaseModel):
    """Read-only record that also behaves like a mapping keyed by alias."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    def _field_for(self, key: str) -> str:
        for name, field in type(self).model_fields.items():
            if key == name or key == field.alias:
                return name
        raise KeyError(key)

    def __getitem__(self, key: str) -> Any:
        return getattr(self, self._field_for(key))

    def __contains__(self, key: object) -> bool:
        try:
            self._field_for(key)  # type: ignore[arg-type]
        except KeyError:
            return False
        return True

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    def keys(self) -> Iterator[str]:
        for name, field in type(self).model_fields.items():
            yield field.alias or name

    def to_dict(self) -> Dict[str, Any]:
        return {key: self[key] for key in self.keys()}


class Event(InvocationRecord):
    """Per-request payload."""

    event_type: Optional[str] = Field(default=None, alias="event-type")
    event_id: Optional[str] = Field(default=None, alias="event-id")
    event_time: Optional[str] = Field(default=None, alias="event-time")
    event_namespace: Optional[str] = Field(default=None, alias="event-namespace")
    data: Any = None
    # Read-only mapping: {"request": Request, "response": Response}
    extensions: Any = None


class Context(InvocationRecord):
    """Per-request description of the invocation environment."""

    function_name: str = Field(alias="function-name")
    timeout: float
    runtime: str = ""
    memory_limit: str = Field(default="", alias="memory-limit")
