"""Core data models for the Metadata Assistant."""

import json
from enum import Enum
from typing import Any, Dict, Iterable, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Missing:
    """Marker for an absent value, distinct from JSON null."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()

# PathResolver.get() reports absent fields with the same marker used for
# "undefined" old/new values of a pending change.
NOT_FOUND = MISSING

Segment = Union[str, int]


class NodeKind(str, Enum):
    """Closed classification of JSON document nodes."""

    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


def kind_of(value: Any) -> NodeKind:
    """Classify a JSON value.

    Raises:
        TypeError: If the value is not representable as JSON
    """
    # bool must be tested before int, it is a subclass of it
    if value is None:
        return NodeKind.NULL
    if isinstance(value, bool):
        return NodeKind.BOOLEAN
    if isinstance(value, (int, float)):
        return NodeKind.NUMBER
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, dict):
        return NodeKind.OBJECT
    if isinstance(value, list):
        return NodeKind.ARRAY
    raise TypeError(f"Value of type {type(value).__name__} is not a JSON document node")


class DocumentPath(tuple):
    """Immutable sequence of path segments (field names or array indices).

    Two paths are equal iff their segment sequences are equal. The string
    form is the dot syntax used by tools and the UI, e.g. ``contributor.0.name``.
    """

    def __new__(cls, segments: Iterable[Segment] = ()):
        normalized = []
        for segment in segments:
            if isinstance(segment, bool) or not isinstance(segment, (str, int)):
                raise TypeError(f"Path segment must be str or int, got {type(segment).__name__}")
            if isinstance(segment, int) and segment < 0:
                raise ValueError(f"Path index cannot be negative: {segment}")
            normalized.append(segment)
        return super().__new__(cls, normalized)

    def __str__(self) -> str:
        return ".".join(str(segment) for segment in self)

    def __repr__(self) -> str:
        return f"DocumentPath('{self}')"

    def is_prefix_of(self, other: "DocumentPath") -> bool:
        return len(self) <= len(other) and tuple(other[: len(self)]) == tuple(self)


class PendingChange(BaseModel):
    """A staged, uncommitted edit of one path.

    ``old_value`` is MISSING when the change creates the field, ``new_value``
    is MISSING when the change deletes it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: DocumentPath = Field(..., description="Path of the edited field")
    old_value: Any = Field(default=MISSING, description="Value before the first proposal")
    new_value: Any = Field(default=MISSING, description="Proposed value")

    @field_validator('path', mode='before')
    @classmethod
    def validate_path(cls, v):
        """Coerce segment sequences and reject the root path."""
        if isinstance(v, (list, tuple)) and not isinstance(v, DocumentPath):
            v = DocumentPath(v)
        if isinstance(v, DocumentPath) and len(v) == 0:
            raise ValueError("Pending change path cannot be empty")
        return v

    @property
    def is_creation(self) -> bool:
        return self.old_value is MISSING

    @property
    def is_deletion(self) -> bool:
        return self.new_value is MISSING

    def to_wire(self) -> Dict[str, Any]:
        """Render with camelCase keys, omitting undefined values."""
        wire: Dict[str, Any] = {"path": str(self.path)}
        if self.old_value is not MISSING:
            wire["oldValue"] = self.old_value
        if self.new_value is not MISSING:
            wire["newValue"] = self.new_value
        return wire


def describe_value(value: Any, limit: int = 80) -> str:
    """Short single-line rendering of a value for change summaries."""
    if value is MISSING:
        return "(none)"
    text = json.dumps(value, ensure_ascii=False)
    if len(text) > limit:
        text = text[: limit - 3] + "..."
    return text

