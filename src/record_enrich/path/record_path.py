"""
Minimal record path expressions.

A path is absolute and made of '/'-separated field names, each optionally
followed by one or more list indices:

    /first_name
    /customer/address/city
    /items[0]/sku

Evaluating a path against a record selects zero or one field. A field is
selected only when every step exists: mapping keys must be present (a null
value still counts as present) and list indices must be in range.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, MutableMapping, MutableSequence, Optional, Tuple, Union

from ..util.errors import PathSyntaxError

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]/]+)(?P<indices>(\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

Step = Union[str, int]


class FieldValue:
    """Handle on a single selected field; reads and writes go to the owning container."""

    __slots__ = ("_parent", "_key", "path")

    def __init__(self, parent: Union[MutableMapping[str, Any], MutableSequence[Any]], key: Step, path: str) -> None:
        self._parent = parent
        self._key = key
        self.path = path

    @property
    def name(self) -> Step:
        return self._key

    def get(self) -> Any:
        return self._parent[self._key]  # type: ignore[index]

    def set(self, value: Any) -> None:
        self._parent[self._key] = value  # type: ignore[index]

    def __repr__(self) -> str:
        return f"FieldValue(path={self.path!r}, value={self.get()!r})"


@dataclass(frozen=True)
class RecordPath:
    text: str
    steps: Tuple[Step, ...]

    def evaluate(self, record: Mapping[str, Any]) -> Optional[FieldValue]:
        container: Any = record
        for step in self.steps[:-1]:
            container = _step_into(container, step)
            if container is _MISSING:
                return None
        last = self.steps[-1]
        if isinstance(last, int):
            if isinstance(container, list) and 0 <= last < len(container):
                return FieldValue(container, last, self.text)
            return None
        if isinstance(container, MutableMapping) and last in container:
            return FieldValue(container, last, self.text)
        return None

    def get_value(self, record: Mapping[str, Any]) -> Any:
        """Value of the selected field, or None when the path selects nothing."""
        field = self.evaluate(record)
        return field.get() if field is not None else None


_MISSING = object()


def _step_into(container: Any, step: Step) -> Any:
    if isinstance(step, int):
        if isinstance(container, list) and 0 <= step < len(container):
            return container[step]
        return _MISSING
    if isinstance(container, Mapping) and step in container:
        return container[step]
    return _MISSING


def compile_path(text: str) -> RecordPath:
    """Compile a path expression, raising PathSyntaxError on malformed input."""
    if not isinstance(text, str):
        raise PathSyntaxError(f"Record path must be a string, got {type(text).__name__}")
    raw = text.strip()
    if not raw.startswith("/"):
        raise PathSyntaxError(f"Record path must start with '/': {text!r}")
    if raw == "/":
        raise PathSyntaxError("Record path must select a field, not the record root")

    steps: List[Step] = []
    for segment in raw[1:].split("/"):
        if not segment:
            raise PathSyntaxError(f"Empty segment in record path: {text!r}")
        m = _SEGMENT_RE.match(segment)
        if m is None:
            raise PathSyntaxError(f"Invalid segment {segment!r} in record path: {text!r}")
        steps.append(m.group("name").strip())
        steps.extend(int(i) for i in _INDEX_RE.findall(m.group("indices") or ""))
    return RecordPath(text=raw, steps=tuple(steps))
