"""
Ordered JSON document writer used by manifest publishing callbacks.

The writer keeps a stack of open containers. Keys are emitted in the
order they are written; that order is part of the manifest contract.

Example:
    writer = ManifestWriter()
    writer.write_string("type", "container.v0")
    writer.start_object("bindings")
    writer.start_object("tcp")
    writer.write_string("scheme", "tcp")
    writer.end_object()
    writer.end_object()
    writer.to_dict()
"""

from __future__ import annotations

from typing import Any


class ManifestWriter:
    """Accumulates nested objects and arrays."""

    def __init__(self) -> None:
        self._root: dict[str, Any] = {}
        self._stack: list[dict[str, Any] | list[Any]] = [self._root]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    def _put(self, key: str | None, value: Any) -> None:
        current = self._stack[-1]
        if isinstance(current, list):
            if key is not None:
                raise ValueError(f"Cannot write property '{key}' inside an array")
            current.append(value)
        else:
            if key is None:
                raise ValueError("A property name is required inside an object")
            current[key] = value

    # -------------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------------

    def write_string(self, key: str, value: str | None) -> None:
        self._put(key, value)

    def write_number(self, key: str, value: int | float) -> None:
        self._put(key, value)

    def write_bool(self, key: str, value: bool) -> None:
        self._put(key, bool(value))

    def write_string_value(self, value: str) -> None:
        """Append a string to the current array."""
        self._put(None, value)

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    def start_object(self, key: str | None = None) -> None:
        obj: dict[str, Any] = {}
        self._put(key, obj)
        self._stack.append(obj)

    def end_object(self) -> None:
        if self.depth == 0 or not isinstance(self._stack[-1], dict):
            raise ValueError("end_object() without a matching start_object()")
        self._stack.pop()

    def start_array(self, key: str | None = None) -> None:
        arr: list[Any] = []
        self._put(key, arr)
        self._stack.append(arr)

    def end_array(self) -> None:
        if not isinstance(self._stack[-1], list):
            raise ValueError("end_array() without a matching start_array()")
        self._stack.pop()

    def to_dict(self) -> dict[str, Any]:
        if self.depth != 0:
            raise ValueError(f"{self.depth} object(s) or array(s) were not closed")
        return self._root
