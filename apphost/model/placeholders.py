"""
Placeholder grammar for value expressions.

Manifest consumers rely on these shapes bit for bit:

    {resource.bindings.endpoint.host}
    {resource.bindings.endpoint.port}
    {parameter.value}
    {resource.connectionString}
    {resource.outputs.outputName}

Anything else is rejected when an expression is constructed, never later
during resolution.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .errors import ExpressionSyntaxError

_NAME = r"[A-Za-z][A-Za-z0-9_-]*"
_OUTPUT = r"[A-Za-z_][A-Za-z0-9_]*"

_PATHS = {
    "binding": re.compile(rf"^bindings\.(?P<endpoint>{_NAME})\.(?P<property>host|port)$"),
    "value": re.compile(r"^value$"),
    "connectionString": re.compile(r"^connectionString$"),
    "output": re.compile(rf"^outputs\.(?P<output>{_OUTPUT})$"),
}

_PLACEHOLDER = re.compile(rf"^\{{(?P<resource>{_NAME})\.(?P<path>[^{{}}]+)\}}$")


class PlaceholderKind(str, Enum):
    BINDING = "binding"
    VALUE = "value"
    CONNECTION_STRING = "connectionString"
    OUTPUT = "output"


@dataclass(frozen=True, slots=True)
class PropertyPath:
    """A validated dotted path below a resource name."""

    kind: PlaceholderKind
    raw: str
    endpoint: str | None = None
    property: str | None = None
    output: str | None = None


def parse_property_path(path: str) -> PropertyPath:
    """
    Validate a property path such as ``bindings.tcp.host``.

    Raises:
        ExpressionSyntaxError: If the path is not one of the supported shapes
    """
    for kind, pattern in _PATHS.items():
        match = pattern.match(path)
        if match:
            groups = match.groupdict()
            return PropertyPath(
                kind=PlaceholderKind(kind),
                raw=path,
                endpoint=groups.get("endpoint"),
                property=groups.get("property"),
                output=groups.get("output"),
            )
    raise ExpressionSyntaxError(
        f"Unsupported placeholder path '{path}'. Expected one of "
        "'bindings.<endpoint>.host', 'bindings.<endpoint>.port', 'value', "
        "'connectionString' or 'outputs.<name>'"
    )


def format_placeholder(resource_name: str, path: str) -> str:
    """Render ``{resource.path}`` after validating both parts."""
    if not re.match(rf"^{_NAME}$", resource_name):
        raise ExpressionSyntaxError(f"Invalid resource name in placeholder: '{resource_name}'")
    parse_property_path(path)
    return "{" + resource_name + "." + path + "}"


def parse_placeholder(text: str) -> tuple[str, PropertyPath]:
    """
    Split a placeholder into resource name and validated path.

    Example:
        >>> name, path = parse_placeholder("{cache.bindings.tcp.port}")
        >>> name, path.endpoint, path.property
        ('cache', 'tcp', 'port')
    """
    match = _PLACEHOLDER.match(text)
    if not match:
        raise ExpressionSyntaxError(f"Not a placeholder: '{text}'")
    return match.group("resource"), parse_property_path(match.group("path"))
