"""
Reference expressions: lazy string templates over other resources' values.

An expression is an ordered tuple of segments. Each segment is either a
literal string or a value provider (an endpoint's host or port, a
parameter's value, another resource's connection string). Building an
expression is pure and synchronous; all suspension happens in
get_value().

Two renderings:
    value_expression   placeholder template, e.g. "{cache.bindings.tcp.host}:6379".
                       Never touches runtime state. Used by the manifest.
    await get_value()  actual substitution. Raises MissingValueError when a
                       producer is not ready, asyncio.CancelledError when
                       cancelled. Never returns a partial string.

Example:
    expr = (
        reference(redis, "bindings.tcp.host")
        + ":"
        + reference(redis, "bindings.tcp.port")
        + ",password="
        + reference(password)
    )
    expr.value_expression   # "{cache.bindings.tcp.host}:{cache.bindings.tcp.port},password={pass.value}"
    await expr.get_value()  # "localhost:6379,password=s3cret"
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .cancellation import CancellationToken, ensure_token
from .errors import MissingValueError
from .placeholders import PlaceholderKind, parse_property_path

if TYPE_CHECKING:
    from .context import ExecutionContext


@runtime_checkable
class ValueProvider(Protocol):
    """Anything that has a placeholder form and can later produce a string."""

    @property
    def value_expression(self) -> str: ...

    async def get_value(self, cancellation: CancellationToken | None = None) -> str | None: ...


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True, slots=True)
class ValueSegment:
    provider: ValueProvider


Segment = LiteralSegment | ValueSegment


class ReferenceExpression:
    """Immutable ordered sequence of literal and value segments."""

    __slots__ = ("_segments",)

    def __init__(self, segments: Iterable[Segment] = ()) -> None:
        self._segments: tuple[Segment, ...] = tuple(
            s for s in segments if not (isinstance(s, LiteralSegment) and s.text == "")
        )

    @property
    def segments(self) -> tuple[Segment, ...]:
        return self._segments

    @property
    def value_providers(self) -> tuple[ValueProvider, ...]:
        return tuple(s.provider for s in self._segments if isinstance(s, ValueSegment))

    @property
    def is_empty(self) -> bool:
        return not self._segments

    @property
    def value_expression(self) -> str:
        return "".join(
            s.text if isinstance(s, LiteralSegment) else s.provider.value_expression
            for s in self._segments
        )

    async def get_value(self, cancellation: CancellationToken | None = None) -> str:
        """
        Resolve every segment in construction order and concatenate.

        Raises:
            MissingValueError: If a referenced producer cannot supply a value yet
            asyncio.CancelledError: If cancellation was requested
        """
        token = ensure_token(cancellation)
        parts: list[str] = []

        for segment in self._segments:
            token.throw_if_cancellation_requested()
            if isinstance(segment, LiteralSegment):
                parts.append(segment.text)
                continue

            value = await segment.provider.get_value(token)
            token.throw_if_cancellation_requested()
            if value is None:
                raise MissingValueError(
                    f"'{segment.provider.value_expression}' did not produce a value"
                )
            parts.append(value)

        return "".join(parts)

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def __add__(self, other: Any) -> "ReferenceExpression":
        return ReferenceExpression(self._segments + _as_segments(other))

    def __radd__(self, other: Any) -> "ReferenceExpression":
        return ReferenceExpression(_as_segments(other) + self._segments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReferenceExpression):
            return NotImplemented
        return self._segments == other._segments

    def __hash__(self) -> int:
        return hash(self.value_expression)

    def __repr__(self) -> str:
        return f"ReferenceExpression({self.value_expression!r})"

    @classmethod
    def empty(cls) -> "ReferenceExpression":
        return cls()

    @classmethod
    def format(cls, template: str, *values: Any) -> "ReferenceExpression":
        """
        Build an expression from a positional template.

        Example:
            ReferenceExpression.format("{0}:{1}", host, port)
        """
        builder = ReferenceExpressionBuilder()
        position = 0
        for match in re.finditer(r"\{(\d+)\}", template):
            builder.append_literal(template[position:match.start()])
            index = int(match.group(1))
            if index >= len(values):
                raise IndexError(f"Template references argument {index} but only {len(values)} given")
            builder.append(values[index])
            position = match.end()
        builder.append_literal(template[position:])
        return builder.build()


class ReferenceExpressionBuilder:
    """
    Incremental construction of a ReferenceExpression.

    Example:
        builder = ReferenceExpressionBuilder()
        builder.append_value(endpoint.property(EndpointProperty.HOST))
        builder.append_literal(":")
        builder.append_value(endpoint.property(EndpointProperty.PORT))
        expr = builder.build()
    """

    def __init__(self) -> None:
        self._segments: list[Segment] = []

    @property
    def is_empty(self) -> bool:
        return not self._segments

    def append_literal(self, text: str) -> "ReferenceExpressionBuilder":
        if text:
            self._segments.append(LiteralSegment(text))
        return self

    def append_value(self, provider: ValueProvider) -> "ReferenceExpressionBuilder":
        if not isinstance(provider, ValueProvider):
            raise TypeError(f"{type(provider).__name__} is not a value provider")
        self._segments.append(ValueSegment(provider))
        return self

    def append(self, value: Any) -> "ReferenceExpressionBuilder":
        """Append a literal, a value provider or another expression."""
        self._segments.extend(_as_segments(value))
        return self

    def build(self) -> ReferenceExpression:
        return ReferenceExpression(self._segments)


def _as_segments(value: Any) -> tuple[Segment, ...]:
    if isinstance(value, ReferenceExpression):
        return value.segments
    if isinstance(value, str):
        return (LiteralSegment(value),)
    if isinstance(value, int) and not isinstance(value, bool):
        return (LiteralSegment(str(value)),)
    if isinstance(value, ValueProvider):
        return (ValueSegment(value),)
    raise TypeError(f"Cannot use {type(value).__name__} in a reference expression")


# =============================================================================
# Constructors
# =============================================================================


def literal(text: str) -> ReferenceExpression:
    """An expression consisting of one literal segment."""
    return ReferenceExpression((LiteralSegment(text),))


def reference(target: Any, path: str | None = None) -> ReferenceExpression:
    """
    An expression consisting of one value segment.

    Args:
        target: A value provider, or a resource when ``path`` is given
        path: Optional property path: ``bindings.<endpoint>.host``,
              ``bindings.<endpoint>.port``, ``value``, ``connectionString``
              or ``outputs.<name>``

    Raises:
        ExpressionSyntaxError: If ``path`` is not a supported shape
        TypeError: If the target cannot provide the requested value
    """
    return ReferenceExpression((ValueSegment(_resolve_provider(target, path)),))


def _resolve_provider(target: Any, path: str | None) -> ValueProvider:
    from .endpoints import EndpointProperty, EndpointReference
    from .resource import ConnectionStringReference, Resource, ResourceWithConnectionString

    if path is None:
        if isinstance(target, ValueProvider):
            return target
        if isinstance(target, ResourceWithConnectionString):
            return ConnectionStringReference(target)
        raise TypeError(f"{type(target).__name__} cannot be referenced without a property path")

    parsed = parse_property_path(path)
    if not isinstance(target, Resource):
        raise TypeError(f"Property paths can only be applied to resources, got {type(target).__name__}")

    if parsed.kind is PlaceholderKind.BINDING:
        prop = EndpointProperty.HOST if parsed.property == "host" else EndpointProperty.PORT
        return EndpointReference(target, parsed.endpoint).property(prop)

    if parsed.kind is PlaceholderKind.VALUE:
        if not isinstance(target, ValueProvider):
            raise TypeError(f"Resource '{target.name}' does not expose a value")
        return target

    if parsed.kind is PlaceholderKind.CONNECTION_STRING:
        if not isinstance(target, ResourceWithConnectionString):
            raise TypeError(f"Resource '{target.name}' does not expose a connection string")
        return ConnectionStringReference(target)

    from apphost.provisioning import OutputReference, ProvisioningResource

    if not isinstance(target, ProvisioningResource):
        raise TypeError(f"Resource '{target.name}' has no provisioning outputs")
    return OutputReference(target, parsed.output)


# =============================================================================
# Rendering helpers
# =============================================================================


async def resolve_value(
    value: Any,
    execution_context: ExecutionContext,
    cancellation: CancellationToken | None = None,
) -> str | None:
    """
    Render an environment or argument value for the current mode.

    Publish mode returns placeholders; run mode resolves providers.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    if not isinstance(value, ValueProvider):
        from .resource import ResourceWithConnectionString

        if isinstance(value, ResourceWithConnectionString):
            value = reference(value)
        else:
            raise TypeError(f"Unsupported value type: {type(value).__name__}")

    if execution_context.is_publish_mode:
        return value.value_expression
    return await value.get_value(cancellation)


def expression_of(value: Any) -> str:
    """Placeholder form of a str, number or value provider."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    if isinstance(value, ValueProvider):
        return value.value_expression
    raise TypeError(f"Unsupported value type: {type(value).__name__}")
