"""
Resources: the named nodes of an application topology.

A resource owns an ordered AnnotationStore and may point at a parent
resource. Parents are referenced, not owned; the application model
governs their lifetime. Parent links form a forest and are checked for
cycles when they are attached.

Capabilities are expressed as runtime-checkable protocols rather than a
deep class hierarchy:
    ResourceWithConnectionString   exposes connection_string_expression
    ResourceWithParent             has a parent attribute
    ResourceWithEndpoints          exposes declared endpoints
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from .annotations import AnnotationStore
from .cancellation import CancellationToken, ensure_token
from .endpoints import EndpointAnnotation, EndpointReference
from .errors import CyclicGraphError, MissingValueError
from .expressions import ReferenceExpression
from .placeholders import format_placeholder

logger = logging.getLogger(__name__)

MAX_RESOURCE_NAME_LENGTH = 64

_RESOURCE_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


def validate_resource_name(name: str) -> None:
    """
    Check a resource name.

    Names start with a letter, contain only ASCII letters, digits and
    hyphens, never contain "--" or end with "-", and are at most 64
    characters long.

    Raises:
        ValueError: If the name is invalid
    """
    if not name:
        raise ValueError("Resource name cannot be empty")
    if len(name) > MAX_RESOURCE_NAME_LENGTH:
        raise ValueError(
            f"Resource name '{name}' is longer than {MAX_RESOURCE_NAME_LENGTH} characters"
        )
    if not _RESOURCE_NAME.match(name):
        raise ValueError(
            f"Resource name '{name}' is invalid. Names must start with an ASCII letter "
            "and contain only ASCII letters, digits and hyphens"
        )
    if "--" in name or name.endswith("-"):
        raise ValueError(
            f"Resource name '{name}' cannot contain consecutive hyphens or end with a hyphen"
        )


class Resource:
    """
    Base class for every node in the application model.

    Subclasses add kind-specific state; configuration that other
    components need to discover goes into ``annotations``.
    """

    def __init__(
        self,
        name: str,
        *,
        annotations: AnnotationStore | None = None,
    ):
        validate_resource_name(name)
        self._name = name
        self._parent: Resource | None = None
        self.annotations = annotations if annotations is not None else AnnotationStore()

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def parent(self) -> Resource | None:
        return self._parent

    def set_parent(self, parent: Resource | None) -> None:
        """
        Attach this resource below ``parent``.

        Raises:
            CyclicGraphError: If ``parent`` is this resource or one of its descendants
        """
        node = parent
        while node is not None:
            if node is self:
                raise CyclicGraphError(
                    f"Cannot make '{parent.name}' the parent of '{self.name}': "
                    "the resource would become its own ancestor",
                    resource_name=self.name,
                )
            node = node.parent
        self._parent = parent

    def ancestors(self) -> Iterator[Resource]:
        """Parent, grandparent, ... nearest first."""
        node = self._parent
        while node is not None:
            yield node
            node = node.parent

    @property
    def endpoints(self) -> tuple[EndpointAnnotation, ...]:
        return self.annotations.query_all(EndpointAnnotation)

    def get_endpoint(self, name: str) -> EndpointReference:
        return EndpointReference(self, name)

    def __repr__(self) -> str:
        return f"{self.kind}(name={self.name!r})"


@runtime_checkable
class ResourceWithConnectionString(Protocol):
    """A resource that other resources can consume through a connection string."""

    @property
    def name(self) -> str: ...

    @property
    def connection_string_expression(self) -> ReferenceExpression: ...

    async def get_connection_string(
        self, cancellation: CancellationToken | None = None
    ) -> str | None: ...


@runtime_checkable
class ResourceWithParent(Protocol):
    @property
    def parent(self) -> Resource | None: ...


@runtime_checkable
class ResourceWithEndpoints(Protocol):
    @property
    def endpoints(self) -> tuple[EndpointAnnotation, ...]: ...

    def get_endpoint(self, name: str) -> EndpointReference: ...


class ConnectionStringMixin:
    """
    Default get_connection_string() for resources that define
    ``connection_string_expression``.
    """

    async def get_connection_string(
        self, cancellation: CancellationToken | None = None
    ) -> str | None:
        return await self.connection_string_expression.get_value(cancellation)


class ConnectionStringReference:
    """
    Value provider for another resource's whole connection string.

    Rendered as ``{name.connectionString}`` in the manifest.
    """

    __slots__ = ("resource", "optional")

    def __init__(self, resource: ResourceWithConnectionString, optional: bool = False):
        self.resource = resource
        self.optional = optional

    @property
    def value_expression(self) -> str:
        return format_placeholder(self.resource.name, "connectionString")

    async def get_value(self, cancellation: CancellationToken | None = None) -> str | None:
        token = ensure_token(cancellation)
        token.throw_if_cancellation_requested()
        value = await self.resource.get_connection_string(token)
        if value is None and not self.optional:
            raise MissingValueError(
                "The connection string is not available",
                resource_name=self.resource.name,
            )
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConnectionStringReference):
            return NotImplemented
        return self.resource is other.resource and self.optional == other.optional

    def __hash__(self) -> int:
        return hash((id(self.resource), self.optional))

    def __repr__(self) -> str:
        return f"ConnectionStringReference({self.resource.name})"


class ContainerResource(Resource):
    """A resource started from a container image in run mode."""

    def __init__(
        self,
        name: str,
        *,
        entrypoint: str | None = None,
        annotations: AnnotationStore | None = None,
    ):
        super().__init__(name, annotations=annotations)
        self.entrypoint = entrypoint


class ProjectResource(Resource):
    """A service project started from source in run mode."""

    def __init__(self, name: str, path: str):
        super().__init__(name)
        self.path = path
