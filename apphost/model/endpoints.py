"""
Endpoints: declared network bindings and their allocation.

Lifecycle (one-way, terminal):
    Declared   EndpointAnnotation created at build time with a target port
               and optional requested host port.
    Allocated  a concrete AllocatedEndpoint (address, port, container host)
               is attached exactly once during the allocation phase.

Attaching a second allocation raises AllocationReuseError. Reading host or
port before allocation raises MissingValueError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .annotations import ResourceAnnotation
from .cancellation import CancellationToken, ensure_token
from .errors import AllocationReuseError, MissingValueError
from .expressions import ReferenceExpression, literal
from .placeholders import format_placeholder, parse_property_path

if TYPE_CHECKING:
    from .resource import Resource


class ProtocolType(str, Enum):
    TCP = "tcp"
    UDP = "udp"


class EndpointProperty(str, Enum):
    """Properties of an allocated endpoint that can appear in an expression."""

    HOST = "host"
    PORT = "port"


def _default_transport(uri_scheme: str) -> str:
    if uri_scheme in ("http", "https"):
        return "http"
    return uri_scheme


@dataclass(eq=False)
class EndpointAnnotation(ResourceAnnotation):
    """
    A named network binding declared on a resource.

    Attributes:
        name: Endpoint name, unique per resource (e.g. "tcp", "http")
        target_port: Port the process or container listens on
        port: Requested host port; None lets the allocator choose
        protocol: Transport-layer protocol
        uri_scheme: Scheme used in URLs and the manifest
        transport: Manifest transport (defaults from the scheme)
        is_external: Whether the endpoint is exposed outside the deployment
    """

    name: str
    target_port: int | None = None
    port: int | None = None
    protocol: ProtocolType = ProtocolType.TCP
    uri_scheme: str = "tcp"
    transport: str | None = None
    is_external: bool = False
    is_proxied: bool = True
    _allocated_endpoint: AllocatedEndpoint | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        parse_property_path(f"bindings.{self.name}.host")
        if self.transport is None:
            self.transport = _default_transport(self.uri_scheme)

    @property
    def is_allocated(self) -> bool:
        return self._allocated_endpoint is not None

    @property
    def allocated_endpoint(self) -> AllocatedEndpoint | None:
        return self._allocated_endpoint

    @allocated_endpoint.setter
    def allocated_endpoint(self, value: AllocatedEndpoint) -> None:
        if self._allocated_endpoint is not None:
            raise AllocationReuseError(
                f"Endpoint '{self.name}' is already allocated to "
                f"{self._allocated_endpoint.endpoint_name_and_port}"
            )
        if value.endpoint is not self:
            raise ValueError("Allocated endpoint belongs to a different endpoint annotation")
        self._allocated_endpoint = value

    def allocate(
        self,
        address: str,
        port: int,
        container_host: str | None = None,
    ) -> AllocatedEndpoint:
        """Attach a concrete allocation; raises AllocationReuseError if one exists."""
        allocated = AllocatedEndpoint(self, address, port, container_host)
        self.allocated_endpoint = allocated
        return allocated


@dataclass(frozen=True)
class AllocatedEndpoint:
    """
    Concrete binding assigned during the allocation phase.

    ``container_host`` is the name containers use to reach ``address`` on
    the host (e.g. host.docker.internal); it defaults to ``address``.
    """

    endpoint: EndpointAnnotation = field(repr=False, compare=False)
    address: str
    port: int
    container_host: str | None = None

    def __post_init__(self) -> None:
        if self.container_host is None:
            object.__setattr__(self, "container_host", self.address)

    @property
    def uri_scheme(self) -> str:
        return self.endpoint.uri_scheme

    @property
    def endpoint_name_and_port(self) -> str:
        return f"{self.address}:{self.port}"

    @property
    def url(self) -> str:
        return f"{self.uri_scheme}://{self.address}:{self.port}"


class EndpointReference:
    """
    A handle to a (possibly not yet allocated) endpoint of a resource.

    Example:
        tcp = EndpointReference(redis, "tcp")
        expr = tcp.property(EndpointProperty.HOST) + ":" + tcp.property(EndpointProperty.PORT)
    """

    __slots__ = ("resource", "endpoint_name")

    def __init__(self, resource: Resource, endpoint_name: str):
        parse_property_path(f"bindings.{endpoint_name}.host")
        self.resource = resource
        self.endpoint_name = endpoint_name

    @property
    def endpoint_annotation(self) -> EndpointAnnotation | None:
        for endpoint in self.resource.annotations.query_all(EndpointAnnotation):
            if endpoint.name == self.endpoint_name:
                return endpoint
        return None

    @property
    def exists(self) -> bool:
        return self.endpoint_annotation is not None

    @property
    def is_allocated(self) -> bool:
        endpoint = self.endpoint_annotation
        return endpoint is not None and endpoint.is_allocated

    @property
    def allocated_endpoint(self) -> AllocatedEndpoint:
        endpoint = self.endpoint_annotation
        if endpoint is None:
            raise MissingValueError(
                f"The endpoint '{self.endpoint_name}' is not declared",
                resource_name=self.resource.name,
            )
        if endpoint.allocated_endpoint is None:
            raise MissingValueError(
                f"The endpoint '{self.endpoint_name}' is not allocated yet",
                resource_name=self.resource.name,
            )
        return endpoint.allocated_endpoint

    @property
    def host(self) -> str:
        return self.allocated_endpoint.address

    @property
    def port(self) -> int:
        return self.allocated_endpoint.port

    @property
    def container_host(self) -> str:
        return self.allocated_endpoint.container_host or self.host

    @property
    def scheme(self) -> str:
        endpoint = self.endpoint_annotation
        return endpoint.uri_scheme if endpoint else "tcp"

    @property
    def url(self) -> ReferenceExpression:
        """``scheme://host:port`` as a lazy expression."""
        return (
            literal(f"{self.scheme}://")
            + self.property(EndpointProperty.HOST)
            + ":"
            + self.property(EndpointProperty.PORT)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EndpointReference):
            return NotImplemented
        return self.resource is other.resource and self.endpoint_name == other.endpoint_name

    def __hash__(self) -> int:
        return hash((id(self.resource), self.endpoint_name))

    def __repr__(self) -> str:
        return f"EndpointReference({self.resource.name}.{self.endpoint_name})"

    # Defined last: the name shadows the builtin decorator inside this class body.
    def property(self, prop: EndpointProperty) -> EndpointReferenceExpression:
        return EndpointReferenceExpression(self, EndpointProperty(prop))


@dataclass(frozen=True)
class EndpointReferenceExpression:
    """Value provider for one property of an endpoint."""

    endpoint: EndpointReference
    endpoint_property: EndpointProperty

    @property
    def value_expression(self) -> str:
        return format_placeholder(
            self.endpoint.resource.name,
            f"bindings.{self.endpoint.endpoint_name}.{self.endpoint_property.value}",
        )

    async def get_value(self, cancellation: CancellationToken | None = None) -> str:
        ensure_token(cancellation).throw_if_cancellation_requested()
        allocated = self.endpoint.allocated_endpoint
        if self.endpoint_property is EndpointProperty.HOST:
            return allocated.address
        return str(allocated.port)
