"""
Seq hosting integration.

    seq = add_seq(builder, "seq")
    builder.add_project("api", "../api").with_reference(seq)

Connection string: ``http://{seq.bindings.http.host}:{seq.bindings.http.port}``
"""

from __future__ import annotations

from apphost.hosting.builder import DistributedApplicationBuilder, ResourceBuilder
from apphost.model.endpoints import EndpointReference
from apphost.model.expressions import ReferenceExpression
from apphost.model.resource import ConnectionStringMixin, ContainerResource

SEQ_REGISTRY = "docker.io"
SEQ_IMAGE = "datalust/seq"
SEQ_TAG = "2024.3"
SEQ_PORT = 80
SEQ_DATA_TARGET = "/data"


class SeqResource(ConnectionStringMixin, ContainerResource):
    """A Seq log server."""

    @property
    def primary_endpoint(self) -> EndpointReference:
        return EndpointReference(self, "http")

    @property
    def connection_string_expression(self) -> ReferenceExpression:
        return self.primary_endpoint.url


class SeqResourceBuilder(ResourceBuilder[SeqResource]):
    def with_data_volume(self, name: str | None = None, is_read_only: bool = False) -> "SeqResourceBuilder":
        volume = name or self.application_builder.generate_volume_name(self.resource, "data")
        return self.with_volume(volume, SEQ_DATA_TARGET, is_read_only)

    def with_data_bind_mount(self, source: str, is_read_only: bool = False) -> "SeqResourceBuilder":
        return self.with_bind_mount(source, SEQ_DATA_TARGET, is_read_only)


def add_seq(
    builder: DistributedApplicationBuilder,
    name: str,
    port: int | None = None,
) -> SeqResourceBuilder:
    """Add a Seq container with its EULA accepted."""
    return (
        builder.add_resource(SeqResource(name), SeqResourceBuilder)
        .with_http_endpoint(port=port, target_port=SEQ_PORT, name="http")
        .with_image(SEQ_IMAGE, SEQ_TAG)
        .with_image_registry(SEQ_REGISTRY)
        .with_environment("ACCEPT_EULA", "Y")
    )
