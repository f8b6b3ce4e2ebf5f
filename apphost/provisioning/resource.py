"""
Provisioned cloud resources and their outputs.

A ProvisioningResource describes something a deployer creates in the
cloud. Locally it has no values until a Provisioner has run and filled
``outputs``; in publish mode its outputs are referenced through
``{name.outputs.<output>}`` placeholders and never resolved.

Bicep or ARM emission is out of scope. configure_infrastructure() only
records what would be provisioned (declared outputs and properties) in
a ResourceInfrastructure that provisioners and tests can inspect.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, runtime_checkable

from apphost.model.annotations import AnnotationMultiplicity, ResourceAnnotation
from apphost.model.cancellation import CancellationToken, ensure_token
from apphost.model.errors import MissingValueError
from apphost.model.placeholders import format_placeholder
from apphost.model.resource import Resource

logger = logging.getLogger(__name__)


@dataclass
class ResourceInfrastructure:
    """What a provisioned resource declares: properties and outputs."""

    resource: ProvisioningResource
    properties: dict[str, Any] = field(default_factory=dict)
    outputs: list[str] = field(default_factory=list)

    def add_output(self, name: str) -> None:
        if name not in self.outputs:
            self.outputs.append(name)


@dataclass
class EmulatorResourceAnnotation(ResourceAnnotation):
    """Marks a provisioned resource as running locally in an emulator."""

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON


class ProvisioningResource(Resource):
    """
    Base class for cloud resources provisioned by an external deployer.

    Args:
        name: Resource name
        configure_infrastructure: Callback that fills a ResourceInfrastructure
    """

    def __init__(
        self,
        name: str,
        configure_infrastructure: Callable[[ResourceInfrastructure], None] | None = None,
    ):
        super().__init__(name)
        self._configure = configure_infrastructure
        self.outputs: dict[str, str] = {}
        self.parameters: dict[str, Any] = {}

    @property
    def bicep_path(self) -> str:
        return f"{self.name}.module.bicep"

    @property
    def is_emulator(self) -> bool:
        return self.annotations.try_get_last(EmulatorResourceAnnotation) is not None

    def configure_infrastructure(self) -> ResourceInfrastructure:
        infrastructure = ResourceInfrastructure(self)
        if self._configure is not None:
            self._configure(infrastructure)
        return infrastructure

    def get_output(self, name: str) -> OutputReference:
        return OutputReference(self, name)


def provisioned_owner(resource: Resource) -> ProvisioningResource | None:
    """The resource itself or its nearest provisioned ancestor."""
    if isinstance(resource, ProvisioningResource):
        return resource
    for ancestor in resource.ancestors():
        if isinstance(ancestor, ProvisioningResource):
            return ancestor
    return None


class OutputReference:
    """
    Value provider for one provisioning output.

    Rendered as ``{name.outputs.<output>}``. Resolving it before the
    provisioner has run raises MissingValueError.
    """

    __slots__ = ("resource", "name")

    def __init__(self, resource: ProvisioningResource, name: str):
        format_placeholder(resource.name, f"outputs.{name}")
        self.resource = resource
        self.name = name

    @property
    def value_expression(self) -> str:
        return format_placeholder(self.resource.name, f"outputs.{self.name}")

    async def get_value(self, cancellation: CancellationToken | None = None) -> str:
        ensure_token(cancellation).throw_if_cancellation_requested()
        value = self.resource.outputs.get(self.name)
        if value is None:
            raise MissingValueError(
                f"Output '{self.name}' is not available; the resource has not been provisioned",
                resource_name=self.resource.name,
            )
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OutputReference):
            return NotImplemented
        return self.resource is other.resource and self.name == other.name

    def __hash__(self) -> int:
        return hash((id(self.resource), self.name))

    def __repr__(self) -> str:
        return f"OutputReference({self.value_expression})"


@runtime_checkable
class Provisioner(Protocol):
    """
    External collaborator that creates cloud resources in run mode.

    Returns the resource's output values keyed by output name.
    """

    async def provision(
        self,
        resource: ProvisioningResource,
        infrastructure: ResourceInfrastructure,
    ) -> dict[str, str]: ...
