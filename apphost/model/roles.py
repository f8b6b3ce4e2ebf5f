"""
Role assignment annotations for provisioned cloud resources.

A provisioned resource carries DefaultRoleAssignmentsAnnotation: the roles
granted to every compute resource that references it. A compute resource
can override that per target with RoleAssignmentAnnotation. The effective
defaults are always the most recent DefaultRoleAssignmentsAnnotation, so
removing them means appending an empty one.

Role assignments are never resolved locally. The manifest externalises
them as parameters for the deployer.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .annotations import ResourceAnnotation

if TYPE_CHECKING:
    from .resource import Resource


@dataclass(frozen=True)
class RoleDefinition:
    """A built-in or custom role, identified by its definition id."""

    name: str
    id: str

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class DefaultRoleAssignmentsAnnotation(ResourceAnnotation):
    """Roles granted by default to resources referencing the annotated one."""

    roles: frozenset[RoleDefinition] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.roles = frozenset(self.roles)


@dataclass(eq=False)
class RoleAssignmentAnnotation(ResourceAnnotation):
    """
    Explicit roles a compute resource holds on one target resource.

    Attached to the compute resource. Together, the annotations for a pair
    replace the target's defaults for that pair.
    """

    target: Resource
    roles: frozenset[RoleDefinition] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self.roles = frozenset(self.roles)


@dataclass(eq=False)
class RoleAssignmentCustomizationAnnotation(ResourceAnnotation):
    """
    Callback that can edit the parameters of a role assignment entry.

    The callback receives the ordered ``params`` dict of the
    ``{compute}-roles-{target}`` manifest entry.
    """

    callback: Callable[[dict[str, Any]], None]


def sorted_roles(roles: Iterable[RoleDefinition]) -> list[RoleDefinition]:
    """Deterministic ordering for manifest output."""
    return sorted(roles, key=lambda role: role.name)


def effective_default_roles(resource: Resource) -> frozenset[RoleDefinition]:
    annotation = resource.annotations.try_get_last(DefaultRoleAssignmentsAnnotation)
    return annotation.roles if annotation else frozenset()


def role_assignments_for(compute: Resource, target: Resource) -> frozenset[RoleDefinition]:
    """
    Roles ``compute`` holds on ``target``.

    The union of every explicit RoleAssignmentAnnotation for the pair, else
    the target's effective defaults.
    """
    explicit = [
        annotation
        for annotation in compute.annotations.query_all(RoleAssignmentAnnotation)
        if annotation.target is target
    ]
    if explicit:
        return frozenset().union(*(annotation.roles for annotation in explicit))
    return effective_default_roles(target)
