"""
Application model: resources, annotations, endpoints and reference expressions.
"""

from .annotations import (
    AnnotationMultiplicity,
    AnnotationStore,
    CommandLineArgsCallbackAnnotation,
    CommandLineArgsCallbackContext,
    ContainerImageAnnotation,
    ContainerLifetime,
    ContainerLifetimeAnnotation,
    ContainerMountAnnotation,
    ContainerMountType,
    EnvironmentCallbackAnnotation,
    EnvironmentCallbackContext,
    ManifestPublishingCallbackAnnotation,
    ResourceAnnotation,
    ResourceRelationshipAnnotation,
    WaitAnnotation,
    WaitType,
)
from .application import DistributedApplicationModel
from .cancellation import CancellationToken, CancellationTokenSource
from .context import DistributedApplicationOperation, ExecutionContext
from .endpoints import (
    AllocatedEndpoint,
    EndpointAnnotation,
    EndpointProperty,
    EndpointReference,
    EndpointReferenceExpression,
    ProtocolType,
)
from .errors import (
    AllocationReuseError,
    AppHostError,
    CyclicGraphError,
    DuplicateNameError,
    ExpressionSyntaxError,
    MissingValueError,
    PortConflictError,
)
from .expressions import (
    ReferenceExpression,
    ReferenceExpressionBuilder,
    ValueProvider,
    literal,
    reference,
)
from .parameters import (
    ConstantParameterDefault,
    GenerateParameterDefault,
    ParameterDefault,
    ParameterResource,
    ParameterSource,
)
from .resource import (
    ConnectionStringMixin,
    ConnectionStringReference,
    ContainerResource,
    ProjectResource,
    Resource,
    ResourceWithConnectionString,
    ResourceWithEndpoints,
    ResourceWithParent,
    validate_resource_name,
)
from .roles import (
    DefaultRoleAssignmentsAnnotation,
    RoleAssignmentAnnotation,
    RoleAssignmentCustomizationAnnotation,
    RoleDefinition,
)

__all__ = [
    # Annotations
    "AnnotationMultiplicity",
    "AnnotationStore",
    "CommandLineArgsCallbackAnnotation",
    "CommandLineArgsCallbackContext",
    "ContainerImageAnnotation",
    "ContainerLifetime",
    "ContainerLifetimeAnnotation",
    "ContainerMountAnnotation",
    "ContainerMountType",
    "EnvironmentCallbackAnnotation",
    "EnvironmentCallbackContext",
    "ManifestPublishingCallbackAnnotation",
    "ResourceAnnotation",
    "ResourceRelationshipAnnotation",
    "WaitAnnotation",
    "WaitType",
    # Model
    "DistributedApplicationModel",
    "DistributedApplicationOperation",
    "ExecutionContext",
    "CancellationToken",
    "CancellationTokenSource",
    # Endpoints
    "AllocatedEndpoint",
    "EndpointAnnotation",
    "EndpointProperty",
    "EndpointReference",
    "EndpointReferenceExpression",
    "ProtocolType",
    # Errors
    "AllocationReuseError",
    "AppHostError",
    "CyclicGraphError",
    "DuplicateNameError",
    "ExpressionSyntaxError",
    "MissingValueError",
    "PortConflictError",
    # Expressions
    "ReferenceExpression",
    "ReferenceExpressionBuilder",
    "ValueProvider",
    "literal",
    "reference",
    # Parameters
    "ConstantParameterDefault",
    "GenerateParameterDefault",
    "ParameterDefault",
    "ParameterResource",
    "ParameterSource",
    # Resources
    "ConnectionStringMixin",
    "ConnectionStringReference",
    "ContainerResource",
    "ProjectResource",
    "Resource",
    "ResourceWithConnectionString",
    "ResourceWithEndpoints",
    "ResourceWithParent",
    "validate_resource_name",
    # Roles
    "DefaultRoleAssignmentsAnnotation",
    "RoleAssignmentAnnotation",
    "RoleAssignmentCustomizationAnnotation",
    "RoleDefinition",
]
