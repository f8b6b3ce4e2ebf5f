"""
Fluent construction of an application topology.

DistributedApplicationBuilder registers resources and returns a
ResourceBuilder handle for each; every with_* call on a handle attaches
annotations and returns the same handle. build() freezes the graph.

The execution context (run or publish) is fixed when the builder is
created. Extension modules (apphost.resources.*) subclass ResourceBuilder
to add kind-specific methods.

Example:
    builder = DistributedApplicationBuilder(execution_context=ExecutionContext.run())
    password = builder.add_parameter("pass", secret=True)
    cache = add_redis(builder, "cache", password=password.resource)
    api = (
        builder.add_project("api", "../api")
        .with_reference(cache)
        .wait_for(cache)
    )
    app = builder.build()
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from apphost.config.configuration import Configuration, ConfigurationParameterSource
from apphost.config.schemas import AppHostSettings
from apphost.config.settings import get_settings
from apphost.model.annotations import (
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
from apphost.model.application import DistributedApplicationModel
from apphost.model.context import ExecutionContext
from apphost.model.endpoints import EndpointAnnotation, EndpointReference, ProtocolType
from apphost.model.errors import AppHostError, DuplicateNameError
from apphost.model.parameters import (
    ConstantParameterDefault,
    GenerateParameterDefault,
    ParameterDefault,
    ParameterResource,
    ParameterSource,
)
from apphost.model.resource import (
    ConnectionStringReference,
    ContainerResource,
    ProjectResource,
    Resource,
    ResourceWithConnectionString,
    ResourceWithEndpoints,
)
from apphost.model.roles import RoleAssignmentAnnotation, RoleDefinition
from apphost.provisioning import provisioned_owner

from .lifecycle import EventBus, LifecycleHook

if TYPE_CHECKING:
    from apphost.provisioning import Provisioner

    from .application import DistributedApplication
    from .launcher import ResourceLauncher

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Resource)
B = TypeVar("B", bound="ResourceBuilder")

_VOLUME_NAME_INVALID = re.compile(r"[^A-Za-z0-9_.-]")


# =============================================================================
# Resource Builder
# =============================================================================


class ResourceBuilder(Generic[R]):
    """
    Handle for attaching annotations to one resource.

    Every method returns ``self`` so calls can be chained.
    """

    def __init__(self, application_builder: DistributedApplicationBuilder, resource: R):
        self.application_builder = application_builder
        self.resource = resource

    @property
    def execution_context(self) -> ExecutionContext:
        return self.application_builder.execution_context

    @property
    def name(self) -> str:
        return self.resource.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.resource!r})"

    # -------------------------------------------------------------------------
    # Generic annotations
    # -------------------------------------------------------------------------

    def with_annotation(self: B, annotation: ResourceAnnotation) -> B:
        """Attach an annotation, replacing earlier ones if its kind is a singleton."""
        self.resource.annotations.apply(annotation)
        return self

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def with_endpoint(
        self: B,
        target_port: int | None = None,
        port: int | None = None,
        *,
        name: str | None = None,
        scheme: str = "tcp",
        protocol: ProtocolType = ProtocolType.TCP,
        is_external: bool = False,
        is_proxied: bool = True,
    ) -> B:
        """
        Declare a named endpoint.

        Raises:
            ValueError: If an endpoint with the same name already exists
        """
        endpoint_name = name or scheme
        if any(e.name == endpoint_name for e in self.resource.endpoints):
            raise ValueError(
                f"Endpoint with name '{endpoint_name}' already exists on '{self.resource.name}'"
            )
        self.resource.annotations.add(
            EndpointAnnotation(
                name=endpoint_name,
                target_port=target_port,
                port=port,
                protocol=protocol,
                uri_scheme=scheme,
                is_external=is_external,
                is_proxied=is_proxied,
            )
        )
        return self

    def with_http_endpoint(
        self: B,
        port: int | None = None,
        target_port: int | None = None,
        name: str = "http",
    ) -> B:
        return self.with_endpoint(target_port=target_port, port=port, name=name, scheme="http")

    def with_https_endpoint(
        self: B,
        port: int | None = None,
        target_port: int | None = None,
        name: str = "https",
    ) -> B:
        return self.with_endpoint(target_port=target_port, port=port, name=name, scheme="https")

    def with_external_http_endpoints(self: B) -> B:
        for endpoint in self.resource.endpoints:
            if endpoint.uri_scheme in ("http", "https"):
                endpoint.is_external = True
        return self

    def get_endpoint(self, name: str) -> EndpointReference:
        return self.resource.get_endpoint(name)

    # -------------------------------------------------------------------------
    # Container image
    # -------------------------------------------------------------------------

    def _image(self) -> ContainerImageAnnotation:
        image = self.resource.annotations.try_get_last(ContainerImageAnnotation)
        if image is None:
            raise AppHostError(
                "The resource does not have a container image specified",
                resource_name=self.resource.name,
            )
        return image

    def with_image(self: B, image: str, tag: str | None = None) -> B:
        """
        Set the image, keeping an existing registry.

        A tag embedded in ``image`` (``redis:7``) is used when ``tag`` is None.
        """
        if tag is None:
            image, _, embedded = image.partition(":")
            tag = embedded or "latest"
        existing = self.resource.annotations.try_get_last(ContainerImageAnnotation)
        registry = existing.registry if existing else None
        self.resource.annotations.replace_or_add(
            ContainerImageAnnotation(image=image, tag=tag, registry=registry)
        )
        return self

    def with_image_registry(self: B, registry: str) -> B:
        self._image().registry = registry
        return self

    def with_image_tag(self: B, tag: str) -> B:
        image = self._image()
        image.tag = tag
        image.sha256 = None
        return self

    def with_image_sha256(self: B, digest: str) -> B:
        self._image().sha256 = digest
        return self

    def with_lifetime(self: B, lifetime: ContainerLifetime) -> B:
        return self.with_annotation(ContainerLifetimeAnnotation(lifetime))

    # -------------------------------------------------------------------------
    # Arguments and environment
    # -------------------------------------------------------------------------

    def with_args(self: B, *args: Any) -> B:
        """
        Append command line arguments.

        Accepts plain values or a single callback receiving a
        CommandLineArgsCallbackContext.
        """
        if len(args) == 1 and callable(args[0]) and not isinstance(args[0], Resource):
            self.resource.annotations.add(CommandLineArgsCallbackAnnotation(args[0]))
            return self

        values = list(args)

        def _append(context: CommandLineArgsCallbackContext) -> None:
            context.args.extend(values)

        self.resource.annotations.add(CommandLineArgsCallbackAnnotation(_append))
        return self

    def with_environment(
        self: B,
        name: str | Callable[[EnvironmentCallbackContext], Any],
        value: Any = None,
    ) -> B:
        """
        Set an environment variable.

        ``value`` may be a string, a value provider, a ResourceBuilder or a
        resource with a connection string. Passing a single callable
        registers an environment callback instead.
        """
        if callable(name):
            self.resource.annotations.add(EnvironmentCallbackAnnotation(name))
            return self
        if isinstance(value, ResourceBuilder):
            value = value.resource
        if isinstance(value, ResourceWithConnectionString) and not isinstance(value, ParameterResource):
            value = ConnectionStringReference(value)
        self.resource.annotations.add(EnvironmentCallbackAnnotation.for_value(name, value))
        return self

    # -------------------------------------------------------------------------
    # Mounts
    # -------------------------------------------------------------------------

    def with_volume(
        self: B,
        name: str | None,
        target: str,
        is_read_only: bool = False,
    ) -> B:
        """Mount a named (or anonymous, when ``name`` is None) volume."""
        self.resource.annotations.add(
            ContainerMountAnnotation(
                source=name,
                target=target,
                type=ContainerMountType.VOLUME,
                is_read_only=is_read_only,
            )
        )
        return self

    def with_bind_mount(self: B, source: str, target: str, is_read_only: bool = False) -> B:
        """Mount a host path; relative paths are resolved against the app host directory."""
        self.resource.annotations.add(
            ContainerMountAnnotation(
                source=self.application_builder.resolve_path(source),
                target=target,
                type=ContainerMountType.BIND_MOUNT,
                is_read_only=is_read_only,
            )
        )
        return self

    # -------------------------------------------------------------------------
    # Graph edges
    # -------------------------------------------------------------------------

    def with_reference(
        self: B,
        source: Any,
        connection_name: str | None = None,
        optional: bool = False,
    ) -> B:
        """
        Inject another resource's connection information.

        Resources with a connection string become
        ``ConnectionStrings__<name>``; endpoints become
        ``services__<resource>__<endpoint>__0`` URLs.
        """
        if isinstance(source, ResourceBuilder):
            source = source.resource

        if isinstance(source, EndpointReference):
            self._add_service_url(source)
            target = source.resource
        elif isinstance(source, ResourceWithConnectionString):
            name = connection_name or source.name
            self.resource.annotations.add(
                EnvironmentCallbackAnnotation.for_value(
                    f"ConnectionStrings__{name}",
                    ConnectionStringReference(source, optional=optional),
                )
            )
            target = source
        elif isinstance(source, ResourceWithEndpoints) and source.endpoints:
            for endpoint in source.endpoints:
                self._add_service_url(source.get_endpoint(endpoint.name))
            target = source
        else:
            raise TypeError(
                f"Cannot reference {type(source).__name__}: it exposes neither a "
                "connection string nor endpoints"
            )

        self.resource.annotations.add(ResourceRelationshipAnnotation(target, "Reference"))
        return self

    def _add_service_url(self, endpoint: EndpointReference) -> None:
        self.resource.annotations.add(
            EnvironmentCallbackAnnotation.for_value(
                f"services__{endpoint.resource.name}__{endpoint.endpoint_name}__0",
                endpoint.url,
            )
        )

    def wait_for(self: B, dependency: Any, wait_type: WaitType = WaitType.WAIT_UNTIL_HEALTHY) -> B:
        if isinstance(dependency, ResourceBuilder):
            dependency = dependency.resource
        if dependency is self.resource:
            raise AppHostError("A resource cannot wait for itself", resource_name=self.resource.name)
        self.resource.annotations.add(WaitAnnotation(dependency, wait_type))
        self.resource.annotations.add(ResourceRelationshipAnnotation(dependency, "WaitFor"))
        return self

    def with_parent(self: B, parent: Any) -> B:
        """
        Attach the resource below ``parent``.

        Raises:
            CyclicGraphError: If the link would create a cycle
        """
        if isinstance(parent, ResourceBuilder):
            parent = parent.resource
        self.resource.set_parent(parent)
        self.resource.annotations.add(ResourceRelationshipAnnotation(parent, "Parent"))
        return self

    def with_role_assignments(self: B, target: Any, *roles: RoleDefinition) -> B:
        """
        Grant this (compute) resource explicit roles on ``target``.

        A child such as a blob container grants on its provisioned owner.
        Repeated grants on the same owner accumulate.
        """
        if isinstance(target, ResourceBuilder):
            target = target.resource
        target = provisioned_owner(target) or target
        self.resource.annotations.add(RoleAssignmentAnnotation(target, frozenset(roles)))
        return self

    # -------------------------------------------------------------------------
    # Manifest
    # -------------------------------------------------------------------------

    def with_manifest_publishing_callback(self: B, callback: Callable[[Any], Any]) -> B:
        return self.with_annotation(ManifestPublishingCallbackAnnotation(callback))

    def exclude_from_manifest(self: B) -> B:
        return self.with_annotation(ManifestPublishingCallbackAnnotation.ignore())


# =============================================================================
# Application Builder
# =============================================================================


class DistributedApplicationBuilder:
    """
    Registry of resources and lifecycle hooks for one application.

    Args:
        execution_context: Run or publish; defaults to settings.operation
        configuration: Values consumed by resources (defaults to APPHOST__* env vars)
        settings: Host settings (defaults to get_settings())
        parameter_source: Where parameters read their values
        application_name: Prefix for generated volume names
        app_host_directory: Base for relative bind mount paths
    """

    def __init__(
        self,
        *,
        execution_context: ExecutionContext | None = None,
        configuration: Configuration | None = None,
        settings: AppHostSettings | None = None,
        parameter_source: ParameterSource | None = None,
        application_name: str | None = None,
        app_host_directory: str | None = None,
    ):
        self.settings = settings if settings is not None else get_settings()
        self.execution_context = execution_context or ExecutionContext(self.settings.operation)
        if configuration is None:
            configuration = Configuration().add_environment_variables()
        self.configuration = configuration
        self.parameter_source = parameter_source or ConfigurationParameterSource(configuration)
        self.application_name = application_name or self.settings.application_name
        self.app_host_directory = app_host_directory or self.settings.app_host_directory
        self.eventing = EventBus()

        self._resources: list[Resource] = []
        self._hooks: list[LifecycleHook] = []
        self._built = False

        logger.debug(
            f"[builder] Created builder for '{self.application_name}' "
            f"(mode={self.execution_context})"
        )

    @property
    def resources(self) -> tuple[Resource, ...]:
        return tuple(self._resources)

    @property
    def lifecycle_hooks(self) -> tuple[LifecycleHook, ...]:
        return tuple(self._hooks)

    def _ensure_mutable(self) -> None:
        if self._built:
            raise AppHostError("The application has already been built")

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_resource(
        self,
        resource: R,
        builder_type: type[ResourceBuilder] = ResourceBuilder,
    ) -> ResourceBuilder[R]:
        """Register a resource and return a builder handle for it."""
        self._ensure_mutable()
        if isinstance(resource, ParameterResource) and resource.source is None:
            resource.source = self.parameter_source
        self._resources.append(resource)
        logger.debug(f"[builder] Registered {resource.kind} '{resource.name}'")
        return builder_type(self, resource)

    def create_resource_builder(
        self,
        resource: R,
        builder_type: type[ResourceBuilder] = ResourceBuilder,
    ) -> ResourceBuilder[R]:
        """A builder for a resource that is not part of the model."""
        return builder_type(self, resource)

    def add_parameter(
        self,
        name: str,
        value: Any = None,
        *,
        secret: bool = False,
        default: ParameterDefault | None = None,
    ) -> ResourceBuilder[ParameterResource]:
        """
        Register a parameter.

        The value is read from ``Parameters:<name>`` in configuration; ``value``
        (or ``default``) is the fallback.
        """
        if value is not None:
            default = ConstantParameterDefault(str(value))
        return self.add_resource(ParameterResource(name, secret=secret, default=default))

    def add_container(
        self,
        name: str,
        image: str,
        tag: str | None = None,
    ) -> ResourceBuilder[ContainerResource]:
        return self.add_resource(ContainerResource(name)).with_image(image, tag)

    def add_project(self, name: str, path: str) -> ResourceBuilder[ProjectResource]:
        return self.add_resource(ProjectResource(name, path))

    def add_lifecycle_hook(self, hook: LifecycleHook | type[LifecycleHook]) -> LifecycleHook:
        """
        Register a hook, once per hook type.

        Returns the hook that will run: the existing instance when a hook of
        the same type was already registered.
        """
        hook_type = hook if isinstance(hook, type) else type(hook)
        for existing in self._hooks:
            if type(existing) is hook_type:
                return existing
        instance = hook() if isinstance(hook, type) else hook
        self._hooks.append(instance)
        logger.debug(f"[builder] Added lifecycle hook {instance.name}")
        return instance

    # -------------------------------------------------------------------------
    # Helpers for extensions
    # -------------------------------------------------------------------------

    def resolve_path(self, path: str) -> str:
        return os.path.normpath(os.path.join(self.app_host_directory, path))

    def generate_volume_name(self, resource: Resource | ResourceBuilder, suffix: str) -> str:
        """
        ``{application}-{resource}-{suffix}`` with unsupported characters
        replaced by ``_``.
        """
        if isinstance(resource, ResourceBuilder):
            resource = resource.resource
        name = f"{self.application_name}-{resource.name}-{suffix}"
        return _VOLUME_NAME_INVALID.sub("_", name)

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    def build(
        self,
        *,
        launcher: ResourceLauncher | None = None,
        provisioner: Provisioner | None = None,
    ) -> DistributedApplication:
        """
        Freeze the graph.

        Args:
            launcher: Starts resources in run mode (defaults to LoggingLauncher)
            provisioner: Provisions cloud resources in run mode

        Raises:
            DuplicateNameError: If two resources share a name (case-insensitive)
        """
        from .application import DistributedApplication

        self._ensure_mutable()
        seen: dict[str, Resource] = {}
        for resource in self._resources:
            key = resource.name.lower()
            if key in seen:
                raise DuplicateNameError(
                    f"Cannot add resource of type '{resource.kind}' with name "
                    f"'{resource.name}' because a resource of type '{seen[key].kind}' "
                    "with that name already exists",
                    resource_name=resource.name,
                )
            seen[key] = resource

        self._built = True
        model = DistributedApplicationModel(self._resources)
        logger.info(f"[builder] Built application with {len(model)} resource(s)")
        return DistributedApplication(self, model, launcher=launcher, provisioner=provisioner)


def create_default_password_parameter(
    builder: DistributedApplicationBuilder,
    name: str,
    *,
    lower: bool = True,
    upper: bool = True,
    numeric: bool = True,
    special: bool = False,
    min_length: int = 22,
) -> ParameterResource:
    """
    Register ``{name}-password``: a secret parameter with a generated default.

    Resources that need a password in publish mode use this when the caller
    did not supply one, so the manifest can reference ``{name-password.value}``.
    """
    default = GenerateParameterDefault(
        min_length=min_length,
        lower=lower,
        upper=upper,
        numeric=numeric,
        special=special,
    )
    parameter = ParameterResource(f"{name}-password", secret=True, default=default)
    builder.add_resource(parameter)
    return parameter
