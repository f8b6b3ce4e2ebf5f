"""
Manifest publishing.

The manifest is the declarative JSON document deployment tooling consumes.
Every value in it is a placeholder expression; publishing never resolves
an endpoint, reads a parameter or requires anything to be running.

Per resource, the publisher invokes the resource's
ManifestPublishingCallbackAnnotation if it has one (a None callback
excludes the resource), otherwise it writes the default shape for the
resource kind:

    ContainerResource     container.v0
    ProjectResource       project.v0
    ParameterResource     parameter.v0
    ProvisioningResource  azure.bicep.v0
    connection string     value.v0

Role assignments are never resolved. Each compute resource that holds
roles on a provisioned resource produces an extra ``{compute}-roles-{target}``
entry whose params the deployer fills in.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from apphost.hosting.environment import EnvironmentVariableEvaluator
from apphost.model.annotations import (
    ContainerImageAnnotation,
    ContainerMountAnnotation,
    ContainerMountType,
    ManifestPublishingCallbackAnnotation,
    ResourceRelationshipAnnotation,
    invoke_callback,
)
from apphost.model.application import DistributedApplicationModel
from apphost.model.cancellation import CancellationToken, ensure_token
from apphost.model.context import ExecutionContext
from apphost.model.errors import AppHostError
from apphost.model.parameters import ParameterResource
from apphost.model.resource import (
    ContainerResource,
    ProjectResource,
    Resource,
    ResourceWithConnectionString,
)
from apphost.model.roles import (
    RoleAssignmentAnnotation,
    RoleAssignmentCustomizationAnnotation,
    effective_default_roles,
    role_assignments_for,
    sorted_roles,
)
from apphost.provisioning import ProvisioningResource, provisioned_owner

from .writer import ManifestWriter

logger = logging.getLogger(__name__)


# =============================================================================
# Publishing Context
# =============================================================================


class ManifestPublishingContext:
    """
    Passed to manifest publishing callbacks.

    Holds the writer for the current resource plus helpers that write the
    standard sections (image, args, env, bindings) so custom callbacks can
    reuse them.
    """

    def __init__(
        self,
        execution_context: ExecutionContext,
        writer: ManifestWriter,
        evaluator: EnvironmentVariableEvaluator,
        cancellation: CancellationToken | None = None,
    ):
        self.execution_context = execution_context
        self.writer = writer
        self.evaluator = evaluator
        self.cancellation = ensure_token(cancellation)

    # -------------------------------------------------------------------------
    # Default shapes
    # -------------------------------------------------------------------------

    async def write_default(self, resource: Resource) -> bool:
        """Write the default shape; False if the kind has none."""
        if isinstance(resource, ContainerResource) or (
            not isinstance(resource, ProvisioningResource)
            and resource.annotations.try_get_last(ContainerImageAnnotation) is not None
        ):
            await self.write_container(resource)
        elif isinstance(resource, ProjectResource):
            await self.write_project(resource)
        elif isinstance(resource, ParameterResource):
            self.write_parameter(resource)
        elif isinstance(resource, ProvisioningResource):
            self.write_provisioning(resource)
        elif isinstance(resource, ResourceWithConnectionString):
            self.write_value(resource)
        else:
            return False
        return True

    async def write_container(self, resource: Resource) -> None:
        """container.v0"""
        writer = self.writer
        writer.write_string("type", "container.v0")
        self.write_connection_string(resource)

        image = resource.annotations.try_get_last(ContainerImageAnnotation)
        if image is None:
            raise AppHostError(
                "The resource does not have a container image specified",
                resource_name=resource.name,
            )
        writer.write_string("image", image.full_image)

        entrypoint = getattr(resource, "entrypoint", None)
        if entrypoint:
            writer.write_string("entrypoint", entrypoint)

        await self.write_command_line_arguments(resource)
        self.write_mounts(resource)
        await self.write_environment_variables(resource)
        self.write_bindings(resource)

    async def write_project(self, resource: ProjectResource) -> None:
        """project.v0"""
        self.writer.write_string("type", "project.v0")
        self.writer.write_string("path", resource.path)
        await self.write_environment_variables(resource)
        self.write_bindings(resource)

    def write_parameter(self, resource: ParameterResource) -> None:
        """parameter.v0"""
        writer = self.writer
        writer.write_string("type", "parameter.v0")
        writer.write_string("value", "{" + resource.name + ".inputs.value}")
        writer.start_object("inputs")
        writer.start_object("value")
        writer.write_string("type", "string")
        writer.write_bool("secret", resource.secret)
        if resource.default is not None:
            writer.start_object("default")
            resource.default.write_to_manifest(writer)
            writer.end_object()
        writer.end_object()
        writer.end_object()

    def write_value(self, resource: Resource) -> None:
        """value.v0"""
        self.writer.write_string("type", "value.v0")
        self.write_connection_string(resource)

    def write_provisioning(self, resource: ProvisioningResource) -> None:
        """azure.bicep.v0"""
        writer = self.writer
        writer.write_string("type", "azure.bicep.v0")
        writer.write_string("path", resource.bicep_path)
        self.write_connection_string(resource)

        writer.start_object("params")
        for key, value in resource.parameters.items():
            self._write_param(key, value)
        if effective_default_roles(resource):
            writer.write_string("principalId", "")
            writer.write_string("principalType", "")
        writer.end_object()

    def _write_param(self, key: str, value: Any) -> None:
        if isinstance(value, bool):
            self.writer.write_bool(key, value)
        elif isinstance(value, int | float):
            self.writer.write_number(key, value)
        elif isinstance(value, str):
            self.writer.write_string(key, value)
        else:
            self.writer.write_string(key, value.value_expression)

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    def write_connection_string(self, resource: Resource) -> None:
        """Write ``connectionString`` as a placeholder expression, if the resource has one."""
        if isinstance(resource, ResourceWithConnectionString):
            self.writer.write_string(
                "connectionString", resource.connection_string_expression.value_expression
            )

    async def write_command_line_arguments(self, resource: Resource) -> None:
        args = await self.evaluator.get_arguments(resource, self.cancellation)
        if not args:
            return
        self.writer.start_array("args")
        for arg in args:
            self.writer.write_string_value(arg)
        self.writer.end_array()

    async def write_environment_variables(self, resource: Resource) -> None:
        env = await self.evaluator.get_environment_variables(resource, self.cancellation)
        if not env:
            return
        self.writer.start_object("env")
        for key, value in env.items():
            self.writer.write_string(key, value)
        self.writer.end_object()

    def write_mounts(self, resource: Resource) -> None:
        mounts = resource.annotations.query_all(ContainerMountAnnotation)
        volumes = [m for m in mounts if m.type is ContainerMountType.VOLUME]
        binds = [m for m in mounts if m.type is ContainerMountType.BIND_MOUNT]
        writer = self.writer

        if volumes:
            writer.start_array("volumes")
            for mount in volumes:
                writer.start_object()
                writer.write_string("name", mount.source)
                writer.write_string("target", mount.target)
                writer.write_bool("readOnly", mount.is_read_only)
                writer.end_object()
            writer.end_array()

        if binds:
            writer.start_array("bindMounts")
            for mount in binds:
                writer.start_object()
                writer.write_string("source", mount.source)
                writer.write_string("target", mount.target)
                writer.write_bool("readOnly", mount.is_read_only)
                writer.end_object()
            writer.end_array()

    def write_bindings(self, resource: Resource) -> None:
        endpoints = resource.endpoints
        if not endpoints:
            return
        writer = self.writer
        writer.start_object("bindings")
        for endpoint in endpoints:
            writer.start_object(endpoint.name)
            writer.write_string("scheme", endpoint.uri_scheme)
            writer.write_string("protocol", endpoint.protocol.value)
            writer.write_string("transport", endpoint.transport)
            if endpoint.target_port is not None:
                writer.write_number("targetPort", endpoint.target_port)
            if endpoint.port is not None:
                writer.write_number("port", endpoint.port)
            if endpoint.is_external:
                writer.write_bool("external", True)
            writer.end_object()
        writer.end_object()


# =============================================================================
# Publisher
# =============================================================================


class ManifestPublisher:
    """
    Walks a model and produces the manifest document.

    Example:
        publisher = ManifestPublisher(app.model, ExecutionContext.publish())
        manifest = await publisher.publish()
        await publisher.write("manifest.json")
    """

    def __init__(
        self,
        model: DistributedApplicationModel,
        execution_context: ExecutionContext | None = None,
    ):
        self.model = model
        self.execution_context = execution_context or ExecutionContext.publish()
        # Manifest values are always placeholders, whatever mode the model was built in.
        self.evaluator = EnvironmentVariableEvaluator(ExecutionContext.publish())

    async def get_manifest(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, Any] | None:
        """
        The manifest entry for one resource, or None if it is excluded or has
        no manifest representation.
        """
        writer = ManifestWriter()
        context = ManifestPublishingContext(
            self.execution_context, writer, self.evaluator, cancellation
        )
        annotation = resource.annotations.try_get_last(ManifestPublishingCallbackAnnotation)

        if annotation is not None:
            if annotation.callback is None:
                logger.debug(f"[manifest] '{resource.name}' is excluded from the manifest")
                return None
            await invoke_callback(annotation.callback, context)
        elif not await context.write_default(resource):
            logger.warning(
                f"[manifest] '{resource.name}' ({resource.kind}) has no manifest representation"
            )
            return None

        return writer.to_dict()

    async def publish(self, cancellation: CancellationToken | None = None) -> dict[str, Any]:
        """``{"resources": {...}}`` in registration order, role entries last."""
        token = ensure_token(cancellation)
        resources: dict[str, Any] = {}

        for resource in self.model.resources:
            token.throw_if_cancellation_requested()
            entry = await self.get_manifest(resource, token)
            if entry is not None:
                resources[resource.name] = entry

        for compute in self.model.resources:
            if isinstance(compute, ProvisioningResource | ParameterResource):
                continue
            for target in self._role_targets(compute):
                roles = role_assignments_for(compute, target)
                if roles:
                    name = f"{compute.name}-roles-{target.name}"
                    resources[name] = self._role_assignment_entry(name, compute, target, roles)

        logger.info(f"[manifest] Published {len(resources)} resource(s)")
        return {"resources": resources}

    async def write(self, path: str, cancellation: CancellationToken | None = None) -> dict[str, Any]:
        """Publish and write the manifest as JSON with two-space indentation."""
        manifest = await self.publish(cancellation)
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)
            f.write("\n")
        logger.info(f"[manifest] Wrote {path}")
        return manifest

    # -------------------------------------------------------------------------
    # Role assignments
    # -------------------------------------------------------------------------

    def _role_targets(self, compute: Resource) -> list[ProvisioningResource]:
        """Provisioned resources ``compute`` references or holds explicit roles on."""
        targets: list[ProvisioningResource] = []

        def _add(resource: Resource) -> None:
            provisioned = provisioned_owner(resource)
            if provisioned is not None and not any(t is provisioned for t in targets):
                targets.append(provisioned)

        for annotation in compute.annotations.query_all(RoleAssignmentAnnotation):
            _add(annotation.target)
        for relationship in compute.annotations.query_all(ResourceRelationshipAnnotation):
            if relationship.relationship_type == "Reference":
                _add(relationship.resource)
        return targets

    def _role_assignment_entry(
        self,
        name: str,
        compute: Resource,
        target: ProvisioningResource,
        roles: frozenset,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            f"{target.name.replace('-', '_')}_outputs_name": "{" + target.name + ".outputs.name}",
            "principalType": "",
            "principalId": "",
        }
        for customization in compute.annotations.query_all(RoleAssignmentCustomizationAnnotation):
            customization.callback(params)

        return {
            "type": "azure.bicep.v0",
            "path": f"{name}.module.bicep",
            "params": params,
            "roles": [{"name": role.name, "id": role.id} for role in sorted_roles(roles)],
        }
