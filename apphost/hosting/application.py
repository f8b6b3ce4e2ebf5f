"""
The built application and its run/publish phases.

Run mode executes an explicit, ordered phase list to completion:

    before_start               hooks, then BeforeStartEvent subscribers
    allocate_endpoints         every endpoint, exactly once
    provision_resources        Provisioner for non-emulated cloud resources
    after_endpoints_allocated  hooks, then AfterEndpointsAllocatedEvent subscribers
    start_resources            BeforeResourceStartedEvent, then launcher.start()
    after_resources_created    hooks, then AfterResourcesCreatedEvent subscribers

Publish mode writes the manifest and starts nothing.

Each phase is timed; phase_timings and to_audit_dict() expose the result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apphost.model.annotations import ContainerImageAnnotation, ContainerMountAnnotation
from apphost.model.application import DistributedApplicationModel
from apphost.model.cancellation import CancellationToken, ensure_token
from apphost.model.endpoints import AllocatedEndpoint
from apphost.model.resource import ContainerResource, ProjectResource, Resource
from apphost.provisioning import Provisioner, ProvisioningResource

from .allocation import EndpointAllocator, PortAllocator
from .environment import EnvironmentVariableEvaluator
from .launcher import LaunchSpec, LoggingLauncher, ResourceLauncher
from .lifecycle import (
    AfterEndpointsAllocatedEvent,
    AfterResourcesCreatedEvent,
    BeforeResourceStartedEvent,
    BeforeStartEvent,
)

if TYPE_CHECKING:
    from .builder import DistributedApplicationBuilder

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DistributedApplication:
    """
    A frozen topology ready to be run or published.

    Example:
        app = builder.build()
        await app.run()
        app.phase_timings  # {"before_start": 0.1, "allocate_endpoints": 0.3, ...}
    """

    def __init__(
        self,
        builder: DistributedApplicationBuilder,
        model: DistributedApplicationModel,
        *,
        launcher: ResourceLauncher | None = None,
        provisioner: Provisioner | None = None,
    ):
        settings = builder.settings
        self.model = model
        self.execution_context = builder.execution_context
        self.configuration = builder.configuration
        self.settings = settings
        self.eventing = builder.eventing
        self.hooks = builder.lifecycle_hooks
        self.launcher: ResourceLauncher = launcher or LoggingLauncher()
        self.provisioner = provisioner
        self.allocator = EndpointAllocator(
            default_host=settings.default_host,
            container_host=settings.container_host,
            ports=PortAllocator(settings.dynamic_port_start, settings.dynamic_port_end),
        )
        self.evaluator = EnvironmentVariableEvaluator(self.execution_context)

        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None
        self.phase_timings: dict[str, float] = {}
        self.started_resources: list[str] = []
        self.manifest: dict[str, Any] | None = None

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def run(self, cancellation: CancellationToken | None = None) -> None:
        """
        Run or publish the application depending on the execution context.

        Raises:
            asyncio.CancelledError: If cancellation was requested between phases
        """
        token = ensure_token(cancellation)
        self.started_at = _utc_now()

        if self.execution_context.is_publish_mode:
            await self._phase(
                "publish_manifest",
                lambda: self.publish_manifest(self.settings.manifest_path, token),
                token,
            )
            self.completed_at = _utc_now()
            return

        phases: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("before_start", lambda: self._before_start(token)),
            ("allocate_endpoints", self.allocate_endpoints),
            ("provision_resources", lambda: self.provision_resources(token)),
            ("after_endpoints_allocated", lambda: self._after_endpoints_allocated(token)),
            ("start_resources", lambda: self.start_resources(token)),
            ("after_resources_created", lambda: self._after_resources_created(token)),
        ]
        for name, phase in phases:
            await self._phase(name, phase, token)

        self.completed_at = _utc_now()
        logger.info(
            f"[app] Started {len(self.started_resources)} resource(s) in "
            f"{sum(self.phase_timings.values()):.2f}ms"
        )

    async def _phase(
        self,
        name: str,
        phase: Callable[[], Awaitable[Any]],
        token: CancellationToken,
    ) -> None:
        token.throw_if_cancellation_requested()
        logger.info(f"[app] Phase {name}")
        start_time = time.perf_counter()
        try:
            await phase()
        finally:
            self.phase_timings[name] = (time.perf_counter() - start_time) * 1000

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _before_start(self, token: CancellationToken) -> None:
        for hook in self.hooks:
            token.throw_if_cancellation_requested()
            await hook.before_start(self.model, token)
        await self.eventing.publish(
            BeforeStartEvent(self.model, token, execution_context=self.execution_context)
        )

    async def allocate_endpoints(self) -> list[AllocatedEndpoint]:
        """
        Allocate every endpoint in the model.

        Raises:
            AllocationReuseError: If endpoints were already allocated
        """
        return self.allocator.allocate(self.model)

    async def provision_resources(self, cancellation: CancellationToken | None = None) -> None:
        """Provision cloud resources that are not running as emulators."""
        token = ensure_token(cancellation)
        for resource in self.model.of_type(ProvisioningResource):
            if resource.is_emulator:
                continue
            token.throw_if_cancellation_requested()
            if self.provisioner is None:
                logger.warning(
                    f"[app] No provisioner configured; '{resource.name}' outputs stay unresolved"
                )
                continue
            infrastructure = resource.configure_infrastructure()
            outputs = await self.provisioner.provision(resource, infrastructure)
            resource.outputs.update(outputs)
            logger.info(f"[app] Provisioned '{resource.name}' ({len(outputs)} output(s))")

    async def _after_endpoints_allocated(self, token: CancellationToken) -> None:
        for hook in self.hooks:
            token.throw_if_cancellation_requested()
            await hook.after_endpoints_allocated(self.model, token)
        await self.eventing.publish(AfterEndpointsAllocatedEvent(self.model, token))

    async def start_resources(self, cancellation: CancellationToken | None = None) -> None:
        """Hand a resolved LaunchSpec for every runnable resource to the launcher."""
        token = ensure_token(cancellation)
        for resource in self.model.resources:
            if not self._is_runnable(resource):
                continue
            token.throw_if_cancellation_requested()
            await self.eventing.publish(
                BeforeResourceStartedEvent(self.model, token, resource=resource)
            )
            spec = await self.create_launch_spec(resource, token)
            await self.launcher.start(spec)
            self.started_resources.append(resource.name)

    async def _after_resources_created(self, token: CancellationToken) -> None:
        for hook in self.hooks:
            token.throw_if_cancellation_requested()
            await hook.after_resources_created(self.model, token)
        await self.eventing.publish(AfterResourcesCreatedEvent(self.model, token))

    # -------------------------------------------------------------------------
    # Launch specs
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_runnable(resource: Resource) -> bool:
        if isinstance(resource, ContainerResource | ProjectResource):
            return True
        return isinstance(resource, ProvisioningResource) and resource.is_emulator

    async def create_launch_spec(
        self,
        resource: Resource,
        cancellation: CancellationToken | None = None,
    ) -> LaunchSpec:
        """Resolve everything a launcher needs to start ``resource``."""
        token = ensure_token(cancellation)
        image = resource.annotations.try_get_last(ContainerImageAnnotation)
        return LaunchSpec(
            name=resource.name,
            kind=resource.kind,
            image=image.full_image if image else None,
            entrypoint=getattr(resource, "entrypoint", None),
            path=getattr(resource, "path", None),
            args=await self.evaluator.get_arguments(resource, token),
            env=await self.evaluator.get_environment_variables(resource, token),
            endpoints={
                endpoint.name: endpoint.allocated_endpoint
                for endpoint in resource.endpoints
                if endpoint.allocated_endpoint is not None
            },
            mounts=[
                {
                    "source": mount.source,
                    "target": mount.target,
                    "type": mount.type.value,
                    "readOnly": mount.is_read_only,
                }
                for mount in resource.annotations.query_all(ContainerMountAnnotation)
            ],
        )

    # -------------------------------------------------------------------------
    # Publish
    # -------------------------------------------------------------------------

    async def publish_manifest(
        self,
        path: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> dict[str, Any]:
        """Build the manifest and write it to ``path`` when given."""
        from apphost.manifest import ManifestPublisher

        publisher = ManifestPublisher(self.model, self.execution_context)
        if path:
            self.manifest = await publisher.write(path, cancellation)
        else:
            self.manifest = await publisher.publish(cancellation)
        return self.manifest

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    @property
    def duration_ms(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.completed_at or _utc_now()
        return (end - self.started_at).total_seconds() * 1000

    def to_audit_dict(self) -> dict[str, Any]:
        """Summary of the last run for logging or storage."""
        return {
            "operation": str(self.execution_context),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "phase_timings": dict(self.phase_timings),
            "resource_count": len(self.model),
            "started_resources": list(self.started_resources),
            "hooks": [hook.name for hook in self.hooks],
        }
