"""
Redis hosting integration.

    cache = add_redis(builder, "cache").with_data_volume().with_redis_commander()

Connection string:
    {cache.bindings.tcp.host}:{cache.bindings.tcp.port}[,password={pass.value}]

In publish mode a cache without an explicit password gets a generated
``{name}-password`` parameter, so deployments are never unauthenticated.

Redis Commander:
    One commander container is shared by every cache in the application.
    After endpoints are allocated, RedisCommanderConfigWriterHook writes
    REDIS_HOSTS on it:

        cache1:host1:5001:0,cache2:host2:5002:0

    one ``name:container_host:port:0`` entry per cache, in registration
    order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, ClassVar

from apphost.hosting.builder import (
    DistributedApplicationBuilder,
    ResourceBuilder,
    create_default_password_parameter,
)
from apphost.hosting.lifecycle import LifecycleHook
from apphost.model.annotations import (
    AnnotationMultiplicity,
    CommandLineArgsCallbackContext,
    EnvironmentCallbackAnnotation,
    EnvironmentCallbackContext,
    ResourceAnnotation,
)
from apphost.model.application import DistributedApplicationModel
from apphost.model.cancellation import CancellationToken
from apphost.model.endpoints import EndpointProperty, EndpointReference
from apphost.model.expressions import ReferenceExpression, ReferenceExpressionBuilder
from apphost.model.parameters import ParameterResource
from apphost.model.resource import ConnectionStringMixin, ContainerResource

logger = logging.getLogger(__name__)

REDIS_REGISTRY = "docker.io"
REDIS_IMAGE = "library/redis"
REDIS_TAG = "7.4"
REDIS_PORT = 6379
PRIMARY_ENDPOINT_NAME = "tcp"

COMMANDER_REGISTRY = "docker.io"
COMMANDER_IMAGE = "rediscommander/redis-commander"
COMMANDER_TAG = "latest"
COMMANDER_PORT = 8081

DATA_TARGET = "/data"


# =============================================================================
# Resources
# =============================================================================


class RedisResource(ConnectionStringMixin, ContainerResource):
    """A Redis server container."""

    def __init__(self, name: str, password: ParameterResource | None = None):
        super().__init__(name)
        self.password = password

    @property
    def primary_endpoint(self) -> EndpointReference:
        return EndpointReference(self, PRIMARY_ENDPOINT_NAME)

    @property
    def connection_string_expression(self) -> ReferenceExpression:
        endpoint = self.primary_endpoint
        builder = ReferenceExpressionBuilder()
        builder.append_value(endpoint.property(EndpointProperty.HOST))
        builder.append_literal(":")
        builder.append_value(endpoint.property(EndpointProperty.PORT))
        if self.password is not None:
            builder.append_literal(",password=")
            builder.append_value(self.password)
        return builder.build()


class RedisCommanderResource(ContainerResource):
    """Web UI for browsing the caches in an application."""

    @property
    def primary_endpoint(self) -> EndpointReference:
        return EndpointReference(self, "http")


@dataclass
class RedisPersistenceAnnotation(ResourceAnnotation):
    """Snapshot every ``interval`` if at least ``keys_changed_threshold`` keys changed."""

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    interval: timedelta
    keys_changed_threshold: int = 1

    @property
    def args(self) -> list[str]:
        return ["--save", str(int(self.interval.total_seconds())), str(self.keys_changed_threshold)]


@dataclass
class RedisHostsEnvironmentAnnotation(EnvironmentCallbackAnnotation):
    """REDIS_HOSTS on the commander; rewritten on every allocation pass."""

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON


# =============================================================================
# Builders
# =============================================================================


class RedisResourceBuilder(ResourceBuilder[RedisResource]):
    """Builder handle returned by add_redis()."""

    def with_data_volume(self, name: str | None = None, is_read_only: bool = False) -> "RedisResourceBuilder":
        """
        Persist /data in a named volume.

        Unless read-only, this also enables default persistence (snapshot
        every 60 seconds if at least one key changed).
        """
        volume = name or self.application_builder.generate_volume_name(self.resource, "data")
        self.with_volume(volume, DATA_TARGET, is_read_only)
        if not is_read_only:
            self.with_persistence()
        return self

    def with_data_bind_mount(self, source: str, is_read_only: bool = False) -> "RedisResourceBuilder":
        self.with_bind_mount(source, DATA_TARGET, is_read_only)
        if not is_read_only:
            self.with_persistence()
        return self

    def with_persistence(
        self,
        interval: timedelta | float | None = None,
        keys_changed_threshold: int = 1,
    ) -> "RedisResourceBuilder":
        """
        Configure snapshotting; the latest call wins.

        Args:
            interval: timedelta or seconds (default 60s)
            keys_changed_threshold: Minimum number of changed keys
        """
        if interval is None:
            interval = timedelta(seconds=60)
        elif not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        return self.with_annotation(RedisPersistenceAnnotation(interval, keys_changed_threshold))

    def with_redis_commander(
        self,
        configure: Callable[["RedisCommanderResourceBuilder"], Any] | None = None,
        container_name: str | None = None,
    ) -> "RedisResourceBuilder":
        """
        Add (or reuse) the application's Redis Commander container.

        The commander is excluded from the manifest.
        """
        app_builder = self.application_builder
        existing = next(
            (r for r in app_builder.resources if isinstance(r, RedisCommanderResource)),
            None,
        )
        if existing is not None:
            commander = app_builder.create_resource_builder(existing, RedisCommanderResourceBuilder)
        else:
            commander = (
                app_builder.add_resource(
                    RedisCommanderResource(container_name or f"{self.resource.name}-commander"),
                    RedisCommanderResourceBuilder,
                )
                .with_image(COMMANDER_IMAGE, COMMANDER_TAG)
                .with_image_registry(COMMANDER_REGISTRY)
                .with_http_endpoint(target_port=COMMANDER_PORT, name="http")
                .exclude_from_manifest()
            )
            app_builder.add_lifecycle_hook(RedisCommanderConfigWriterHook)
            logger.debug(f"[redis] Added commander '{commander.name}'")

        if configure is not None:
            configure(commander)
        return self


class RedisCommanderResourceBuilder(ResourceBuilder[RedisCommanderResource]):
    def with_host_port(self, port: int | None) -> "RedisCommanderResourceBuilder":
        for endpoint in self.resource.endpoints:
            if endpoint.name == "http":
                endpoint.port = port
        return self


# =============================================================================
# Lifecycle
# =============================================================================


class RedisCommanderConfigWriterHook(LifecycleHook):
    """Points the commander at every cache once endpoints are allocated."""

    async def after_endpoints_allocated(
        self,
        model: DistributedApplicationModel,
        cancellation: CancellationToken | None = None,
    ) -> None:
        commanders = model.of_type(RedisCommanderResource)
        if not commanders:
            return

        hosts = ",".join(
            f"{redis.name}:{redis.primary_endpoint.container_host}:{redis.primary_endpoint.port}:0"
            for redis in model.of_type(RedisResource)
        )

        def _set_hosts(context: EnvironmentCallbackContext) -> None:
            context.environment_variables["REDIS_HOSTS"] = hosts

        for commander in commanders:
            commander.annotations.replace_or_add(RedisHostsEnvironmentAnnotation(_set_hosts))
        logger.debug(f"[redis] REDIS_HOSTS={hosts}")


# =============================================================================
# Entry point
# =============================================================================


def add_redis(
    builder: DistributedApplicationBuilder,
    name: str,
    port: int | None = None,
    password: ParameterResource | ResourceBuilder | None = None,
) -> RedisResourceBuilder:
    """
    Add a Redis container.

    Args:
        builder: Application builder
        name: Resource name
        port: Host port; None lets the allocator choose
        password: Password parameter; generated in publish mode when omitted
    """
    if isinstance(password, ResourceBuilder):
        password = password.resource
    if password is None and builder.execution_context.is_publish_mode:
        password = create_default_password_parameter(builder, name, special=False)

    redis = RedisResource(name, password)

    def _args(context: CommandLineArgsCallbackContext) -> None:
        if redis.password is not None:
            context.args.extend(["--requirepass", redis.password])
        persistence = redis.annotations.try_get_last(RedisPersistenceAnnotation)
        if persistence is not None:
            context.args.extend(persistence.args)

    return (
        builder.add_resource(redis, RedisResourceBuilder)
        .with_endpoint(target_port=REDIS_PORT, port=port, name=PRIMARY_ENDPOINT_NAME)
        .with_image(REDIS_IMAGE, REDIS_TAG)
        .with_image_registry(REDIS_REGISTRY)
        .with_args(_args)
    )
