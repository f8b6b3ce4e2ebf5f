"""
Azure Storage hosting integration.

    storage = add_storage(builder, "storage").run_as_emulator(
        lambda emulator: emulator.with_data_volume().with_blob_port(27000)
    )
    blobs = storage.add_blobs("blobs")
    builder.add_project("api", "../api").with_reference(blobs)

Publish mode:
    The account is an ``azure.bicep.v0`` entry. Connection strings are
    provisioning outputs (``{storage.outputs.blobEndpoint}``) and
    run_as_emulator() does nothing.

Run mode with the emulator:
    The account is served by an Azurite container with blob, queue and
    table endpoints (10000, 10001, 10002). Connection strings point at the
    allocated endpoints using the well-known development account.

Roles:
    Every compute resource that references the account is granted its
    default roles (blob, queue and table data contributor) unless it holds
    explicit roles through with_role_assignments(). Role assignments only
    appear in the manifest, as parameters for the deployer.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from apphost.hosting.builder import DistributedApplicationBuilder, ResourceBuilder
from apphost.model.annotations import (
    AnnotationMultiplicity,
    CommandLineArgsCallbackContext,
    ContainerImageAnnotation,
    ResourceAnnotation,
)
from apphost.model.endpoints import EndpointAnnotation, EndpointProperty, EndpointReference
from apphost.model.expressions import ReferenceExpression, ReferenceExpressionBuilder
from apphost.model.resource import ConnectionStringMixin, ContainerResource, Resource
from apphost.model.roles import DefaultRoleAssignmentsAnnotation, RoleDefinition
from apphost.provisioning import (
    EmulatorResourceAnnotation,
    OutputReference,
    ProvisioningResource,
    ResourceInfrastructure,
)

logger = logging.getLogger(__name__)

EMULATOR_REGISTRY = "mcr.microsoft.com"
EMULATOR_IMAGE = "azure-storage/azurite"
EMULATOR_TAG = "3.33.0"

EMULATOR_DATA_TARGET = "/data"

# Well-known Azurite development account.
EMULATOR_ACCOUNT_NAME = "devstoreaccount1"
EMULATOR_ACCOUNT_KEY = (
    "Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=="
)


@dataclass(frozen=True)
class _Service:
    name: str
    endpoint: str
    target_port: int
    output: str
    connection_key: str


BLOB = _Service("blob", "blob", 10000, "blobEndpoint", "BlobEndpoint")
QUEUE = _Service("queue", "queue", 10001, "queueEndpoint", "QueueEndpoint")
TABLE = _Service("table", "table", 10002, "tableEndpoint", "TableEndpoint")


class StorageBuiltInRole:
    """Built-in storage data-plane roles."""

    STORAGE_BLOB_DATA_CONTRIBUTOR = RoleDefinition(
        "StorageBlobDataContributor", "ba92f5b4-2d11-453d-a403-e96b0029c9fe"
    )
    STORAGE_BLOB_DATA_OWNER = RoleDefinition(
        "StorageBlobDataOwner", "b7e6dc6d-f1e8-4753-8033-0f276bb0955b"
    )
    STORAGE_BLOB_DATA_READER = RoleDefinition(
        "StorageBlobDataReader", "2a2b9908-6ea1-4ae2-8e65-a410df84e7d1"
    )
    STORAGE_QUEUE_DATA_CONTRIBUTOR = RoleDefinition(
        "StorageQueueDataContributor", "974c5e8b-45b9-4653-ba55-5f855dd0fb88"
    )
    STORAGE_QUEUE_DATA_READER = RoleDefinition(
        "StorageQueueDataReader", "19e7f393-937e-4f77-808e-94535e297925"
    )
    STORAGE_TABLE_DATA_CONTRIBUTOR = RoleDefinition(
        "StorageTableDataContributor", "0a9a7e1f-b9d0-4cc4-a60d-0319b160aaa3"
    )
    STORAGE_TABLE_DATA_READER = RoleDefinition(
        "StorageTableDataReader", "76199698-9eea-4c19-bc75-cec21354c6b6"
    )


DEFAULT_ROLES = frozenset(
    {
        StorageBuiltInRole.STORAGE_BLOB_DATA_CONTRIBUTOR,
        StorageBuiltInRole.STORAGE_QUEUE_DATA_CONTRIBUTOR,
        StorageBuiltInRole.STORAGE_TABLE_DATA_CONTRIBUTOR,
    }
)


# =============================================================================
# Annotations
# =============================================================================


@dataclass
class ApiVersionCheckAnnotation(ResourceAnnotation):
    """Whether Azurite validates the client API version."""

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    enabled: bool = True


# =============================================================================
# Resources
# =============================================================================


class AzureStorageResource(ConnectionStringMixin, ProvisioningResource):
    """A storage account; blob connection string by default."""

    def __init__(
        self,
        name: str,
        configure_infrastructure: Callable[[ResourceInfrastructure], None] | None = None,
    ):
        super().__init__(name, configure_infrastructure or _configure_storage)

    @property
    def blob_endpoint(self) -> EndpointReference:
        return EndpointReference(self, BLOB.endpoint)

    @property
    def queue_endpoint(self) -> EndpointReference:
        return EndpointReference(self, QUEUE.endpoint)

    @property
    def table_endpoint(self) -> EndpointReference:
        return EndpointReference(self, TABLE.endpoint)

    @property
    def connection_string_expression(self) -> ReferenceExpression:
        return self.service_connection_string(BLOB)

    def service_connection_string(self, service: _Service) -> ReferenceExpression:
        if not self.is_emulator:
            return ReferenceExpressionBuilder().append_value(
                OutputReference(self, service.output)
            ).build()

        endpoint = EndpointReference(self, service.endpoint)
        builder = ReferenceExpressionBuilder()
        builder.append_literal(
            f"DefaultEndpointsProtocol=http;AccountName={EMULATOR_ACCOUNT_NAME};"
            f"AccountKey={EMULATOR_ACCOUNT_KEY};{service.connection_key}=http://"
        )
        builder.append_value(endpoint.property(EndpointProperty.HOST))
        builder.append_literal(":")
        builder.append_value(endpoint.property(EndpointProperty.PORT))
        builder.append_literal(f"/{EMULATOR_ACCOUNT_NAME};")
        return builder.build()


class _StorageChildResource(ConnectionStringMixin, Resource):
    service: ClassVar[_Service]

    def __init__(self, name: str, storage: AzureStorageResource):
        super().__init__(name)
        self.set_parent(storage)
        self.storage = storage

    @property
    def connection_string_expression(self) -> ReferenceExpression:
        return self.storage.service_connection_string(self.service)


class AzureBlobStorageResource(_StorageChildResource):
    service = BLOB


class AzureQueueStorageResource(_StorageChildResource):
    service = QUEUE


class AzureTableStorageResource(_StorageChildResource):
    service = TABLE


class AzureStorageEmulatorResource(ContainerResource):
    """
    Container view of an emulated storage account.

    Shares the account's annotation store, so everything configured
    through it lands on the account itself.
    """

    def __init__(self, storage: AzureStorageResource):
        super().__init__(storage.name, annotations=storage.annotations)
        self.storage = storage


def _configure_storage(infrastructure: ResourceInfrastructure) -> None:
    infrastructure.properties.update(
        {
            "kind": "StorageV2",
            "sku": "Standard_GRS",
            "minimumTlsVersion": "TLS1_2",
            "allowSharedKeyAccess": False,
        }
    )
    for output in ("blobEndpoint", "queueEndpoint", "tableEndpoint", "name"):
        infrastructure.add_output(output)


# =============================================================================
# Builders
# =============================================================================


class AzureStorageResourceBuilder(ResourceBuilder[AzureStorageResource]):
    """Builder handle returned by add_storage()."""

    def run_as_emulator(
        self,
        configure: Callable[["AzureStorageEmulatorResourceBuilder"], Any] | None = None,
    ) -> "AzureStorageResourceBuilder":
        """
        Serve the account from a local Azurite container (run mode only).
        """
        if self.execution_context.is_publish_mode:
            return self

        storage = self.resource
        storage.annotations.replace_or_add(EmulatorResourceAnnotation())
        for service in (BLOB, QUEUE, TABLE):
            storage.annotations.add(
                EndpointAnnotation(name=service.endpoint, target_port=service.target_port, uri_scheme="http")
            )
        storage.annotations.replace_or_add(
            ContainerImageAnnotation(
                image=EMULATOR_IMAGE, tag=EMULATOR_TAG, registry=EMULATOR_REGISTRY
            )
        )

        def _args(context: CommandLineArgsCallbackContext) -> None:
            context.args.extend(
                [
                    "azurite",
                    "-l",
                    EMULATOR_DATA_TARGET,
                    "--blobHost",
                    "0.0.0.0",
                    "--queueHost",
                    "0.0.0.0",
                    "--tableHost",
                    "0.0.0.0",
                ]
            )
            check = storage.annotations.try_get_last(ApiVersionCheckAnnotation)
            if check is None or not check.enabled:
                context.args.append("--skipApiVersionCheck")

        emulator = self.application_builder.create_resource_builder(
            AzureStorageEmulatorResource(storage), AzureStorageEmulatorResourceBuilder
        )
        emulator.with_args(_args)
        logger.debug(f"[storage] '{storage.name}' runs as emulator")

        if configure is not None:
            configure(emulator)
        return self

    def add_blobs(self, name: str) -> ResourceBuilder[AzureBlobStorageResource]:
        return self.application_builder.add_resource(AzureBlobStorageResource(name, self.resource))

    def add_queues(self, name: str) -> ResourceBuilder[AzureQueueStorageResource]:
        return self.application_builder.add_resource(AzureQueueStorageResource(name, self.resource))

    def add_tables(self, name: str) -> ResourceBuilder[AzureTableStorageResource]:
        return self.application_builder.add_resource(AzureTableStorageResource(name, self.resource))

    def with_default_role_assignments(self, *roles: RoleDefinition) -> "AzureStorageResourceBuilder":
        """Replace the roles granted to referencing resources."""
        self.resource.annotations.add(DefaultRoleAssignmentsAnnotation(frozenset(roles)))
        return self

    def remove_default_role_assignments(self) -> "AzureStorageResourceBuilder":
        """Referencing resources get no roles unless granted explicitly."""
        self.resource.annotations.add(DefaultRoleAssignmentsAnnotation(frozenset()))
        return self


class AzureStorageEmulatorResourceBuilder(ResourceBuilder[AzureStorageEmulatorResource]):
    """Builder for the emulator container; passed to run_as_emulator's callback."""

    def with_data_volume(self, name: str | None = None, is_read_only: bool = False) -> "AzureStorageEmulatorResourceBuilder":
        volume = name or self.application_builder.generate_volume_name(self.resource, "data")
        return self.with_volume(volume, EMULATOR_DATA_TARGET, is_read_only)

    def with_data_bind_mount(self, path: str | None = None, is_read_only: bool = False) -> "AzureStorageEmulatorResourceBuilder":
        return self.with_bind_mount(
            path or f".azurite/{self.resource.name}", EMULATOR_DATA_TARGET, is_read_only
        )

    def _with_service_port(self, service: _Service, port: int | None) -> "AzureStorageEmulatorResourceBuilder":
        for endpoint in self.resource.endpoints:
            if endpoint.name == service.endpoint:
                endpoint.port = port
        return self

    def with_blob_port(self, port: int | None) -> "AzureStorageEmulatorResourceBuilder":
        return self._with_service_port(BLOB, port)

    def with_queue_port(self, port: int | None) -> "AzureStorageEmulatorResourceBuilder":
        return self._with_service_port(QUEUE, port)

    def with_table_port(self, port: int | None) -> "AzureStorageEmulatorResourceBuilder":
        return self._with_service_port(TABLE, port)

    def with_api_version_check(self, enable: bool = True) -> "AzureStorageEmulatorResourceBuilder":
        return self.with_annotation(ApiVersionCheckAnnotation(enable))


# =============================================================================
# Entry points
# =============================================================================


def add_storage(builder: DistributedApplicationBuilder, name: str) -> AzureStorageResourceBuilder:
    """
    Add a storage account.

    Referencing compute resources receive blob, queue and table data
    contributor roles unless configured otherwise.
    """
    storage = builder.add_resource(AzureStorageResource(name), AzureStorageResourceBuilder)
    storage.with_annotation(DefaultRoleAssignmentsAnnotation(DEFAULT_ROLES))
    return storage


def with_role_assignments(
    compute: ResourceBuilder,
    destination: (
        AzureStorageResourceBuilder
        | ResourceBuilder[_StorageChildResource]
        | AzureStorageResource
        | _StorageChildResource
    ),
    *roles: RoleDefinition,
) -> ResourceBuilder:
    """
    Grant ``compute`` ``roles`` on ``destination``, replacing the defaults.

    ``destination`` may be the account or one of its blob, queue or table
    resources; grants always land on the account and accumulate.
    """
    return compute.with_role_assignments(destination, *roles)
