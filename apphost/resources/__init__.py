"""
Hosting integrations built on the application model.

Each module adds an ``add_<kind>(builder, name, ...)`` entry point and a
ResourceBuilder subclass with kind-specific methods.
"""

from .redis import (
    RedisCommanderConfigWriterHook,
    RedisCommanderResource,
    RedisCommanderResourceBuilder,
    RedisHostsEnvironmentAnnotation,
    RedisPersistenceAnnotation,
    RedisResource,
    RedisResourceBuilder,
    add_redis,
)
from .seq import SeqResource, SeqResourceBuilder, add_seq
from .storage import (
    ApiVersionCheckAnnotation,
    AzureBlobStorageResource,
    AzureQueueStorageResource,
    AzureStorageEmulatorResource,
    AzureStorageEmulatorResourceBuilder,
    AzureStorageResource,
    AzureStorageResourceBuilder,
    AzureTableStorageResource,
    StorageBuiltInRole,
    add_storage,
    with_role_assignments,
)

__all__ = [
    # Redis
    "RedisCommanderConfigWriterHook",
    "RedisCommanderResource",
    "RedisCommanderResourceBuilder",
    "RedisHostsEnvironmentAnnotation",
    "RedisPersistenceAnnotation",
    "RedisResource",
    "RedisResourceBuilder",
    "add_redis",
    # Seq
    "SeqResource",
    "SeqResourceBuilder",
    "add_seq",
    # Storage
    "ApiVersionCheckAnnotation",
    "AzureBlobStorageResource",
    "AzureQueueStorageResource",
    "AzureStorageEmulatorResource",
    "AzureStorageEmulatorResourceBuilder",
    "AzureStorageResource",
    "AzureStorageResourceBuilder",
    "AzureTableStorageResource",
    "StorageBuiltInRole",
    "add_storage",
    "with_role_assignments",
]
