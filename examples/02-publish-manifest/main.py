"""
Publish Manifest Example

This example demonstrates publish mode:
1. Declare a cache, a storage account and a project that uses both
2. Publish: nothing starts, nothing is resolved, and the manifest holds
   placeholder expressions plus role assignments for the deployer

Run: python examples/02-publish-manifest/main.py [manifest.json]
"""

import asyncio
import json
import sys

from apphost import DistributedApplicationBuilder, ExecutionContext
from apphost.resources import StorageBuiltInRole, add_redis, add_seq, add_storage, with_role_assignments


async def main():
    builder = DistributedApplicationBuilder(execution_context=ExecutionContext.publish())

    cache = add_redis(builder, "cache").with_data_volume()
    seq = add_seq(builder, "seq")
    storage = add_storage(builder, "storage")
    blobs = storage.add_blobs("blobs")

    api = (
        builder.add_project("api", "../api/api.csproj")
        .with_http_endpoint()
        .with_external_http_endpoints()
        .with_reference(cache)
        .with_reference(seq)
        .with_reference(blobs)
    )
    with_role_assignments(api, storage, StorageBuiltInRole.STORAGE_BLOB_DATA_READER)

    app = builder.build()
    path = sys.argv[1] if len(sys.argv) > 1 else None
    manifest = await app.publish_manifest(path)

    if path:
        print(f"Wrote {path}")
    else:
        print(json.dumps(manifest, indent=2))


if __name__ == "__main__":
    asyncio.run(main())
