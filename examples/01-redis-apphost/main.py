"""
Redis App Host Example

This example demonstrates run mode:
1. Declare a Redis cache with a password parameter and a data volume
2. Reference it from a project and add Redis Commander
3. Run the app: endpoints are allocated once and every resource is
   handed to a launcher with fully resolved arguments and environment

Run: APPHOST__Parameters__cache-pass=s3cret python examples/01-redis-apphost/main.py
"""

import asyncio
import logging

from apphost import DistributedApplicationBuilder, ExecutionContext
from apphost.hosting import AfterEndpointsAllocatedEvent, LoggingLauncher
from apphost.resources import add_redis

# =============================================================================
# Topology
# =============================================================================


def build_topology() -> DistributedApplicationBuilder:
    builder = DistributedApplicationBuilder(execution_context=ExecutionContext.run())

    password = builder.add_parameter("cache-pass", "dev-password", secret=True)
    cache = (
        add_redis(builder, "cache", password=password)
        .with_data_volume()
        .with_redis_commander()
    )
    (
        builder.add_project("api", "../api")
        .with_http_endpoint(target_port=8080)
        .with_reference(cache)
        .wait_for(cache)
    )

    async def print_connection(event: AfterEndpointsAllocatedEvent) -> None:
        print(f"cache connection string: {await cache.resource.get_connection_string()}")

    builder.eventing.subscribe(AfterEndpointsAllocatedEvent, print_connection)
    return builder


# =============================================================================
# Main
# =============================================================================


async def main():
    logging.basicConfig(level=logging.INFO)

    launcher = LoggingLauncher()
    app = build_topology().build(launcher=launcher)
    await app.run()

    print()
    for spec in launcher.started:
        print(f"{spec.kind} {spec.name}")
        print(f"  image: {spec.image or '-'}")
        print(f"  args: {spec.args}")
        print(f"  env: {sorted(spec.env)}")
        for name, endpoint in spec.endpoints.items():
            print(f"  {name}: {endpoint.url}")

    print()
    print(f"Phase timings: { {k: round(v, 2) for k, v in app.phase_timings.items()} }")


if __name__ == "__main__":
    asyncio.run(main())
