"""
Endpoint allocation.

Allocation happens once per application, after build() and before any
resource starts:

1. Endpoints that are already allocated (fixed externally) are skipped;
   their ports are reserved so nothing else is handed the same port.
2. Endpoints with a requested host port get exactly that port.
3. Every other endpoint gets the next free port from the dynamic range.

Resources are visited in registration order, endpoints in declaration
order, so dynamic port assignment is deterministic for a given model.
"""

from __future__ import annotations

import logging

from apphost.model.application import DistributedApplicationModel
from apphost.model.endpoints import AllocatedEndpoint, EndpointAnnotation
from apphost.model.errors import AllocationReuseError, PortConflictError
from apphost.model.resource import Resource

logger = logging.getLogger(__name__)


class PortAllocator:
    """
    Hands out host ports.

    Example:
        ports = PortAllocator(start=5000)
        ports.reserve(6379, owner="cache.tcp")
        ports.next_port()  # 5000
    """

    def __init__(self, start: int = 5000, end: int = 65535):
        if not 0 < start <= end <= 65535:
            raise ValueError(f"Invalid dynamic port range {start}-{end}")
        self._start = start
        self._end = end
        self._next = start
        self._owners: dict[int, str] = {}

    def reserve(self, port: int, owner: str) -> int:
        """
        Claim a specific port.

        Raises:
            PortConflictError: If the port is already claimed
        """
        existing = self._owners.get(port)
        if existing is not None:
            raise PortConflictError(
                f"Port {port} requested by '{owner}' is already used by '{existing}'"
            )
        self._owners[port] = owner
        return port

    def next_port(self, owner: str = "") -> int:
        """The lowest unclaimed port at or above the cursor."""
        port = self._next
        while port in self._owners:
            port += 1
        if port > self._end:
            raise PortConflictError(f"Dynamic port range {self._start}-{self._end} is exhausted")
        self._owners[port] = owner
        self._next = port + 1
        return port

    def release(self, port: int) -> None:
        """Give a claimed port back; dynamic ports become available again."""
        self._owners.pop(port, None)
        if self._start <= port < self._next:
            self._next = port

    def is_reserved(self, port: int) -> bool:
        return port in self._owners


class EndpointAllocator:
    """
    Assigns an AllocatedEndpoint to every declared endpoint in a model.

    Args:
        default_host: Address every endpoint is bound to
        container_host: Name containers use to reach the host
        ports: Port source (defaults to a fresh PortAllocator)
    """

    def __init__(
        self,
        default_host: str = "localhost",
        container_host: str | None = None,
        ports: PortAllocator | None = None,
    ):
        self.default_host = default_host
        self.container_host = container_host or default_host
        self.ports = ports or PortAllocator()
        self._completed = False

    @property
    def completed(self) -> bool:
        return self._completed

    def allocate(self, model: DistributedApplicationModel) -> list[AllocatedEndpoint]:
        """
        Run the allocation phase.

        Raises:
            AllocationReuseError: If the phase already ran
            PortConflictError: If two endpoints request the same host port
        """
        if self._completed:
            raise AllocationReuseError("Endpoints have already been allocated for this application")

        claimed: list[int] = []
        planned: list[tuple[str, EndpointAnnotation, int]] = []
        try:
            pending: list[tuple[Resource, EndpointAnnotation]] = []
            for resource in model.resources:
                for endpoint in resource.endpoints:
                    owner = f"{resource.name}.{endpoint.name}"
                    if endpoint.is_allocated:
                        logger.debug(f"[allocator] {owner} was allocated externally, skipping")
                        claimed.append(self.ports.reserve(endpoint.allocated_endpoint.port, owner))
                        continue
                    if endpoint.port is not None:
                        claimed.append(self.ports.reserve(endpoint.port, owner))
                    pending.append((resource, endpoint))

            for resource, endpoint in pending:
                owner = f"{resource.name}.{endpoint.name}"
                if endpoint.port is not None:
                    port = endpoint.port
                else:
                    port = self.ports.next_port(owner)
                    claimed.append(port)
                planned.append((owner, endpoint, port))
        except PortConflictError:
            # Nothing is allocated unless every port could be claimed
            for port in reversed(claimed):
                self.ports.release(port)
            raise

        allocated: list[AllocatedEndpoint] = []
        for owner, endpoint, port in planned:
            allocated.append(endpoint.allocate(self.default_host, port, self.container_host))
            logger.debug(f"[allocator] {owner} -> {self.default_host}:{port}")

        self._completed = True
        logger.info(f"[allocator] Allocated {len(allocated)} endpoint(s)")
        return allocated
