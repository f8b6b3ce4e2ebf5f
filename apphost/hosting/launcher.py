"""
Launcher interface used in run mode.

Starting real processes or containers is out of scope for apphost; a
ResourceLauncher receives a fully resolved LaunchSpec and does whatever
the host environment needs. LoggingLauncher only records and logs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from apphost.model.endpoints import AllocatedEndpoint

logger = logging.getLogger(__name__)


@dataclass
class LaunchSpec:
    """
    Everything needed to start one resource.

    All values are resolved; nothing in a LaunchSpec is a placeholder.
    """

    name: str
    kind: str
    image: str | None = None
    entrypoint: str | None = None
    path: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    endpoints: dict[str, AllocatedEndpoint] = field(default_factory=dict)
    mounts: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging; argument and environment values are masked."""
        return {
            "name": self.name,
            "kind": self.kind,
            "image": self.image,
            "entrypoint": self.entrypoint,
            "path": self.path,
            "args": ["***" for _ in self.args],
            "env": {key: "***" for key in self.env},
            "endpoints": {
                name: endpoint.endpoint_name_and_port
                for name, endpoint in self.endpoints.items()
            },
            "mounts": list(self.mounts),
        }


@runtime_checkable
class ResourceLauncher(Protocol):
    """Starts a resource from a LaunchSpec (run mode only)."""

    async def start(self, spec: LaunchSpec) -> None: ...


class LoggingLauncher:
    """Launcher that starts nothing and remembers what it was asked to start."""

    def __init__(self) -> None:
        self.started: list[LaunchSpec] = []

    async def start(self, spec: LaunchSpec) -> None:
        self.started.append(spec)
        logger.info(
            f"[launcher] Would start {spec.kind} '{spec.name}'"
            + (f" image={spec.image}" if spec.image else "")
            + (f" path={spec.path}" if spec.path else "")
        )
        logger.debug(f"[launcher] {spec.to_dict()}")
