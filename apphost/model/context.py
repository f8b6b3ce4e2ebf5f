"""
Execution context for apphost.

The execution context records whether the application is being run
(start local processes and containers) or published (emit a manifest,
start nothing). It is fixed when the builder is created and passed
explicitly to every component that behaves differently between the two.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DistributedApplicationOperation(str, Enum):
    """The two ways an application model can be consumed."""

    RUN = "run"
    PUBLISH = "publish"


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """
    Immutable run/publish flag shared by the builder and everything it creates.

    Example:
        ctx = ExecutionContext.publish()
        if ctx.is_publish_mode:
            ...
    """

    operation: DistributedApplicationOperation = DistributedApplicationOperation.RUN

    @property
    def is_run_mode(self) -> bool:
        return self.operation is DistributedApplicationOperation.RUN

    @property
    def is_publish_mode(self) -> bool:
        return self.operation is DistributedApplicationOperation.PUBLISH

    @classmethod
    def run(cls) -> "ExecutionContext":
        return cls(DistributedApplicationOperation.RUN)

    @classmethod
    def publish(cls) -> "ExecutionContext":
        return cls(DistributedApplicationOperation.PUBLISH)

    def __str__(self) -> str:
        return self.operation.value
