"""
Exceptions for the apphost application model.

Every error raised by the core derives from AppHostError so callers can
catch the whole family at once. None of these are retried by the core:
they report lifecycle or configuration bugs, not transient conditions.

Cancellation is deliberately absent from this module. A cancelled
resolution raises asyncio.CancelledError, never one of these.
"""

from __future__ import annotations


class AppHostError(Exception):
    """Base exception for application model errors."""

    def __init__(self, message: str, *, resource_name: str | None = None):
        super().__init__(message)
        self.resource_name = resource_name

    def __str__(self) -> str:
        if self.resource_name:
            return f"[{self.resource_name}] {self.args[0]}"
        return str(self.args[0])


class DuplicateNameError(AppHostError):
    """Raised by build() when two resources share a name."""


class CyclicGraphError(AppHostError):
    """Raised when a parent link would make a resource its own ancestor."""


class MissingValueError(AppHostError):
    """
    Raised when a value is requested before its producer can supply it.

    Typical causes are an endpoint that has not been allocated yet or a
    parameter with neither a configured value nor a default.
    """


class AllocationReuseError(AppHostError):
    """Raised when an endpoint, or the whole model, is allocated twice."""


class PortConflictError(AppHostError):
    """Raised when two endpoints request the same host port."""


class ExpressionSyntaxError(AppHostError, ValueError):
    """Raised when a reference expression uses an unsupported placeholder path."""
