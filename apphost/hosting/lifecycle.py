"""
Lifecycle events, the event bus and lifecycle hooks.

Run mode executes a fixed, ordered phase list:

    BeforeStartEvent
        -> endpoint allocation (every endpoint, exactly once)
    AfterEndpointsAllocatedEvent
        -> BeforeResourceStartedEvent per resource, registration order
    AfterResourcesCreatedEvent

Subscribers and hooks run sequentially, awaited one at a time in the
order they were registered. AfterEndpointsAllocatedEvent is published only
after the whole model has been allocated, so its subscribers can resolve
any endpoint without hitting MissingValueError.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from apphost.model.annotations import invoke_callback
from apphost.model.cancellation import CancellationToken, ensure_token

if TYPE_CHECKING:
    from apphost.model.application import DistributedApplicationModel
    from apphost.model.context import ExecutionContext
    from apphost.model.resource import Resource

logger = logging.getLogger(__name__)


# =============================================================================
# Events
# =============================================================================


@dataclass
class LifecycleEvent:
    """Base class for events published on the EventBus."""

    model: DistributedApplicationModel
    cancellation: CancellationToken = field(default_factory=CancellationToken.none)

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass
class BeforeStartEvent(LifecycleEvent):
    execution_context: ExecutionContext | None = None


@dataclass
class AfterEndpointsAllocatedEvent(LifecycleEvent):
    pass


@dataclass
class BeforeResourceStartedEvent(LifecycleEvent):
    resource: Resource | None = None


@dataclass
class AfterResourcesCreatedEvent(LifecycleEvent):
    pass


E = TypeVar("E", bound=LifecycleEvent)

EventCallback = Callable[[Any], Awaitable[None] | None]


@dataclass(frozen=True, slots=True)
class Subscription:
    event_type: type[LifecycleEvent]
    callback: EventCallback
    resource: Resource | None = None


class EventBus:
    """
    Ordered publish/subscribe for lifecycle events.

    Example:
        bus = EventBus()
        bus.subscribe(AfterEndpointsAllocatedEvent, write_config)
        await bus.publish(AfterEndpointsAllocatedEvent(model))
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        event_type: type[E],
        callback: Callable[[E], Awaitable[None] | None],
        resource: Resource | None = None,
    ) -> Subscription:
        """
        Register a callback.

        Args:
            event_type: Event class to listen for (subclasses match too)
            callback: Sync or async callable receiving the event
            resource: Only deliver resource-scoped events for this resource
        """
        subscription = Subscription(event_type, callback, resource)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            return False
        return True

    async def publish(self, event: LifecycleEvent) -> None:
        """Await every matching subscriber in subscription order."""
        token = ensure_token(event.cancellation)
        matching = [s for s in self._subscriptions if self._matches(s, event)]
        logger.debug(f"[events] Publishing {event.event_type} to {len(matching)} subscriber(s)")

        for subscription in matching:
            token.throw_if_cancellation_requested()
            await invoke_callback(subscription.callback, event)

    @staticmethod
    def _matches(subscription: Subscription, event: LifecycleEvent) -> bool:
        if not isinstance(event, subscription.event_type):
            return False
        if subscription.resource is None:
            return True
        return getattr(event, "resource", None) is subscription.resource

    def __len__(self) -> int:
        return len(self._subscriptions)


# =============================================================================
# Hooks
# =============================================================================


class LifecycleHook:
    """
    Base class for hooks that react to the run-mode phases.

    Hooks are registered on the builder with add_lifecycle_hook() and run in
    registration order. All methods are no-ops by default.
    """

    async def before_start(
        self,
        model: DistributedApplicationModel,
        cancellation: CancellationToken | None = None,
    ) -> None:
        pass

    async def after_endpoints_allocated(
        self,
        model: DistributedApplicationModel,
        cancellation: CancellationToken | None = None,
    ) -> None:
        pass

    async def after_resources_created(
        self,
        model: DistributedApplicationModel,
        cancellation: CancellationToken | None = None,
    ) -> None:
        pass

    @property
    def name(self) -> str:
        return type(self).__name__
