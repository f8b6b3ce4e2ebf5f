"""
Hosting: building, running and publishing an application topology.
"""

from .allocation import EndpointAllocator, PortAllocator
from .application import DistributedApplication
from .builder import (
    DistributedApplicationBuilder,
    ResourceBuilder,
    create_default_password_parameter,
)
from .environment import EnvironmentVariableEvaluator
from .launcher import LaunchSpec, LoggingLauncher, ResourceLauncher
from .lifecycle import (
    AfterEndpointsAllocatedEvent,
    AfterResourcesCreatedEvent,
    BeforeResourceStartedEvent,
    BeforeStartEvent,
    EventBus,
    LifecycleEvent,
    LifecycleHook,
    Subscription,
)

__all__ = [
    # Allocation
    "EndpointAllocator",
    "PortAllocator",
    # Application
    "DistributedApplication",
    "DistributedApplicationBuilder",
    "ResourceBuilder",
    "create_default_password_parameter",
    "EnvironmentVariableEvaluator",
    # Launching
    "LaunchSpec",
    "LoggingLauncher",
    "ResourceLauncher",
    # Lifecycle
    "AfterEndpointsAllocatedEvent",
    "AfterResourcesCreatedEvent",
    "BeforeResourceStartedEvent",
    "BeforeStartEvent",
    "EventBus",
    "LifecycleEvent",
    "LifecycleHook",
    "Subscription",
]
