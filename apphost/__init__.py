"""
apphost - declarative topologies of containers, projects and cloud resources.

apphost lets you describe an application as a graph of resources, attach
typed annotations to them through a fluent builder, and then either:

- **Run** it: allocate endpoints once, fire ordered lifecycle phases and
  hand fully resolved launch specs to a launcher
- **Publish** it: emit a JSON manifest of placeholder expressions for
  deployment tooling, without starting anything or reading any secret

Quick Start:
    >>> from apphost import DistributedApplicationBuilder, ExecutionContext
    >>> from apphost.resources import add_redis
    >>>
    >>> builder = DistributedApplicationBuilder(execution_context=ExecutionContext.publish())
    >>> cache = add_redis(builder, "cache")
    >>> builder.add_project("api", "../api").with_reference(cache)
    >>> manifest = await builder.build().publish_manifest()
"""

__version__ = "0.1.0"

from apphost.hosting import (
    DistributedApplication,
    DistributedApplicationBuilder,
    LifecycleHook,
    ResourceBuilder,
)
from apphost.model import (
    AppHostError,
    ExecutionContext,
    ReferenceExpression,
    Resource,
    literal,
    reference,
)

__all__ = [
    "__version__",
    "AppHostError",
    "DistributedApplication",
    "DistributedApplicationBuilder",
    "ExecutionContext",
    "LifecycleHook",
    "ReferenceExpression",
    "Resource",
    "ResourceBuilder",
    "literal",
    "reference",
]
