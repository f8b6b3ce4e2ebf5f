"""
The frozen application model produced by DistributedApplicationBuilder.build().

The model owns every registered resource in registration order. Parent
links between resources are references; the model answers graph queries
over them (ancestors, children, descendants) without copying anything.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TypeVar

from .resource import Resource

R = TypeVar("R", bound=Resource)


class DistributedApplicationModel:
    """
    Immutable, ordered view of the resources in an application.

    Example:
        model = builder.build().model
        for redis in model.of_type(RedisResource):
            ...
    """

    __slots__ = ("_resources", "_by_name")

    def __init__(self, resources: list[Resource] | tuple[Resource, ...]):
        self._resources: tuple[Resource, ...] = tuple(resources)
        self._by_name = {resource.name.lower(): resource for resource in self._resources}

    @property
    def resources(self) -> tuple[Resource, ...]:
        return self._resources

    def get(self, name: str) -> Resource | None:
        """Look up a resource by name (case-insensitive)."""
        return self._by_name.get(name.lower())

    def of_type(self, kind: type[R]) -> list[R]:
        return [resource for resource in self._resources if isinstance(resource, kind)]

    def ancestors(self, resource: Resource) -> list[Resource]:
        return list(resource.ancestors())

    def children(self, resource: Resource) -> list[Resource]:
        return [r for r in self._resources if r.parent is resource]

    def descendants(self, resource: Resource) -> list[Resource]:
        """All resources below ``resource``, in registration order."""
        return [r for r in self._resources if any(a is resource for a in r.ancestors())]

    def index_of(self, resource: Resource) -> int:
        for index, candidate in enumerate(self._resources):
            if candidate is resource:
                return index
        raise ValueError(f"Resource '{resource.name}' is not part of this model")

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, resource: object) -> bool:
        return any(r is resource for r in self._resources)

    def __repr__(self) -> str:
        return f"DistributedApplicationModel({[r.name for r in self._resources]})"
