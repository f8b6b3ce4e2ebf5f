"""
Annotations and the per-resource annotation store.

An annotation is a small typed record of metadata attached to a resource:
an endpoint, a container image, a mount, an environment callback, a
manifest writer. Integrations define new kinds by subclassing
ResourceAnnotation; the store never needs to know about them.

Multiplicity:
    Each kind declares whether several instances may coexist (MULTI, the
    default) or whether the latest write wins (SINGLETON). The builder's
    with_annotation() honours that declaration, so two kinds that look
    alike cannot silently diverge in behaviour.

Store semantics:
    add()            append, insertion order preserved
    query_all()      ordered matches by isinstance, empty tuple if none
    try_get_last()   most recent match or None
    replace_or_add() drop every prior match of a kind, then append
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

if TYPE_CHECKING:
    from .cancellation import CancellationToken
    from .context import ExecutionContext
    from .resource import Resource


class AnnotationMultiplicity(str, Enum):
    """How many annotations of one kind a resource may carry."""

    MULTI = "multi"
    SINGLETON = "singleton"


class ResourceAnnotation:
    """
    Capability base for everything that can be attached to a resource.

    Subclasses are usually dataclasses. Override ``multiplicity`` to make a
    kind singleton-like.
    """

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.MULTI

    @property
    def kind(self) -> str:
        return type(self).__name__


A = TypeVar("A", bound=ResourceAnnotation)


class AnnotationStore:
    """
    Ordered bag of annotations owned by one resource.

    Example:
        store = AnnotationStore()
        store.add(ContainerMountAnnotation("data", "/data", ContainerMountType.VOLUME))
        mounts = store.query_all(ContainerMountAnnotation)
        image = store.try_get_last(ContainerImageAnnotation)
    """

    def __init__(self, annotations: list[ResourceAnnotation] | None = None) -> None:
        self._items: list[ResourceAnnotation] = []
        for annotation in annotations or []:
            self.add(annotation)

    def add(self, annotation: A) -> A:
        """Append an annotation and return it."""
        if not isinstance(annotation, ResourceAnnotation):
            raise TypeError(
                f"Annotations must derive from ResourceAnnotation, got {type(annotation).__name__}"
            )
        self._items.append(annotation)
        return annotation

    def replace_or_add(
        self,
        annotation: A,
        kind: type[ResourceAnnotation] | None = None,
    ) -> A:
        """
        Remove all annotations of ``kind`` then append ``annotation``.

        Args:
            annotation: The annotation to keep
            kind: Kind to clear (defaults to the annotation's own type)
        """
        kind = kind or type(annotation)
        self._items = [a for a in self._items if not isinstance(a, kind)]
        return self.add(annotation)

    def apply(self, annotation: A) -> A:
        """Add or replace depending on the annotation kind's multiplicity."""
        if annotation.multiplicity is AnnotationMultiplicity.SINGLETON:
            return self.replace_or_add(annotation)
        return self.add(annotation)

    def query_all(self, kind: type[A]) -> tuple[A, ...]:
        """All annotations of ``kind`` in insertion order."""
        return tuple(a for a in self._items if isinstance(a, kind))

    def try_get_last(self, kind: type[A]) -> A | None:
        """The most recently added annotation of ``kind``, or None."""
        for annotation in reversed(self._items):
            if isinstance(annotation, kind):
                return annotation
        return None

    def try_get_annotations_of_type(self, kind: type[A]) -> tuple[A, ...] | None:
        """Like query_all() but returns None instead of an empty tuple."""
        matches = self.query_all(kind)
        return matches or None

    def remove(self, annotation: ResourceAnnotation) -> bool:
        """Remove one specific annotation instance."""
        for index, existing in enumerate(self._items):
            if existing is annotation:
                del self._items[index]
                return True
        return False

    def __iter__(self) -> Iterator[ResourceAnnotation]:
        return iter(tuple(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, annotation: object) -> bool:
        return any(a is annotation for a in self._items)

    def __repr__(self) -> str:
        return f"AnnotationStore({[a.kind for a in self._items]})"


# =============================================================================
# Callback plumbing
# =============================================================================


async def invoke_callback(callback: Callable[[Any], Any], context: Any) -> None:
    """Invoke a sync or async annotation callback."""
    result = callback(context)
    if inspect.isawaitable(result):
        await result


# =============================================================================
# Container annotations
# =============================================================================


@dataclass
class ContainerImageAnnotation(ResourceAnnotation):
    """Container image reference: registry/image:tag (or @sha256 digest)."""

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    image: str
    tag: str | None = "latest"
    registry: str | None = None
    sha256: str | None = None

    @property
    def full_image(self) -> str:
        name = f"{self.registry}/{self.image}" if self.registry else self.image
        if self.sha256:
            return f"{name}@sha256:{self.sha256}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name


class ContainerMountType(str, Enum):
    VOLUME = "volume"
    BIND_MOUNT = "bind"


@dataclass
class ContainerMountAnnotation(ResourceAnnotation):
    """A named volume or host bind mount."""

    source: str | None
    target: str
    type: ContainerMountType = ContainerMountType.VOLUME
    is_read_only: bool = False


class ContainerLifetime(str, Enum):
    SESSION = "session"
    PERSISTENT = "persistent"


@dataclass
class ContainerLifetimeAnnotation(ResourceAnnotation):
    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    lifetime: ContainerLifetime = ContainerLifetime.SESSION


# =============================================================================
# Callback annotations
# =============================================================================


@dataclass
class CommandLineArgsCallbackContext:
    """
    Passed to argument callbacks.

    ``args`` holds plain strings or value providers; providers are resolved
    in run mode and rendered as placeholders in publish mode.
    """

    args: list[Any]
    execution_context: ExecutionContext | None = None
    cancellation: CancellationToken | None = None


@dataclass
class CommandLineArgsCallbackAnnotation(ResourceAnnotation):
    callback: Callable[[CommandLineArgsCallbackContext], Awaitable[None] | None]


@dataclass
class EnvironmentCallbackContext:
    """Passed to environment callbacks; values may be str or value providers."""

    execution_context: ExecutionContext
    environment_variables: dict[str, Any] = field(default_factory=dict)
    cancellation: CancellationToken | None = None


@dataclass
class EnvironmentCallbackAnnotation(ResourceAnnotation):
    callback: Callable[[EnvironmentCallbackContext], Awaitable[None] | None]

    @classmethod
    def for_value(cls, name: str, value: Any) -> "EnvironmentCallbackAnnotation":
        """Annotation that sets a single variable."""

        def _set(context: EnvironmentCallbackContext) -> None:
            context.environment_variables[name] = value

        return cls(_set)


@dataclass
class ManifestPublishingCallbackAnnotation(ResourceAnnotation):
    """
    Writer callback used by the manifest publisher.

    A callback of None excludes the resource from the manifest.
    """

    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    callback: Callable[[Any], Awaitable[None] | None] | None

    @classmethod
    def ignore(cls) -> "ManifestPublishingCallbackAnnotation":
        return cls(None)


# =============================================================================
# Graph edges
# =============================================================================


@dataclass(eq=False)
class ResourceRelationshipAnnotation(ResourceAnnotation):
    """A typed edge to another resource ("Reference", "Parent")."""

    resource: Resource
    relationship_type: str = "Reference"


class WaitType(str, Enum):
    WAIT_UNTIL_HEALTHY = "healthy"
    WAIT_FOR_COMPLETION = "completion"


@dataclass(eq=False)
class WaitAnnotation(ResourceAnnotation):
    resource: Resource
    wait_type: WaitType = WaitType.WAIT_UNTIL_HEALTHY
