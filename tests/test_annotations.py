"""
Tests for the annotation store.
"""

from dataclasses import dataclass
from typing import ClassVar

import pytest

from apphost.model import (
    AnnotationMultiplicity,
    AnnotationStore,
    ContainerImageAnnotation,
    ContainerMountAnnotation,
    ContainerMountType,
    EndpointAnnotation,
    ResourceAnnotation,
)


@dataclass
class Tag(ResourceAnnotation):
    value: str


@dataclass
class SpecialTag(Tag):
    pass


@dataclass
class Setting(ResourceAnnotation):
    multiplicity: ClassVar[AnnotationMultiplicity] = AnnotationMultiplicity.SINGLETON

    value: int


class TestAdd:
    """Tests for add() and query_all()."""

    def test_query_all_preserves_insertion_order(self):
        """Same-kind annotations come back in the order they were added."""
        store = AnnotationStore()
        for value in ["c", "a", "b"]:
            store.add(Tag(value))

        assert [t.value for t in store.query_all(Tag)] == ["c", "a", "b"]

    def test_query_all_empty_is_not_an_error(self):
        """Querying a missing kind returns an empty tuple."""
        store = AnnotationStore()
        store.add(Tag("x"))

        assert store.query_all(Setting) == ()

    def test_query_matches_subclasses(self):
        """query_all uses isinstance semantics."""
        store = AnnotationStore()
        store.add(Tag("plain"))
        store.add(SpecialTag("special"))

        assert [t.value for t in store.query_all(Tag)] == ["plain", "special"]
        assert [t.value for t in store.query_all(SpecialTag)] == ["special"]

    def test_add_rejects_non_annotations(self):
        """Only ResourceAnnotation instances can be stored."""
        store = AnnotationStore()
        with pytest.raises(TypeError):
            store.add("not an annotation")

    def test_mutation_visible_immediately(self):
        """A later query sees an earlier add."""
        store = AnnotationStore()
        assert store.try_get_last(Tag) is None
        store.add(Tag("now"))
        assert store.try_get_last(Tag).value == "now"

    def test_len_iter_contains(self):
        store = AnnotationStore()
        first = store.add(Tag("a"))
        store.add(Setting(1))

        assert len(store) == 2
        assert first in store
        assert [a.kind for a in store] == ["Tag", "Setting"]


class TestTryGetLast:
    """Tests for try_get_last()."""

    def test_returns_most_recent(self):
        store = AnnotationStore()
        store.add(Tag("old"))
        store.add(Setting(1))
        store.add(Tag("new"))

        assert store.try_get_last(Tag).value == "new"

    def test_returns_none_when_absent(self):
        assert AnnotationStore().try_get_last(Tag) is None

    def test_try_get_annotations_of_type(self):
        """None instead of an empty tuple."""
        store = AnnotationStore()
        assert store.try_get_annotations_of_type(Tag) is None
        store.add(Tag("a"))
        assert len(store.try_get_annotations_of_type(Tag)) == 1


class TestReplaceOrAdd:
    """Tests for replace_or_add() and apply()."""

    def test_leaves_exactly_one_latest(self):
        """After any sequence of writes only the latest survives."""
        store = AnnotationStore()
        for value in range(5):
            store.add(Setting(value))
        store.replace_or_add(Setting(42))

        settings = store.query_all(Setting)
        assert len(settings) == 1
        assert settings[0].value == 42

    def test_does_not_touch_other_kinds(self):
        store = AnnotationStore()
        store.add(Tag("keep"))
        store.replace_or_add(Setting(1))
        store.replace_or_add(Setting(2))

        assert [t.value for t in store.query_all(Tag)] == ["keep"]

    def test_explicit_kind(self):
        """The kind to clear can be broader than the new annotation's type."""
        store = AnnotationStore()
        store.add(Tag("a"))
        store.add(SpecialTag("b"))
        store.replace_or_add(SpecialTag("c"), kind=Tag)

        assert [t.value for t in store.query_all(Tag)] == ["c"]

    def test_apply_honours_multiplicity(self):
        """Singleton kinds are replaced, multi kinds accumulate."""
        store = AnnotationStore()
        store.apply(Setting(1))
        store.apply(Setting(2))
        store.apply(Tag("a"))
        store.apply(Tag("b"))

        assert [s.value for s in store.query_all(Setting)] == [2]
        assert [t.value for t in store.query_all(Tag)] == ["a", "b"]

    def test_remove(self):
        store = AnnotationStore()
        tag = store.add(Tag("x"))
        assert store.remove(tag) is True
        assert store.remove(tag) is False
        assert len(store) == 0


class TestBuiltInAnnotations:
    """Tests for concrete annotation kinds."""

    def test_image_is_singleton(self):
        assert ContainerImageAnnotation.multiplicity is AnnotationMultiplicity.SINGLETON
        assert EndpointAnnotation.multiplicity is AnnotationMultiplicity.MULTI

    def test_full_image(self):
        image = ContainerImageAnnotation("library/redis", "7.4", registry="docker.io")
        assert image.full_image == "docker.io/library/redis:7.4"

    def test_full_image_with_digest(self):
        image = ContainerImageAnnotation("library/redis", "7.4", sha256="abc")
        assert image.full_image == "library/redis@sha256:abc"

    def test_mount_defaults_to_volume(self):
        mount = ContainerMountAnnotation("data", "/data")
        assert mount.type is ContainerMountType.VOLUME
        assert mount.is_read_only is False
