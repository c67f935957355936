"""Declared-state enumeration and skip-set computation for proxies.

Python keeps private (``__name``) attributes in per-class slots by mangling
them to ``_Declaring__name``; public and protected attributes share one slot
however many classes declare them. The qualified name of a field is therefore
its storage key, which keeps a subclass's ``__token`` apart from a base
class's ``__token`` while collapsing redeclared public attributes.
"""

import inspect
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator

from lazyodm.mapping.metadata import ClassMetadata, class_name_of
from lazyodm.proxy.runtime import InternalProxy


class Visibility(str, Enum):
    """Naming-convention visibility of an attribute."""

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


@dataclass(frozen=True)
class FieldDescriptor:
    """An attribute declared by a class through annotations or ``__slots__``."""

    declaring_class: str
    declaring_short_name: str
    name: str
    visibility: Visibility
    is_static: bool = False
    is_slot: bool = False

    @property
    def qualified_name(self) -> str:
        """Storage key of the attribute on an instance."""
        if self.visibility is Visibility.PRIVATE:
            return _mangle(self.declaring_short_name, self.name)
        return self.name


def _mangle(class_name: str, name: str) -> str:
    stripped = class_name.lstrip("_")
    if not stripped:
        return name
    return f"_{stripped}{name}"


def _is_private(name: str) -> bool:
    return name.startswith("__") and not name.endswith("__")


def _visibility(name: str) -> Visibility:
    if _is_private(name):
        return Visibility.PRIVATE
    if name.startswith("_"):
        return Visibility.PROTECTED
    return Visibility.PUBLIC


def _is_class_var(annotation: Any) -> bool:
    annotation = getattr(annotation, "__forward_arg__", annotation)
    if isinstance(annotation, str):
        head = annotation.split("[", 1)[0].strip()
        return head in ("ClassVar", "typing.ClassVar")
    return annotation is typing.ClassVar or typing.get_origin(annotation) is typing.ClassVar


def _unmangle(klass: type, key: str) -> str:
    """Recover the declared name of an annotation key (``_A__x`` -> ``__x``)."""
    prefix = f"_{klass.__name__.lstrip('_')}__"
    if klass.__name__.lstrip("_") and key.startswith(prefix) and not key.endswith("__"):
        return "__" + key[len(prefix) :]
    return key


def _own_annotations(klass: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(klass)
    except NameError:
        # Unresolvable forward references on interpreters with deferred annotations
        import annotationlib

        return annotationlib.get_annotations(klass, format=annotationlib.Format.FORWARDREF)


def _own_slots(klass: type) -> list[str]:
    slots = klass.__dict__.get("__slots__", ())
    if isinstance(slots, str):
        slots = (slots,)
    return [name for name in slots if name not in ("__dict__", "__weakref__")]


def _declared_by(klass: type) -> Iterator[FieldDescriptor]:
    owner = class_name_of(klass)
    seen: set[str] = set()

    for name in _own_slots(klass):
        seen.add(name)
        yield FieldDescriptor(owner, klass.__name__, name, _visibility(name), is_slot=True)

    for key, annotation in _own_annotations(klass).items():
        name = _unmangle(klass, key)
        if name in seen:
            continue
        seen.add(name)
        yield FieldDescriptor(owner, klass.__name__, name, _visibility(name), is_static=_is_class_var(annotation))


def iter_declared_fields(cls: type) -> Iterator[FieldDescriptor]:
    """Yield the declared state of ``cls`` and its ancestors, most-derived first.

    Fields are unique by qualified name; the most-derived declaration wins.
    """
    seen: set[str] = set()
    for klass in cls.__mro__:
        if klass is object or klass is InternalProxy:
            continue
        for descriptor in _declared_by(klass):
            if descriptor.qualified_name in seen:
                continue
            seen.add(descriptor.qualified_name)
            yield descriptor


def build_skip_set(metadata: ClassMetadata) -> frozenset[str]:
    """Qualified names of declared fields the mapping does not manage.

    Static (``ClassVar``) attributes and mapped fields or associations are
    left out; everything else is plain object state that proxy loading must
    not touch.
    """
    skipped = set()
    for descriptor in iter_declared_fields(metadata.document_class):
        if descriptor.is_static or metadata.is_mapped(descriptor.qualified_name):
            continue
        skipped.add(descriptor.qualified_name)
    return frozenset(skipped)


def lazy_keys(metadata: ClassMetadata, skipped: frozenset[str]) -> tuple[str, ...]:
    """Storage keys guarded by lazy loading: mapped, not skipped, not identifiers."""
    return tuple(
        name for name in metadata.mapped_names if name not in skipped and not metadata.is_identifier(name)
    )
