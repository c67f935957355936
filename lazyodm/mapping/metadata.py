"""Mapping metadata for documents."""

import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from lazyodm.common.errors import InvalidArgumentError, MappingError
from lazyodm.proxy.resolver import ProxyClassNameResolver
from lazyodm.proxy.runtime import install_serialize_fields

logger = logging.getLogger("lazyodm.mapping")


def class_name_of(cls: type) -> str:
    """Return the dotted ``module.qualname`` of a class."""
    return f"{cls.__module__}.{cls.__qualname__}"


@dataclass
class ClassMetadata:
    """Describes how a document class is mapped.

    Field and association names are instance attribute names as stored on the
    object, so a mapped private attribute ``__token`` declared in ``Account``
    is listed as ``_Account__token``.
    """

    document_class: type
    identifier: list[str] = field(default_factory=lambda: ["id"])
    fields: list[str] = field(default_factory=list)
    associations: dict[str, str] = field(default_factory=dict)
    collection: Optional[str] = None
    is_mapped_superclass: bool = False
    is_embedded_document: bool = False
    is_abstract: bool = False

    def __post_init__(self) -> None:
        if self.collection is None:
            self.collection = self.document_class.__name__
        # Identifier fields are persistent fields too
        for name in reversed(self.identifier):
            if name not in self.fields:
                self.fields.insert(0, name)
        overlap = set(self.fields) & set(self.associations)
        if overlap:
            raise MappingError(f"{self.name}: {sorted(overlap)} mapped both as field and association")

    @property
    def name(self) -> str:
        return class_name_of(self.document_class)

    @property
    def source_file(self) -> Optional[str]:
        """File defining the document class, if any."""
        try:
            return inspect.getsourcefile(self.document_class)
        except TypeError:
            return None

    def is_abstract_class(self) -> bool:
        return self.is_abstract or inspect.isabstract(self.document_class)

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def has_association(self, name: str) -> bool:
        return name in self.associations

    def is_mapped(self, name: str) -> bool:
        return self.has_field(name) or self.has_association(name)

    def is_identifier(self, name: str) -> bool:
        return name in self.identifier

    @property
    def mapped_names(self) -> list[str]:
        return [*self.fields, *self.associations]

    def normalize_identifier(self, identifier: Any) -> Mapping[str, Any]:
        """Turn a scalar or mapping into a read-only identifier mapping.

        A scalar is accepted for single-field identifiers. Keys outside the
        identifier are dropped; the result keeps the identifier field order.
        """
        if not isinstance(identifier, Mapping):
            if len(self.identifier) != 1:
                raise InvalidArgumentError.missing_primary_key_value(self.name, self.identifier[-1])
            identifier = {self.identifier[0]: identifier}

        values: dict[str, Any] = {}
        for name in self.identifier:
            if name not in identifier:
                raise InvalidArgumentError.missing_primary_key_value(self.name, name)
            values[name] = identifier[name]
        return MappingProxyType(values)

    def identifier_from_document(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        """Extract the identifier from a raw stored document."""
        return self.normalize_identifier(data)

    def identity_key(self, identifier: Mapping[str, Any]) -> tuple:
        return tuple(identifier[name] for name in self.identifier)

    def new_instance(self) -> Any:
        """Allocate an instance without running ``__init__``."""
        return object.__new__(self.document_class)


class ClassMetadataFactory:
    """Registry of ClassMetadata keyed by class name.

    Usage:
        factory = ClassMetadataFactory()
        factory.map_document(User, fields=["name"])
        factory.get_metadata_for(User)
    """

    def __init__(self, resolver: Optional[ProxyClassNameResolver] = None) -> None:
        self._metadata: dict[str, ClassMetadata] = {}
        self._resolver = resolver or ProxyClassNameResolver()

    def register(self, metadata: ClassMetadata) -> ClassMetadata:
        install_serialize_fields(metadata.document_class)
        self._metadata[metadata.name] = metadata
        logger.debug("Mapped %s (collection=%s)", metadata.name, metadata.collection)
        return metadata

    def map_document(self, document_class: type, **mapping: Any) -> ClassMetadata:
        """Build and register metadata for ``document_class``."""
        return self.register(ClassMetadata(document_class, **mapping))

    def _key(self, class_or_name: Union[type, str]) -> str:
        name = class_or_name if isinstance(class_or_name, str) else class_name_of(class_or_name)
        return self._resolver.resolve_class_name(name)

    def has_metadata_for(self, class_or_name: Union[type, str]) -> bool:
        return self._key(class_or_name) in self._metadata

    def get_metadata_for(self, class_or_name: Union[type, str]) -> ClassMetadata:
        """Return metadata for a class, a class name, or a proxy class."""
        key = self._key(class_or_name)
        try:
            return self._metadata[key]
        except KeyError:
            raise MappingError.class_is_not_mapped(key) from None

    def get_all_metadata(self) -> list[ClassMetadata]:
        return list(self._metadata.values())

    def __len__(self) -> int:
        return len(self._metadata)
