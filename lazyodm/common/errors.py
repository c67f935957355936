"""Exceptions raised by lazyodm."""

from typing import Any, Mapping


class LazyODMError(Exception):
    """Base class for lazyodm errors."""


class InvalidArgumentError(LazyODMError, ValueError):
    """Invalid configuration or argument."""

    @classmethod
    def proxy_directory_required(cls) -> "InvalidArgumentError":
        return cls("You must configure a proxy directory. See docs for details")

    @classmethod
    def proxy_namespace_required(cls) -> "InvalidArgumentError":
        return cls("You must configure a proxy namespace")

    @classmethod
    def proxy_directory_not_writable(cls, proxy_directory: Any) -> "InvalidArgumentError":
        return cls(f'Your proxy directory "{proxy_directory}" must be writable')

    @classmethod
    def invalid_auto_generate_mode(cls, value: Any) -> "InvalidArgumentError":
        shown = value if isinstance(value, (str, int, float, bool)) else type(value).__name__
        return cls(f'Invalid auto generate mode "{shown}" given.')

    @classmethod
    def missing_primary_key_value(cls, class_name: str, id_field: str) -> "InvalidArgumentError":
        return cls(f"Missing value for primary key {id_field} on {class_name}")


class MappingError(LazyODMError):
    """A class is not mapped or its mapping is inconsistent."""

    @classmethod
    def class_is_not_mapped(cls, class_name: str) -> "MappingError":
        return cls(f'Class "{class_name}" is not a mapped document')


class DocumentNotFoundError(LazyODMError):
    """The persister found no document for an identifier."""

    def __init__(self, document_name: str, identifier: Mapping[str, Any]) -> None:
        self.document_name = document_name
        self.identifier = dict(identifier)
        super().__init__(f'The "{document_name}" document with identifier {self.identifier!r} could not be found.')

    @classmethod
    def document_not_found(cls, document_name: str, identifier: Mapping[str, Any]) -> "DocumentNotFoundError":
        return cls(document_name, identifier)
