"""Abstract interface for document persisters."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from lazyodm.mapping.metadata import ClassMetadata


class DocumentPersister(ABC):
    """Loads documents of one mapped class from storage.

    Available implementations:
    - MemoryDocumentPersister: reads from a MemoryDocumentStore (tests, prototyping)
    """

    def __init__(self, metadata: ClassMetadata) -> None:
        self._metadata = metadata

    @property
    def class_metadata(self) -> ClassMetadata:
        return self._metadata

    @abstractmethod
    def load(self, criteria: Mapping[str, Any]) -> Optional[Any]:
        """Load a single document.

        Args:
            criteria: Field values the document must match, typically the
                identifier mapping

        Returns:
            The managed document instance, or None if nothing matches
        """
        pass

    @property
    def name(self) -> str:
        """Get persister name for logging."""
        return self.__class__.__name__
