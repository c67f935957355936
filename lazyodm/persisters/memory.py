"""In-memory document storage and persister."""

import copy
import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from lazyodm.mapping.metadata import ClassMetadata
from lazyodm.persisters.interface import DocumentPersister

if TYPE_CHECKING:
    from lazyodm.unit_of_work import UnitOfWork

logger = logging.getLogger("lazyodm.persisters")


class MemoryDocumentStore:
    """Raw documents (plain dicts) grouped by collection.

    Suitable for:
    - Unit testing
    - Quick prototyping

    Limitations:
    - Data is lost on restart
    - Criteria match by equality only

    Usage:
        store = MemoryDocumentStore()
        store.insert_one("User", {"id": 42, "name": "Ana"})
        store.find_one("User", {"id": 42})
    """

    def __init__(self) -> None:
        self._collections: dict[str, list[dict]] = {}

    def insert_one(self, collection: str, document: Mapping[str, Any]) -> None:
        self._collections.setdefault(collection, []).append(copy.deepcopy(dict(document)))

    def find_one(self, collection: str, criteria: Mapping[str, Any]) -> Optional[dict]:
        """Return a copy of the first document matching ``criteria``."""
        for document in self._collections.get(collection, []):
            if all(key in document and document[key] == value for key, value in criteria.items()):
                return copy.deepcopy(document)
        return None

    def delete_many(self, collection: str, criteria: Mapping[str, Any]) -> int:
        documents = self._collections.get(collection, [])
        kept = [d for d in documents if not all(d.get(k) == v for k, v in criteria.items())]
        self._collections[collection] = kept
        return len(documents) - len(kept)

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, []))

    def get_stats(self) -> dict:
        return {
            "type": "memory",
            "collections": {name: len(docs) for name, docs in self._collections.items()},
        }


class MemoryDocumentPersister(DocumentPersister):
    """Loads documents from a MemoryDocumentStore through the unit of work."""

    def __init__(self, metadata: ClassMetadata, store: MemoryDocumentStore, uow: "UnitOfWork") -> None:
        super().__init__(metadata)
        self._store = store
        self._uow = uow

    def load(self, criteria: Mapping[str, Any]) -> Optional[Any]:
        data = self._store.find_one(self._metadata.collection, criteria)  # type: ignore[arg-type]
        if data is None:
            logger.debug("%s: no %s matches %s", self.name, self._metadata.name, dict(criteria))
            return None
        return self._uow.get_or_create_document(self._metadata.name, data)
