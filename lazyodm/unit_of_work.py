"""Identity map and hydration of managed documents."""

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional

from lazyodm.mapping.metadata import ClassMetadata
from lazyodm.persisters.interface import DocumentPersister
from lazyodm.persisters.memory import MemoryDocumentPersister
from lazyodm.proxy.runtime import LazyStatus, get_state, is_proxy, write_raw

if TYPE_CHECKING:
    from lazyodm.manager import DocumentManager

logger = logging.getLogger("lazyodm.uow")


class UnitOfWork:
    """Keeps one managed instance per document identifier.

    Documents are keyed by class name and identifier tuple. Raw documents
    coming from a persister are hydrated into the managed instance if one
    exists, which is how a proxy being initialized receives its own state.
    """

    def __init__(self, dm: "DocumentManager") -> None:
        self._dm = dm
        self._identity_map: dict[str, dict[tuple, Any]] = {}
        self._persisters: dict[str, DocumentPersister] = {}

    # ── Persisters ────────────────────────────────────────────

    def get_document_persister(self, class_name: str) -> DocumentPersister:
        persister = self._persisters.get(class_name)
        if persister is None:
            metadata = self._dm.get_class_metadata(class_name)
            persister = MemoryDocumentPersister(metadata, self._dm.get_document_store(), self)
            self._persisters[metadata.name] = persister
        return persister

    def set_document_persister(self, class_name: str, persister: DocumentPersister) -> None:
        self._persisters[class_name] = persister

    # ── Identity map ──────────────────────────────────────────

    def try_get_by_id(self, metadata: ClassMetadata, identifier: Mapping[str, Any]) -> Optional[Any]:
        return self._identity_map.get(metadata.name, {}).get(metadata.identity_key(identifier))

    def register_managed(self, document: Any, metadata: ClassMetadata, identifier: Mapping[str, Any]) -> None:
        self._identity_map.setdefault(metadata.name, {})[metadata.identity_key(identifier)] = document

    def contains(self, document: Any) -> bool:
        return any(managed is document for documents in self._identity_map.values() for managed in documents.values())

    def size(self) -> int:
        return sum(len(documents) for documents in self._identity_map.values())

    def clear(self) -> None:
        self._identity_map.clear()

    # ── Hydration ─────────────────────────────────────────────

    def get_or_create_document(self, class_name: str, data: Mapping[str, Any]) -> Any:
        """Return the managed document for ``data``, hydrating it if needed.

        An existing uninitialized proxy is filled in place and returned, so a
        proxy whose load resolves through the identity map gets itself back.
        Initialized documents are returned untouched.
        """
        metadata = self._dm.get_class_metadata(class_name)
        identifier = metadata.identifier_from_document(data)
        document = self.try_get_by_id(metadata, identifier)

        if document is not None:
            if is_proxy(document) and not document.__is_initialized__():
                self._hydrate(document, metadata, data)
                if get_state(document).status is LazyStatus.UNINITIALIZED:
                    document.__set_initialized__()
                logger.debug("Hydrated proxy %s%s", metadata.name, dict(identifier))
            return document

        document = metadata.new_instance()
        self._hydrate(document, metadata, data)
        self.register_managed(document, metadata, identifier)
        return document

    def _hydrate(self, document: Any, metadata: ClassMetadata, data: Mapping[str, Any]) -> None:
        """Write mapped fields and resolved associations onto ``document``.

        Associations are resolved before anything is written, so a failure
        leaves the document as it was.
        """
        values = {name: data[name] for name in metadata.fields if name in data}
        for name, target in metadata.associations.items():
            if name in data:
                value = data[name]
                values[name] = None if value is None else self._dm.get_reference(target, value)
        for name, value in values.items():
            write_raw(document, name, value)
