"""Document manager facade."""

import logging
from typing import Any, Optional, Union

from lazyodm.common.errors import DocumentNotFoundError
from lazyodm.config import ProxySettings
from lazyodm.mapping.metadata import ClassMetadata, ClassMetadataFactory
from lazyodm.persisters.memory import MemoryDocumentStore
from lazyodm.proxy.factory import ProxyFactory
from lazyodm.proxy.resolver import ProxyClassNameResolver
from lazyodm.proxy.runtime import is_proxy, write_raw
from lazyodm.unit_of_work import UnitOfWork

logger = logging.getLogger("lazyodm.manager")


class DocumentManager:
    """Entry point tying metadata, storage, identity map and proxies together.

    Usage:
        metadata = ClassMetadataFactory()
        metadata.map_document(User, fields=["name"])
        dm = DocumentManager(ProxySettings(proxy_dir="var/proxies"), metadata)
        dm.get_document_store().insert_one("User", {"id": 42, "name": "Ana"})

        user = dm.get_reference(User, 42)  # no load yet
        user.name                          # loads the document
    """

    def __init__(
        self,
        settings: Optional[ProxySettings] = None,
        metadata_factory: Optional[ClassMetadataFactory] = None,
        store: Optional[MemoryDocumentStore] = None,
    ) -> None:
        self.settings = settings or ProxySettings()
        self._resolver = ProxyClassNameResolver()
        self._metadata_factory = metadata_factory or ClassMetadataFactory(self._resolver)
        self._store = store if store is not None else MemoryDocumentStore()
        self._unit_of_work = UnitOfWork(self)
        self._proxy_factory = ProxyFactory(
            self,
            self.settings.proxy_dir,
            self.settings.proxy_namespace,
            self.settings.auto_generate,
        )

    # ── Accessors ─────────────────────────────────────────────

    def get_class_metadata(self, class_or_name: Union[type, str]) -> ClassMetadata:
        return self._metadata_factory.get_metadata_for(class_or_name)

    def get_metadata_factory(self) -> ClassMetadataFactory:
        return self._metadata_factory

    def get_document_store(self) -> MemoryDocumentStore:
        return self._store

    def get_unit_of_work(self) -> UnitOfWork:
        return self._unit_of_work

    def get_proxy_factory(self) -> ProxyFactory:
        return self._proxy_factory

    def get_class_name_resolver(self) -> ProxyClassNameResolver:
        return self._resolver

    # ── Loading ───────────────────────────────────────────────

    def get_reference(self, class_or_name: Union[type, str], identifier: Any) -> Any:
        """Return the managed document for ``identifier`` without loading it.

        A document already in the identity map is returned as is; otherwise a
        new uninitialized proxy is created and registered.
        """
        metadata = self.get_class_metadata(class_or_name)
        identifier = metadata.normalize_identifier(identifier)

        document = self._unit_of_work.try_get_by_id(metadata, identifier)
        if document is not None:
            return document

        proxy = self._proxy_factory.get_proxy(metadata, identifier)
        self._unit_of_work.register_managed(proxy, metadata, identifier)
        logger.debug("Created reference %s%s", metadata.name, dict(identifier))
        return proxy

    def find(self, class_or_name: Union[type, str], identifier: Any) -> Optional[Any]:
        """Load a document by identifier; ``None`` if it does not exist."""
        metadata = self.get_class_metadata(class_or_name)
        identifier = metadata.normalize_identifier(identifier)

        document = self._unit_of_work.try_get_by_id(metadata, identifier)
        if document is not None:
            if is_proxy(document):
                try:
                    document.__load__()
                except DocumentNotFoundError:
                    return None
            return document

        return self._unit_of_work.get_document_persister(metadata.name).load(identifier)

    def get_partial_reference(self, class_or_name: Union[type, str], identifier: Any) -> Any:
        """Return a plain, managed instance carrying only its identifier.

        Partial references are not proxies and are never loaded.
        """
        metadata = self.get_class_metadata(class_or_name)
        identifier = metadata.normalize_identifier(identifier)

        document = self._unit_of_work.try_get_by_id(metadata, identifier)
        if document is not None:
            return document

        document = metadata.new_instance()
        for name, value in identifier.items():
            write_raw(document, name, value)
        self._unit_of_work.register_managed(document, metadata, identifier)
        return document

    # ── Identity map ──────────────────────────────────────────

    def contains(self, document: Any) -> bool:
        return self._unit_of_work.contains(document)

    def clear(self) -> None:
        """Detach every managed document."""
        self._unit_of_work.clear()
