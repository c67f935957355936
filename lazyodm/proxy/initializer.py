"""One-shot initializers that hydrate proxies from their persister."""

import logging
from typing import Any, Callable, Mapping

from lazyodm.common.errors import DocumentNotFoundError
from lazyodm.mapping.metadata import ClassMetadata
from lazyodm.persisters.interface import DocumentPersister
from lazyodm.proxy.runtime import initialize as load_proxy
from lazyodm.proxy.runtime import read_raw, write_raw

logger = logging.getLogger("lazyodm.proxy")

_MISSING = object()


def create_lazy_initializer(
    metadata: ClassMetadata,
    persister: DocumentPersister,
    keys: tuple[str, ...],
) -> Callable[[Any, Mapping[str, Any]], None]:
    """Build the initializer shared by all proxies of one document class.

    Args:
        metadata: Mapping of the proxied document class
        persister: Load collaborator for that class
        keys: Mapped, non-skipped attribute names to copy into the proxy

    Returns:
        ``initialize(proxy, identifier)``; raises DocumentNotFoundError when
        the persister has no document for ``identifier``.
    """

    def initialize(proxy: Any, identifier: Mapping[str, Any]) -> None:
        original = persister.load(identifier)

        if original is None:
            raise DocumentNotFoundError.document_not_found(metadata.name, identifier)

        # The load resolved back to this very proxy through the identity map
        if original is proxy:
            return

        load_proxy(original)
        values = {}
        for key in keys:
            if key in identifier:
                continue
            value = _read(original, key)
            if value is not _MISSING:
                values[key] = value
        for key, value in values.items():
            write_raw(proxy, key, value)
        logger.debug("Initialized %s%s (%d fields)", metadata.name, dict(identifier), len(values))

    return initialize


def _read(original: Any, key: str) -> Any:
    try:
        return read_raw(original, key)
    except AttributeError:
        return _MISSING
