"""Shared fixtures."""

import sys
import uuid
from pathlib import Path
from typing import Any, Mapping, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from lazyodm.config import ProxySettings  # noqa: E402
from lazyodm.manager import DocumentManager  # noqa: E402
from lazyodm.persisters.interface import DocumentPersister  # noqa: E402
from lazyodm.persisters.memory import MemoryDocumentStore  # noqa: E402
from sample_documents import build_metadata, seed  # noqa: E402


class CountingPersister(DocumentPersister):
    """Wraps another persister and records every load call."""

    def __init__(self, inner: DocumentPersister) -> None:
        super().__init__(inner.class_metadata)
        self.inner = inner
        self.calls: list[dict] = []

    def load(self, criteria: Mapping[str, Any]) -> Optional[Any]:
        self.calls.append(dict(criteria))
        return self.inner.load(criteria)


@pytest.fixture
def proxy_namespace():
    """A proxy namespace unique to the test; its proxy modules are dropped afterwards."""
    namespace = f"Proxies{uuid.uuid4().hex[:12]}"
    yield namespace
    for name in [n for n in sys.modules if n.startswith(f"{namespace}.")]:
        del sys.modules[name]


@pytest.fixture
def proxy_dir(tmp_path):
    return tmp_path / "proxies"


@pytest.fixture
def store():
    return seed(MemoryDocumentStore())


@pytest.fixture
def make_dm(proxy_dir, proxy_namespace, store):
    """Build a DocumentManager over the seeded store with the given generation mode."""

    def _make(auto_generate: Any = "eval", **overrides: Any) -> DocumentManager:
        settings = ProxySettings(
            proxy_dir=overrides.pop("proxy_dir", proxy_dir),
            proxy_namespace=overrides.pop("proxy_namespace", proxy_namespace),
            auto_generate=auto_generate,
        )
        return DocumentManager(settings, build_metadata(), overrides.pop("store", store))

    return _make


@pytest.fixture
def dm(make_dm):
    return make_dm()


@pytest.fixture
def counting(dm):
    """Install a CountingPersister for a document class before any proxy of it exists."""

    def _install(document_class: type) -> CountingPersister:
        uow = dm.get_unit_of_work()
        metadata = dm.get_class_metadata(document_class)
        persister = CountingPersister(uow.get_document_persister(metadata.name))
        uow.set_document_persister(metadata.name, persister)
        return persister

    return _install
