"""Factory creating lazy-loading proxies for documents."""

import logging
import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from lazyodm.common.constants import PROXY_MARKER, AutoGenerate
from lazyodm.common.errors import InvalidArgumentError
from lazyodm.mapping.metadata import ClassMetadata
from lazyodm.proxy.cache import ProxyDescriptor, ProxyDescriptorCache
from lazyodm.proxy.emitter import ProxyEmitter, generate_proxy_class_name
from lazyodm.proxy.fields import build_skip_set, lazy_keys
from lazyodm.proxy.initializer import create_lazy_initializer
from lazyodm.proxy.runtime import LazyState, attach_state, register_target, write_raw

if TYPE_CHECKING:
    from lazyodm.manager import DocumentManager

logger = logging.getLogger("lazyodm.proxy")


class ProxyFactory:
    """Creates proxy objects for documents, generating proxy classes as configured.

    Usage:
        factory = ProxyFactory(dm, Path("var/proxies"), "Proxies", AutoGenerate.FILE_NOT_EXISTS)
        user = factory.get_proxy(dm.get_class_metadata(User), {"id": 42})
        user.name  # loads the document
    """

    def __init__(
        self,
        dm: "DocumentManager",
        proxy_dir: Union[str, Path, None],
        proxy_namespace: Optional[str],
        auto_generate: Union[bool, int, str, AutoGenerate] = AutoGenerate.NEVER,
    ) -> None:
        """Initialize the factory.

        Args:
            dm: Document manager providing the unit of work and persisters
            proxy_dir: Directory for generated proxy files
            proxy_namespace: Module namespace of generated proxy classes
            auto_generate: Proxy generation strategy

        Raises:
            InvalidArgumentError: On a missing directory or namespace, an
                unwritable directory, or an unknown generation mode
        """
        if not proxy_dir or not str(proxy_dir).strip():
            raise InvalidArgumentError.proxy_directory_required()
        if not proxy_namespace or not proxy_namespace.strip():
            raise InvalidArgumentError.proxy_namespace_required()

        self.auto_generate = AutoGenerate.parse(auto_generate)
        self.proxy_dir = Path(proxy_dir)
        self.proxy_namespace = proxy_namespace

        if self.auto_generate.writes_files and self.proxy_dir.exists():
            if not self.proxy_dir.is_dir() or not os.access(self.proxy_dir, os.W_OK):
                raise InvalidArgumentError.proxy_directory_not_writable(self.proxy_dir)

        self._dm = dm
        self._emitter = ProxyEmitter(proxy_namespace)
        self._descriptors = ProxyDescriptorCache()

    # ── Public API ────────────────────────────────────────────

    def get_proxy(self, metadata: ClassMetadata, identifier: Any) -> Any:
        """Return a new, uninitialized proxy with its identifier fields set.

        Nothing is loaded here; the first access to another mapped field does.
        """
        descriptor = self._descriptors.get(metadata.name) or self._build_descriptor(metadata)
        return descriptor.factory(identifier)

    def generate_proxy_classes(self, classes: Iterable[ClassMetadata], proxy_dir: Union[str, Path, None] = None) -> int:
        """Write proxy files for all given classes.

        Mapped superclasses, embedded documents and abstract classes are
        skipped.

        Args:
            classes: Metadata of the classes to generate proxies for
            proxy_dir: Target directory (default: the configured one)

        Returns:
            Number of generated proxies
        """
        target_dir = Path(proxy_dir) if proxy_dir else self.proxy_dir
        generated = 0

        for metadata in classes:
            if self.skip_class(metadata):
                continue
            emitted = self._emitter.emit(metadata, build_skip_set(metadata))
            self._emitter.write(emitted, self.get_proxy_file_name(metadata.name, target_dir), target_dir)
            generated += 1

        return generated

    def skip_class(self, metadata: ClassMetadata) -> bool:
        return metadata.is_mapped_superclass or metadata.is_embedded_document or metadata.is_abstract_class()

    def get_proxy_file_name(self, class_name: str, base_dir: Union[str, Path, None] = None) -> Path:
        """``app.documents.User`` -> ``<base_dir>/__CG__appdocumentsUser.py``."""
        directory = Path(base_dir) if base_dir else self.proxy_dir
        return directory / f"{PROXY_MARKER}{re.sub(r'[^0-9A-Za-z_]', '', class_name)}.py"

    @staticmethod
    def generate_proxy_class_name(class_name: str, proxy_namespace: str) -> str:
        return generate_proxy_class_name(class_name, proxy_namespace)

    def get_proxy_descriptor(self, metadata: ClassMetadata) -> ProxyDescriptor:
        return self._descriptors.get(metadata.name) or self._build_descriptor(metadata)

    def is_proxy_file_stale(self, metadata: ClassMetadata, file_name: Optional[Path] = None) -> bool:
        """True when the proxy file is missing or older than the document's source file."""
        file_name = file_name or self.get_proxy_file_name(metadata.name)
        if not file_name.exists():
            return True
        source = metadata.source_file
        if source is None or not os.path.exists(source):
            return False
        return file_name.stat().st_mtime_ns < os.stat(source).st_mtime_ns

    # ── Internals ─────────────────────────────────────────────

    def _build_descriptor(self, metadata: ClassMetadata) -> ProxyDescriptor:
        skipped = build_skip_set(metadata)
        keys = lazy_keys(metadata, skipped)
        persister = self._dm.get_unit_of_work().get_document_persister(metadata.name)
        initializer = create_lazy_initializer(metadata, persister, keys)
        proxy_class, file_name = self._load_proxy_class(metadata, skipped)

        def factory(identifier: Any) -> Any:
            identifier = metadata.normalize_identifier(identifier)

            def initialize(proxy: Any) -> None:
                initializer(proxy, identifier)

            proxy = object.__new__(proxy_class)
            attach_state(proxy, LazyState(identifier, initialize))
            for name, value in identifier.items():
                write_raw(proxy, name, value)
            return proxy

        descriptor = ProxyDescriptor(
            target_name=metadata.name,
            proxy_class_name=generate_proxy_class_name(metadata.name, self.proxy_namespace),
            proxy_class=proxy_class,
            skipped=skipped,
            lazy_keys=keys,
            factory=factory,
            file_name=file_name,
        )
        logger.debug("Built proxy factory for %s (lazy: %s, skipped: %s)", metadata.name, keys, sorted(skipped))
        return self._descriptors.put(descriptor)

    def _load_proxy_class(self, metadata: ClassMetadata, skipped: frozenset[str]) -> tuple[type, Optional[Path]]:
        register_target(metadata.document_class)
        type_name = generate_proxy_class_name(metadata.name, self.proxy_namespace)

        existing = self._emitter.get_existing(type_name)
        if existing is not None:
            return existing, None

        emitted = self._emitter.emit(metadata, skipped)
        if self.auto_generate is AutoGenerate.EVAL:
            return self._emitter.evaluate(emitted), None

        file_name = self.get_proxy_file_name(metadata.name)
        if self._should_generate(metadata, file_name):
            self._emitter.write(emitted, file_name, self.proxy_dir)
        elif not file_name.exists():
            raise FileNotFoundError(
                f"Proxy file {file_name} for {metadata.name} does not exist. "
                "Generate proxies or enable auto generation."
            )

        return self._emitter.load_file(emitted, file_name), file_name

    def _should_generate(self, metadata: ClassMetadata, file_name: Path) -> bool:
        if self.auto_generate is AutoGenerate.ALWAYS:
            return True
        if self.auto_generate is AutoGenerate.FILE_NOT_EXISTS:
            return not file_name.exists()
        if self.auto_generate is AutoGenerate.FILE_NOT_EXISTS_OR_CHANGED:
            return self.is_proxy_file_stale(metadata, file_name)
        return False
