"""Per-document cache of built proxy descriptors."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional


@dataclass
class ProxyDescriptor:
    """Everything needed to create proxies of one document class."""

    target_name: str
    proxy_class_name: str
    proxy_class: type
    skipped: frozenset[str]
    lazy_keys: tuple[str, ...]
    factory: Callable[[Any], Any] = field(repr=False)
    file_name: Optional[Path] = None


class ProxyDescriptorCache:
    """Maps a document class name to its ProxyDescriptor.

    Entries live as long as the owning ProxyFactory.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, ProxyDescriptor] = {}

    def get(self, class_name: str) -> Optional[ProxyDescriptor]:
        return self._descriptors.get(class_name)

    def put(self, descriptor: ProxyDescriptor) -> ProxyDescriptor:
        self._descriptors[descriptor.target_name] = descriptor
        return descriptor
