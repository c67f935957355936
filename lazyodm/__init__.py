"""lazyodm - lazy-loading document proxies for a small document mapper."""

__version__ = "0.1.0"

from lazyodm.config import ProxySettings, load_settings
from lazyodm.manager import DocumentManager
from lazyodm.mapping.metadata import ClassMetadata, ClassMetadataFactory

__all__ = [
    "ClassMetadata",
    "ClassMetadataFactory",
    "DocumentManager",
    "ProxySettings",
    "load_settings",
    "__version__",
]
