"""Lazy-loading proxies for mapped documents."""

from lazyodm.proxy.resolver import ProxyClassNameResolver
from lazyodm.proxy.runtime import InternalProxy, LazyStatus, initialize, is_initialized, is_proxy

__all__ = [
    "InternalProxy",
    "LazyStatus",
    "ProxyClassNameResolver",
    "initialize",
    "is_initialized",
    "is_proxy",
]
