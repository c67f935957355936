"""Map proxy class names back to the documents they stand in for."""

from lazyodm.common.constants import PROXY_MARKER, PROXY_MARKER_LENGTH


class ProxyClassNameResolver:
    """Strips the proxy marker segment from a dotted class name.

    ``Proxies.__CG__.app.documents.User`` resolves to ``app.documents.User``;
    names without the marker are returned unchanged.
    """

    def resolve_class_name(self, class_name: str) -> str:
        pos = class_name.rfind(f".{PROXY_MARKER}.")
        if pos == -1:
            return class_name
        return class_name[pos + PROXY_MARKER_LENGTH + 2 :]

    def get_class_name(self, obj: object) -> str:
        """Resolved dotted class name of an instance (proxy or not)."""
        cls = type(obj)
        return self.resolve_class_name(f"{cls.__module__}.{cls.__qualname__}")
