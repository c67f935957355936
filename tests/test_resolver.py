"""Unit tests for proxy class name resolution.

Run:
    python -m pytest tests/test_resolver.py -v
"""

from lazyodm.proxy.resolver import ProxyClassNameResolver
from sample_documents import User

resolver = ProxyClassNameResolver()


def test_resolve_proxy_name():
    assert resolver.resolve_class_name("Proxies.__CG__.app.documents.User") == "app.documents.User"


def test_resolve_plain_name_unchanged():
    assert resolver.resolve_class_name("app.documents.User") == "app.documents.User"


def test_resolve_uses_last_marker():
    assert resolver.resolve_class_name("A.__CG__.B.__CG__.app.User") == "app.User"


def test_resolve_marker_must_be_a_segment():
    assert resolver.resolve_class_name("app.__CG__User") == "app.__CG__User"
    assert resolver.resolve_class_name("__CG__.app.User") == "__CG__.app.User"


def test_get_class_name_of_plain_instance():
    user = User(1, "Ana")
    assert resolver.get_class_name(user) == "sample_documents.User"


def test_get_class_name_of_proxy(dm):
    proxy = dm.get_reference(User, 42)
    assert type(proxy) is not User
    assert resolver.get_class_name(proxy) == "sample_documents.User"
