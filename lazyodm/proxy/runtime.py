"""Runtime support imported by generated proxy classes.

A generated proxy subclasses its document class and ``InternalProxy``. Each
lazily loaded attribute is shadowed by a ``LazyAttribute`` data descriptor
whose getter, setter and deleter first run ``__load__()``. The load state
lives in the ``__proxy_state__`` instance attribute.
"""

import functools
import importlib
import logging
import types
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

from lazyodm.common.constants import PROXY_STATE_ATTRIBUTE, SERIALIZE_FIELDS_HOOK

logger = logging.getLogger("lazyodm.proxy")

_MISSING = object()

# Target classes registered by ProxyFactory, looked up before importing.
_TARGETS: dict[tuple[str, str], type] = {}


class LazyStatus(str, Enum):
    """Load status of a proxy."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"


@dataclass
class LazyState:
    """Per-instance bookkeeping of a proxy."""

    identifier: Mapping[str, Any]
    initializer: Optional[Callable[[Any], None]]
    status: LazyStatus = LazyStatus.UNINITIALIZED

    @property
    def initialized(self) -> bool:
        return self.status is LazyStatus.INITIALIZED


def register_target(cls: type) -> None:
    _TARGETS[(cls.__module__, cls.__qualname__)] = cls


def load_target(module: str, qualname: str) -> type:
    """Resolve the document class a generated proxy extends."""
    target = _TARGETS.get((module, qualname))
    if target is not None:
        return target
    obj: Any = importlib.import_module(module)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj  # type: ignore[no-any-return]


@functools.lru_cache(maxsize=None)
def _slot_for(cls: type, key: str) -> Optional[Any]:
    for klass in cls.__mro__:
        attr = klass.__dict__.get(key)
        if isinstance(attr, types.MemberDescriptorType):
            return attr
    return None


def read_raw(obj: Any, key: str) -> Any:
    """Read an attribute without going through lazy accessors."""
    cls = type(obj)
    slot = _slot_for(cls, key)
    if slot is not None:
        return slot.__get__(obj, cls)
    try:
        return obj.__dict__[key]
    except (AttributeError, KeyError):
        pass
    # Fall back to a class-level default declared by the document
    for klass in cls.__mro__:
        value = klass.__dict__.get(key, _MISSING)
        if value is _MISSING or isinstance(value, LazyAttribute):
            continue
        if hasattr(type(value), "__get__"):
            return value.__get__(obj, cls)
        return value
    raise AttributeError(f"{cls.__name__!r} object has no attribute {key!r}")


def write_raw(obj: Any, key: str, value: Any) -> None:
    """Write an attribute without going through lazy accessors or ``__setattr__``."""
    slot = _slot_for(type(obj), key)
    if slot is not None:
        slot.__set__(obj, value)
    else:
        obj.__dict__[key] = value


def delete_raw(obj: Any, key: str) -> None:
    slot = _slot_for(type(obj), key)
    if slot is not None:
        slot.__delete__(obj)
        return
    try:
        del obj.__dict__[key]
    except KeyError:
        raise AttributeError(key) from None


class LazyAttribute:
    """Guarded accessor for a lazily loaded attribute."""

    __slots__ = ("key",)

    def __init__(self, key: str) -> None:
        self.key = key

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        instance.__load__()
        return read_raw(instance, self.key)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__load__()
        write_raw(instance, self.key, value)

    def __delete__(self, instance: Any) -> None:
        instance.__load__()
        delete_raw(instance, self.key)

    def __repr__(self) -> str:
        return f"LazyAttribute({self.key!r})"


class InternalProxy:
    """Mixin of every generated proxy class."""

    __slots__ = ()

    __proxy_target__: type
    __proxy_skipped__: frozenset = frozenset()

    def __load__(self) -> None:
        """Initialize the proxy if it has not been initialized yet.

        Accesses made while the initializer runs see the raw state and do not
        re-enter it. A failing initializer leaves the proxy uninitialized.
        """
        state: LazyState = self.__dict__[PROXY_STATE_ATTRIBUTE]
        if state.status is not LazyStatus.UNINITIALIZED:
            return
        initializer = state.initializer
        state.status = LazyStatus.INITIALIZING
        try:
            initializer(self)  # type: ignore[misc]
        except BaseException:
            state.status = LazyStatus.UNINITIALIZED
            raise
        self.__set_initialized__()

    def __is_initialized__(self) -> bool:
        return self.__dict__[PROXY_STATE_ATTRIBUTE].initialized  # type: ignore[no-any-return]

    def __set_initialized__(self) -> None:
        """Mark the proxy initialized and drop its initializer."""
        state: LazyState = self.__dict__[PROXY_STATE_ATTRIBUTE]
        state.status = LazyStatus.INITIALIZED
        state.initializer = None

    @property
    def __proxy_identifier__(self) -> Mapping[str, Any]:
        return self.__dict__[PROXY_STATE_ATTRIBUTE].identifier  # type: ignore[no-any-return]


def attach_state(proxy: Any, state: LazyState) -> None:
    proxy.__dict__[PROXY_STATE_ATTRIBUTE] = state


def get_state(proxy: Any) -> LazyState:
    return proxy.__dict__[PROXY_STATE_ATTRIBUTE]  # type: ignore[no-any-return]


def is_proxy(obj: Any) -> bool:
    return isinstance(obj, InternalProxy)


def is_initialized(obj: Any) -> bool:
    """True for loaded proxies and for every non-proxy object."""
    return not is_proxy(obj) or obj.__is_initialized__()


def initialize(obj: Any) -> Any:
    """Force a proxy to load; returns the object for chaining."""
    if is_proxy(obj):
        obj.__load__()
    return obj


# ── Serialization helpers used by generated ``__getstate__`` ──


def restore_instance(cls: type) -> Any:
    """Allocate ``cls`` without ``__init__``; the unpickling counterpart of ``__reduce_ex__``."""
    return object.__new__(cls)


def _has_instance_dict(cls: type) -> bool:
    return any("__dict__" in klass.__dict__ for klass in cls.__mro__)


def strip_proxy_state(state: Any) -> Any:
    """Copy of an object state without the proxy bookkeeping attribute.

    In the ``(dict, slots)`` form an emptied dict becomes ``None``; unpickling
    a non-None dict state needs an instance ``__dict__``.
    """
    if isinstance(state, tuple) and len(state) == 2:
        attributes, slots = state
        return (strip_proxy_state(attributes) or None, slots)
    if isinstance(state, dict):
        state = dict(state)
        state.pop(PROXY_STATE_ATTRIBUTE, None)
    return state


def flatten_state(state: Any) -> dict:
    """Merge the ``(dict, slots)`` form of an object state into one dict."""
    if isinstance(state, tuple) and len(state) == 2:
        attributes, slots = state
        return {**(attributes or {}), **(slots or {})}
    return dict(state or {})


def split_state(cls: type, data: dict) -> Any:
    """Inverse of ``flatten_state`` for instances of ``cls``."""
    slots = {key: value for key, value in data.items() if _slot_for(cls, key) is not None}
    if not slots and _has_instance_dict(cls):
        return data
    attributes = {key: value for key, value in data.items() if key not in slots}
    return (attributes or None, slots or None)


def select_fields(properties: dict, names: Iterable[str], declaring_class: str) -> dict:
    """Pick the attributes named by a legacy ``__serialize_fields__`` hook.

    Each name is looked up as given, then as private to ``declaring_class``
    (``_Declaring__name``), then as protected (``_name``). Names found under
    none of them are reported and left out.
    """
    data = {}
    short = declaring_class.lstrip("_")
    for name in names:
        candidates = [name]
        if name.startswith("__") and short:
            candidates.append(f"_{short}{name}")
        elif not name.startswith("_"):
            candidates.append(f"_{short}__{name}")
        candidates.append(f"_{name.lstrip('_')}")

        for key in candidates:
            if key in properties:
                data[key] = properties[key]
                break
        else:
            logger.warning(
                'serialize: "%s" returned as member variable from %s.__serialize_fields__() but does not exist',
                name,
                declaring_class,
            )
    return data


def serialize_fields_state(obj: Any) -> Any:
    """Object state restricted to the names returned by ``__serialize_fields__()``.

    Installed as ``__getstate__`` on mapped documents that define the hook,
    so documents and their proxies pickle the same attributes.
    """
    target = getattr(type(obj), "__proxy_target__", type(obj))
    declaring = next(klass for klass in target.__mro__ if SERIALIZE_FIELDS_HOOK in klass.__dict__)
    properties = flatten_state(strip_proxy_state(object.__getstate__(obj)))
    data = select_fields(properties, getattr(obj, SERIALIZE_FIELDS_HOOK)(), declaring.__name__)
    return split_state(target, data)


def defines_getstate(cls: type) -> bool:
    return any("__getstate__" in klass.__dict__ for klass in cls.__mro__ if klass is not object)


def install_serialize_fields(cls: type) -> bool:
    """Make ``cls`` pickle through its ``__serialize_fields__`` hook.

    Classes without the hook, or with their own ``__getstate__``, are left
    alone. Returns whether the class now serializes through the hook.
    """
    if not hasattr(cls, SERIALIZE_FIELDS_HOOK):
        return False
    if not defines_getstate(cls):
        cls.__getstate__ = serialize_fields_state  # type: ignore[attr-defined]
        logger.debug("Serializing %s through %s()", cls.__qualname__, SERIALIZE_FIELDS_HOOK)
    return getattr(cls, "__getstate__") is serialize_fields_state
