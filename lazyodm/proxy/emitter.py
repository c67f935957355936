"""Proxy class source generation.

Proxy classes are rendered from ``PROXY_CLASS_TEMPLATE``. Placeholders that
are not supplied directly are filled by the matching ``_generate_<name>``
method, so a new hole in the template only needs a new method.
"""

import importlib.util
import keyword
import logging
import os
import secrets
import sys
import types
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Any, Optional, Union

from lazyodm.common.constants import (
    PROXY_DIR_MODE,
    PROXY_FILE_MODE,
    PROXY_MARKER,
    PROXY_STATE_ATTRIBUTE,
    TEMP_SUFFIX_BYTES,
)
from lazyodm.common.errors import InvalidArgumentError, MappingError
from lazyodm.mapping.metadata import ClassMetadata
from lazyodm.proxy.fields import lazy_keys
from lazyodm.proxy.runtime import install_serialize_fields

logger = logging.getLogger("lazyodm.proxy")

PROXY_CLASS_TEMPLATE = Template(
    '''\
"""
DO NOT EDIT THIS FILE - IT WAS CREATED BY LAZYODM'S PROXY GENERATOR
"""

from lazyodm.proxy import runtime as _runtime

_Target = _runtime.load_target(${target_module}, ${target_qualname})


class ${proxy_short_class_name}(_Target, _runtime.InternalProxy):
    __module__ = ${proxy_module}
    __qualname__ = ${target_qualname}
    __proxy_target__ = _Target
    __proxy_skipped__ = ${skipped_fields}
${lazy_attributes}
    def __is_initialized__(self) -> bool:
${is_initialized_impl}

    def __getstate__(self):
${serialize_impl}

    def __reduce_ex__(self, protocol):
        self.__load__()
        return _runtime.restore_instance, (_Target,), self.__getstate__()


__proxy_class__ = ${proxy_short_class_name}
'''
)


def generate_proxy_class_name(class_name: str, proxy_namespace: str) -> str:
    """``Proxies`` + ``app.User`` -> ``Proxies.__CG__.app.User``."""
    return f"{proxy_namespace.rstrip('.')}.{PROXY_MARKER}.{class_name.lstrip('.')}"


@dataclass
class EmittedProxy:
    """Rendered source of one proxy class."""

    type_name: str
    target_name: str
    source: str


class ProxyEmitter:
    """Renders proxy classes and makes them available in-process.

    Usage:
        emitter = ProxyEmitter("Proxies")
        emitted = emitter.emit(metadata, skipped)
        emitter.write(emitted, Path("var/proxies/__CG__appUser.py"))
        proxy_class = emitter.load_file(emitted, Path("var/proxies/__CG__appUser.py"))
    """

    def __init__(self, proxy_namespace: str) -> None:
        self.proxy_namespace = proxy_namespace

    # ── Rendering ─────────────────────────────────────────────

    def emit(self, metadata: ClassMetadata, skipped: frozenset[str]) -> EmittedProxy:
        """Render the proxy class source for ``metadata``."""
        target = metadata.document_class
        type_name = generate_proxy_class_name(metadata.name, self.proxy_namespace)
        placeholders = {
            "target_module": repr(target.__module__),
            "target_qualname": repr(target.__qualname__),
            "proxy_module": repr(type_name[: -len(target.__qualname__) - 1]),
            "proxy_short_class_name": target.__name__,
        }

        for name in PROXY_CLASS_TEMPLATE.get_identifiers():
            if name not in placeholders:
                placeholders[name] = getattr(self, f"_generate_{name}")(metadata, skipped)

        return EmittedProxy(type_name, metadata.name, PROXY_CLASS_TEMPLATE.substitute(placeholders))

    def _generate_skipped_fields(self, metadata: ClassMetadata, skipped: frozenset[str]) -> str:
        return f"frozenset({sorted(skipped)!r})"

    def _generate_lazy_attributes(self, metadata: ClassMetadata, skipped: frozenset[str]) -> str:
        lines = []
        for key in lazy_keys(metadata, skipped):
            if not key.isidentifier() or keyword.iskeyword(key) or (key.startswith("__") and not key.endswith("__")):
                raise MappingError(f"{metadata.name}: cannot generate a lazy accessor for attribute {key!r}")
            lines.append(f"    {key} = _runtime.LazyAttribute({key!r})\n")
        return "".join(lines)

    def _generate_is_initialized_impl(self, metadata: ClassMetadata, skipped: frozenset[str]) -> str:
        return f"        return self.__dict__[{PROXY_STATE_ATTRIBUTE!r}].initialized"

    def _generate_serialize_impl(self, metadata: ClassMetadata, skipped: frozenset[str]) -> str:
        if install_serialize_fields(metadata.document_class):
            return "        self.__load__()\n        return _runtime.serialize_fields_state(self)"
        return "        self.__load__()\n        return _runtime.strip_proxy_state(super().__getstate__())"

    # ── Loading ───────────────────────────────────────────────

    def get_existing(self, type_name: str) -> Optional[type]:
        """Proxy class already defined in this process, if any."""
        module = sys.modules.get(type_name)
        return getattr(module, "__proxy_class__", None)

    def evaluate(self, emitted: EmittedProxy) -> type:
        """Define the proxy class in-process without touching the filesystem."""
        existing = self.get_existing(emitted.type_name)
        if existing is not None:
            return existing

        module = types.ModuleType(emitted.type_name)
        code = compile(emitted.source, f"<lazyodm proxy {emitted.type_name}>", "exec")
        exec(code, module.__dict__)  # nosec B102 - source is rendered from our own template
        sys.modules[emitted.type_name] = module
        logger.debug("Evaluated proxy class %s", emitted.type_name)
        return module.__proxy_class__  # type: ignore[no-any-return]

    def load_file(self, emitted: EmittedProxy, file_name: Union[str, Path]) -> type:
        """Import a persisted proxy file under the proxy type name."""
        existing = self.get_existing(emitted.type_name)
        if existing is not None:
            return existing

        spec = importlib.util.spec_from_file_location(emitted.type_name, str(file_name))
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load proxy file {file_name}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[emitted.type_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(emitted.type_name, None)
            raise
        logger.debug("Loaded proxy class %s from %s", emitted.type_name, file_name)
        return module.__proxy_class__  # type: ignore[no-any-return]

    # ── Persisting ────────────────────────────────────────────

    def write(self, emitted: EmittedProxy, file_name: Union[str, Path], proxy_dir: Any = None) -> None:
        """Atomically publish the proxy source at ``file_name``.

        The source goes to a uniquely named temporary file in the same
        directory which is then renamed over the final path, so concurrent
        generators never expose a partially written file.
        """
        file_name = Path(file_name)
        parent = file_name.parent
        try:
            parent.mkdir(mode=PROXY_DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidArgumentError.proxy_directory_not_writable(proxy_dir or parent) from e
        if not os.access(parent, os.W_OK):
            raise InvalidArgumentError.proxy_directory_not_writable(proxy_dir or parent)

        tmp_file = file_name.with_name(f"{file_name.name}.{secrets.token_hex(TEMP_SUFFIX_BYTES)}")
        try:
            tmp_file.write_text(emitted.source, encoding="utf-8")
            try:
                os.chmod(tmp_file, PROXY_FILE_MODE)
            except OSError as e:
                logger.debug("Could not chmod %s: %s", tmp_file, e)
            os.replace(tmp_file, file_name)
        except BaseException:
            tmp_file.unlink(missing_ok=True)
            raise
        logger.info("Generated proxy %s at %s", emitted.type_name, file_name)
