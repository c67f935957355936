"""Constants for lazyodm."""

from enum import IntEnum

# Namespace segment separating the proxy namespace from the target class name,
# e.g. ``Proxies.__CG__.app.documents.User``.
PROXY_MARKER = "__CG__"
PROXY_MARKER_LENGTH = len(PROXY_MARKER)

# Instance attribute holding the LazyState of a proxy
PROXY_STATE_ATTRIBUTE = "__proxy_state__"

# Optional legacy hook on mapped classes returning the attribute names to pickle
SERIALIZE_FIELDS_HOOK = "__serialize_fields__"

# Permissions for generated proxy files and directories
PROXY_FILE_MODE = 0o664
PROXY_DIR_MODE = 0o775

# Random suffix length (bytes) of temporary proxy files
TEMP_SUFFIX_BYTES = 12

DEFAULT_PROXY_DIR = "./var/proxies"
DEFAULT_PROXY_NAMESPACE = "Proxies"

# Config discovery
CONFIG_DIR_NAME = ".lazyodm"
CONFIG_ENV_VAR = "LAZYODM_CONFIG"


class AutoGenerate(IntEnum):
    """Strategies for (re)generating proxy classes."""

    NEVER = 0
    ALWAYS = 1
    FILE_NOT_EXISTS = 2
    EVAL = 3
    FILE_NOT_EXISTS_OR_CHANGED = 4

    @classmethod
    def parse(cls, value: object) -> "AutoGenerate":
        """Accept a member, its integer value, its name, or a bool (True = ALWAYS)."""
        from lazyodm.common.errors import InvalidArgumentError

        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.ALWAYS if value else cls.NEVER
        if isinstance(value, str):
            text = value.strip()
            if text.upper() in cls.__members__:
                return cls[text.upper()]
            if text.isdigit():
                value = int(text)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                pass
        raise InvalidArgumentError.invalid_auto_generate_mode(value)

    @property
    def writes_files(self) -> bool:
        return self in (AutoGenerate.ALWAYS, AutoGenerate.FILE_NOT_EXISTS, AutoGenerate.FILE_NOT_EXISTS_OR_CHANGED)
