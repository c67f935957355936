"""Proxy configuration."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from lazyodm.common.constants import (
    CONFIG_DIR_NAME,
    CONFIG_ENV_VAR,
    DEFAULT_PROXY_DIR,
    DEFAULT_PROXY_NAMESPACE,
    AutoGenerate,
)

logger = logging.getLogger("lazyodm.config")


class ProxySettings(BaseSettings):
    """Proxy settings loaded from environment or config file."""

    proxy_dir: Path = Field(Path(DEFAULT_PROXY_DIR), description="Directory for generated proxy files")
    proxy_namespace: str = Field(
        DEFAULT_PROXY_NAMESPACE,
        description="Module namespace of generated proxy classes. Env: LAZYODM_PROXY_NAMESPACE",
    )
    auto_generate: AutoGenerate = Field(
        AutoGenerate.NEVER,
        description="Proxy generation mode: never, always, file_not_exists, eval, "
        "file_not_exists_or_changed (or 0-4). Env: LAZYODM_AUTO_GENERATE",
    )
    log_level: str = Field("INFO", description="Log level. Env: LAZYODM_LOG_LEVEL")

    @field_validator("proxy_dir", mode="before")
    @classmethod
    def validate_proxy_dir(cls, value: Any) -> Any:
        if value is None or not str(value).strip():
            raise ValueError("proxy directory must not be empty")
        return value

    @field_validator("proxy_namespace")
    @classmethod
    def validate_proxy_namespace(cls, value: str) -> str:
        value = value.strip().strip(".")
        if not value:
            raise ValueError("proxy namespace must not be empty")
        return value

    @field_validator("auto_generate", mode="before")
    @classmethod
    def validate_auto_generate(cls, value: Any) -> AutoGenerate:
        # InvalidArgumentError is a ValueError, so pydantic reports it as a validation error
        return AutoGenerate.parse(value)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        return value.strip().upper()

    class Config:
        env_prefix = "LAZYODM_"


def _parse_yaml_to_settings_dict(config: dict) -> dict:
    """Convert a parsed YAML config dict into a flat settings dict."""
    d: dict = {}

    if "proxy" in config:
        px = config["proxy"] or {}
        if "dir" in px:
            d["proxy_dir"] = px["dir"]
        if "namespace" in px:
            d["proxy_namespace"] = px["namespace"]
        if "auto_generate" in px:
            d["auto_generate"] = px["auto_generate"]
    if "logging" in config:
        lg = config["logging"] or {}
        if "level" in lg:
            d["log_level"] = lg["level"]

    return d


def _apply_env_overrides(settings_dict: dict) -> None:
    """Let ``LAZYODM_*`` environment variables win over file values (in-place)."""
    for name in ProxySettings.model_fields:
        if f"LAZYODM_{name.upper()}" in os.environ:
            settings_dict.pop(name, None)


# ── Config file auto-discovery ────────────────────────────────

# Paths searched in order when no explicit config is given.
_CONFIG_SEARCH_PATHS = [
    Path("./lazyodm.yaml"),
    Path("./config/lazyodm.yaml"),
    Path.home() / CONFIG_DIR_NAME / "config.yaml",
]


def discover_config_path() -> Optional[Path]:
    """Find a config file using auto-discovery.

    Search order:
      1. ``$LAZYODM_CONFIG`` environment variable
      2. ``./lazyodm.yaml``
      3. ``./config/lazyodm.yaml``
      4. ``~/.lazyodm/config.yaml``

    Returns:
        Path to the discovered config file, or None.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR, "")
    if env_path:
        p = Path(env_path)
        if p.exists():
            return p
        logger.warning("$%s=%s does not exist", CONFIG_ENV_VAR, env_path)

    for candidate in _CONFIG_SEARCH_PATHS:
        if candidate.exists():
            return candidate
    return None


def load_settings(config_path: Optional[Path] = None) -> ProxySettings:
    """Load proxy settings from config file + environment variables.

    Args:
        config_path: Explicit path to config file.  When ``None``,
            auto-discovery is used (see :func:`discover_config_path`).

    Returns:
        ProxySettings; the resolved config path is kept on ``_config_path``.
    """
    import yaml

    resolved_path = Path(config_path) if config_path is not None else discover_config_path()

    settings_dict: dict = {}

    if resolved_path and resolved_path.exists():
        with open(resolved_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        settings_dict = _parse_yaml_to_settings_dict(config)
        logger.info("Loaded config from %s", resolved_path.resolve())
    else:
        logger.info("No config file found, using defaults + environment variables")

    _apply_env_overrides(settings_dict)

    settings = ProxySettings(**settings_dict)
    settings._config_path = resolved_path  # type: ignore[attr-defined]
    return settings
