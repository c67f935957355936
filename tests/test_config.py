"""Unit tests for settings, YAML parsing and config discovery.

No proxies are generated here; everything runs in temporary directories.

Run:
    python -m pytest tests/test_config.py -v
"""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from lazyodm.common.constants import AutoGenerate
from lazyodm.config import (
    ProxySettings,
    _apply_env_overrides,
    _parse_yaml_to_settings_dict,
    discover_config_path,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("LAZYODM_CONFIG", "LAZYODM_PROXY_DIR", "LAZYODM_PROXY_NAMESPACE", "LAZYODM_AUTO_GENERATE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("LAZYODM_LOG_LEVEL", raising=False)


# ── ProxySettings ─────────────────────────────────────────────


def test_defaults():
    settings = ProxySettings()
    assert settings.proxy_dir == Path("./var/proxies")
    assert settings.proxy_namespace == "Proxies"
    assert settings.auto_generate is AutoGenerate.NEVER
    assert settings.log_level == "INFO"


def test_env_vars(monkeypatch):
    monkeypatch.setenv("LAZYODM_PROXY_DIR", "/tmp/lazyodm-proxies")
    monkeypatch.setenv("LAZYODM_PROXY_NAMESPACE", "App.Proxies")
    monkeypatch.setenv("LAZYODM_AUTO_GENERATE", "file_not_exists_or_changed")

    settings = ProxySettings()

    assert settings.proxy_dir == Path("/tmp/lazyodm-proxies")
    assert settings.proxy_namespace == "App.Proxies"
    assert settings.auto_generate is AutoGenerate.FILE_NOT_EXISTS_OR_CHANGED


@pytest.mark.parametrize(
    "value, expected",
    [(3, AutoGenerate.EVAL), ("1", AutoGenerate.ALWAYS), (True, AutoGenerate.ALWAYS)],
)
def test_auto_generate_values(value, expected):
    assert ProxySettings(auto_generate=value).auto_generate is expected


def test_invalid_auto_generate():
    with pytest.raises(ValidationError, match="Invalid auto generate mode"):
        ProxySettings(auto_generate="sometimes")


@pytest.mark.parametrize("field", ["proxy_dir", "proxy_namespace"])
@pytest.mark.parametrize("value", ["", "   "])
def test_empty_values_rejected(field, value):
    with pytest.raises(ValidationError, match="must not be empty"):
        ProxySettings(**{field: value})


def test_namespace_is_trimmed():
    assert ProxySettings(proxy_namespace=" App.Proxies. ").proxy_namespace == "App.Proxies"


def test_log_level_upper_cased():
    assert ProxySettings(log_level="debug").log_level == "DEBUG"


# ── _parse_yaml_to_settings_dict ──────────────────────────────


def test_parse_yaml_proxy_section():
    cfg = {"proxy": {"dir": "build/proxies", "namespace": "Gen", "auto_generate": "eval"}}
    d = _parse_yaml_to_settings_dict(cfg)
    assert d == {"proxy_dir": "build/proxies", "proxy_namespace": "Gen", "auto_generate": "eval"}


def test_parse_yaml_logging_section():
    assert _parse_yaml_to_settings_dict({"logging": {"level": "debug"}}) == {"log_level": "debug"}


def test_parse_yaml_ignores_unknown_and_empty_sections():
    assert _parse_yaml_to_settings_dict({"proxy": None, "other": {"x": 1}}) == {}


def test_env_overrides_file_values(monkeypatch):
    monkeypatch.setenv("LAZYODM_PROXY_NAMESPACE", "FromEnv")
    d = {"proxy_namespace": "FromFile", "proxy_dir": "from/file"}
    _apply_env_overrides(d)
    assert d == {"proxy_dir": "from/file"}


# ── discover_config_path ──────────────────────────────────────


def test_discover_from_env(tmp_path, monkeypatch):
    cfg = tmp_path / "custom.yaml"
    cfg.write_text("proxy: {}\n")
    monkeypatch.setenv("LAZYODM_CONFIG", str(cfg))
    assert discover_config_path() == cfg


def test_discover_env_missing_falls_through(tmp_path, monkeypatch, caplog):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LAZYODM_CONFIG", str(tmp_path / "absent.yaml"))
    (tmp_path / "lazyodm.yaml").write_text("proxy: {}\n")

    assert discover_config_path() == Path("./lazyodm.yaml")
    assert "does not exist" in caplog.text


def test_discover_config_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "lazyodm.yaml").write_text("proxy: {}\n")
    assert discover_config_path() == Path("./config/lazyodm.yaml")


# ── load_settings ─────────────────────────────────────────────


def test_load_settings_from_file(tmp_path):
    cfg = tmp_path / "lazyodm.yaml"
    cfg.write_text(
        textwrap.dedent(
            """\
            proxy:
              dir: /srv/app/proxies
              namespace: App.Proxies
              auto_generate: file_not_exists
            logging:
              level: debug
            """
        )
    )

    settings = load_settings(cfg)

    assert settings.proxy_dir == Path("/srv/app/proxies")
    assert settings.proxy_namespace == "App.Proxies"
    assert settings.auto_generate is AutoGenerate.FILE_NOT_EXISTS
    assert settings.log_level == "DEBUG"
    assert settings._config_path == cfg


def test_load_settings_integer_mode(tmp_path):
    cfg = tmp_path / "lazyodm.yaml"
    cfg.write_text("proxy:\n  auto_generate: 4\n")
    assert load_settings(cfg).auto_generate is AutoGenerate.FILE_NOT_EXISTS_OR_CHANGED


def test_load_settings_env_wins(tmp_path, monkeypatch):
    cfg = tmp_path / "lazyodm.yaml"
    cfg.write_text("proxy:\n  namespace: FromFile\n  dir: from/file\n")
    monkeypatch.setenv("LAZYODM_PROXY_NAMESPACE", "FromEnv")

    settings = load_settings(cfg)

    assert settings.proxy_namespace == "FromEnv"
    assert settings.proxy_dir == Path("from/file")


def test_load_settings_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings = load_settings(tmp_path / "absent.yaml")
    assert settings.proxy_namespace == "Proxies"


def test_load_settings_invalid_mode(tmp_path):
    cfg = tmp_path / "lazyodm.yaml"
    cfg.write_text("proxy:\n  auto_generate: sometimes\n")
    with pytest.raises(ValidationError):
        load_settings(cfg)
