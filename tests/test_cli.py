"""CLI tests for ``lazyodm proxies``.

Run:
    python -m pytest tests/test_cli.py -v
"""

import pytest
import typer
from typer.testing import CliRunner

from lazyodm import cli
from lazyodm.manager import DocumentManager

runner = CliRunner()

MANAGER = "sample_documents:create_manager"


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, proxy_dir, proxy_namespace):
    monkeypatch.setenv("LAZYODM_PROXY_DIR", str(proxy_dir))
    monkeypatch.setenv("LAZYODM_PROXY_NAMESPACE", proxy_namespace)
    monkeypatch.setenv("LAZYODM_AUTO_GENERATE", "never")
    monkeypatch.setattr(cli.console, "width", 400)


def test_load_manager_from_callable():
    assert isinstance(cli.load_manager(MANAGER), DocumentManager)


@pytest.mark.parametrize(
    "spec",
    ["sample_documents", "sample_documents:nope", "no_such_module:dm", "sample_documents:NON_PROXIED"],
)
def test_load_manager_rejects_bad_specs(spec):
    with pytest.raises(typer.BadParameter):
        cli.load_manager(spec)


def test_generate(proxy_dir):
    result = runner.invoke(cli.app, ["proxies", "generate", MANAGER])

    assert result.exit_code == 0, result.output
    assert 'Processing document "sample_documents.User"' in result.output
    assert "sample_documents.BaseDocument" not in result.output
    assert "Generated 9 proxy classes" in result.output
    assert (proxy_dir / "__CG__sample_documentsUser.py").exists()
    assert not (proxy_dir / "__CG__sample_documentsMoney.py").exists()


def test_generate_with_filter_and_dest(tmp_path):
    dest = tmp_path / "build"

    result = runner.invoke(cli.app, ["proxies", "generate", MANAGER, "--dest", str(dest), "--filter", "Account"])

    assert result.exit_code == 0, result.output
    assert "Generated 2 proxy classes" in result.output
    assert sorted(p.name for p in dest.iterdir()) == [
        "__CG__sample_documentsAccount.py",
        "__CG__sample_documentsAdminAccount.py",
    ]


def test_generate_nothing_matches():
    result = runner.invoke(cli.app, ["proxies", "generate", MANAGER, "--filter", "Nothing"])
    assert result.exit_code == 0
    assert "No documents to process" in result.output


def test_generate_bad_manager():
    result = runner.invoke(cli.app, ["proxies", "generate", "not-a-spec"])
    assert result.exit_code != 0


def test_status(proxy_dir):
    before = runner.invoke(cli.app, ["proxies", "status", MANAGER])
    assert before.exit_code == 0, before.output
    assert "missing" in before.output
    assert "skipped" in before.output
    assert "fresh" not in before.output

    runner.invoke(cli.app, ["proxies", "generate", MANAGER])
    after = runner.invoke(cli.app, ["proxies", "status", MANAGER])

    assert after.exit_code == 0, after.output
    assert "fresh" in after.output
    assert "missing" not in after.output
    assert "Mode: never" in after.output


def test_log_level_option():
    result = runner.invoke(cli.app, ["--log-level", "debug", "proxies", "status", MANAGER])
    assert result.exit_code == 0, result.output
