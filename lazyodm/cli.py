"""Command-line interface for lazyodm."""

import importlib
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from lazyodm.common.errors import LazyODMError
from lazyodm.manager import DocumentManager
from lazyodm.mapping.metadata import ClassMetadata

logger = logging.getLogger("lazyodm.cli")

app = typer.Typer(
    name="lazyodm",
    help="lazyodm - lazy-loading document proxies",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

# Proxies subcommand
proxies_app = typer.Typer(help="Proxy class generation commands", add_completion=False)
app.add_typer(proxies_app, name="proxies")


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[bold green]✓[/bold green] {message}")


def print_error(message: str) -> None:
    """Print error message."""
    console.print(f"[bold red]✗[/bold red] {message}")


def print_info(message: str) -> None:
    """Print info message."""
    console.print(f"[bold blue]ℹ[/bold blue] {message}")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ...)"),
) -> None:
    """Configure logging for all commands."""
    numeric_level = getattr(logging, log_level.upper(), logging.WARNING)
    logging.getLogger("lazyodm").setLevel(numeric_level)
    # Also set root handler if none configured
    if not logging.getLogger().handlers:
        logging.basicConfig(level=numeric_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")


def load_manager(spec: str) -> DocumentManager:
    """Resolve ``module:attribute`` to a DocumentManager.

    The attribute may be a DocumentManager or a zero-argument callable
    returning one. The current directory is importable.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise typer.BadParameter(f"Expected module:attribute, got {spec!r}", param_hint="MANAGER")

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        obj = importlib.import_module(module_name)
        for part in attr.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot load {spec!r}: {e}", param_hint="MANAGER") from e

    if not isinstance(obj, DocumentManager) and callable(obj):
        obj = obj()
    if not isinstance(obj, DocumentManager):
        raise typer.BadParameter(f"{spec!r} is not a DocumentManager", param_hint="MANAGER")
    logger.debug("Loaded document manager from %s", spec)
    return obj


def filter_metadata(metadatas: list[ClassMetadata], filters: Optional[list[str]]) -> list[ClassMetadata]:
    """Keep metadata whose class name contains any of ``filters``."""
    if not filters:
        return metadatas
    return [m for m in metadatas if any(f in m.name for f in filters)]


@proxies_app.command("generate")
def proxies_generate(
    manager: str = typer.Argument(..., help="Document manager as module:attribute"),
    dest: Optional[Path] = typer.Option(
        None, "--dest", "-d", help="Destination directory (default: configured proxy directory)"
    ),
    filters: Optional[list[str]] = typer.Option(
        None, "--filter", "-f", help="Only generate documents whose class name contains this text"
    ),
) -> None:
    """Generate proxy classes for mapped documents.

    Examples:
        lazyodm proxies generate app.odm:dm
        lazyodm proxies generate app.odm:create_manager --dest build/proxies --filter User
    """
    dm = load_manager(manager)
    factory = dm.get_proxy_factory()
    metadatas = filter_metadata(dm.get_metadata_factory().get_all_metadata(), filters)

    if not metadatas:
        print_info("No documents to process")
        return

    target_dir = dest or factory.proxy_dir
    for metadata in metadatas:
        if not factory.skip_class(metadata):
            console.print(f'Processing document "[cyan]{metadata.name}[/cyan]"')

    try:
        count = factory.generate_proxy_classes(metadatas, target_dir)
    except LazyODMError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(f"Generated {count} proxy classes to [bold]{target_dir}[/bold]")


@proxies_app.command("status")
def proxies_status(
    manager: str = typer.Argument(..., help="Document manager as module:attribute"),
) -> None:
    """Show the proxy file of every mapped document and whether it is current."""
    dm = load_manager(manager)
    factory = dm.get_proxy_factory()

    table = Table(
        title="[bold cyan]Document Proxies[/bold cyan]",
        show_header=True,
        header_style="bold magenta",
        border_style="cyan",
    )
    table.add_column("Document", style="white")
    table.add_column("Proxy File", style="dim")
    table.add_column("Exists", justify="center")
    table.add_column("Status", justify="center")

    for metadata in dm.get_metadata_factory().get_all_metadata():
        if factory.skip_class(metadata):
            table.add_row(metadata.name, "-", "-", "[dim]skipped[/dim]")
            continue
        file_name = factory.get_proxy_file_name(metadata.name)
        exists = file_name.exists()
        if not exists:
            status = "[red]missing[/red]"
        elif factory.is_proxy_file_stale(metadata, file_name):
            status = "[yellow]stale[/yellow]"
        else:
            status = "[green]fresh[/green]"
        table.add_row(metadata.name, str(file_name), "yes" if exists else "no", status)

    console.print(table)
    mode = factory.auto_generate.name.lower()
    console.print(f"Mode: [bold]{mode}[/bold]  Namespace: [bold]{factory.proxy_namespace}[/bold]")


if __name__ == "__main__":
    app()
