# === NAVMAP v1 ===
# {
#   "module": "CurseArchive.cli",
#   "purpose": "Typer CLI for running and verifying the archive.",
#   "sections": [
#     {
#       "id": "clicontext",
#       "name": "CliContext",
#       "anchor": "class-clicontext",
#       "kind": "class"
#     },
#     {
#       "id": "main",
#       "name": "main",
#       "anchor": "function-main",
#       "kind": "function"
#     },
#     {
#       "id": "run-cmd",
#       "name": "run_cmd",
#       "anchor": "function-run-cmd",
#       "kind": "function"
#     },
#     {
#       "id": "verify-cmd",
#       "name": "verify_cmd",
#       "anchor": "function-verify-cmd",
#       "kind": "function"
#     },
#     {
#       "id": "version-cmd",
#       "name": "version_cmd",
#       "anchor": "function-version-cmd",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the archiver.

Global options (``--config``, ``-v/-vv``, ``--version``) go before the
subcommand. ``-v`` prints detail lines (config file, blobs without a
sidecar) and ``-vv`` also lowers the log level to DEBUG::

    curse-archive --config archive.yaml run --type mod --type modpack
    curse-archive -vv run --trust-existing --project-workers 4
    curse-archive verify --data-dir data

Exit codes: ``0`` success (per-file failures are logged, not fatal), ``1``
fatal manifest failure, strict-mode errors, or verification mismatches,
``2`` invalid configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console

from CurseArchive import __version__
from CurseArchive import runner
from CurseArchive.config import ArchiveConfig, load_config
from CurseArchive.errors import ConfigError, ManifestFetchError, ManifestParseError
from CurseArchive.logging_utils import setup_logging
from CurseArchive.storage import ContentStore
from CurseArchive.verify import verify_store

_console = Console()


class CliContext:
    """Global flags shared by every command."""

    def __init__(self, config: Optional[Path] = None, verbosity: int = 0) -> None:
        self.config = config
        self.verbosity = verbosity
        self.console = _console

    def load(self, overrides: Optional[Dict[str, Any]] = None) -> ArchiveConfig:
        """Load configuration, exiting with status 2 when it is invalid."""

        cli_overrides: Dict[str, Any] = dict(overrides or {})
        if self.verbosity >= 2:
            cli_overrides["logging"] = {"level": "DEBUG"}
        try:
            return load_config(self.config, cli_overrides=cli_overrides)
        except ConfigError as e:
            self.console.print(f"[red]Configuration error: {e}[/red]")
            raise typer.Exit(2)

    def log_debug(self, message: str) -> None:
        if self.verbosity >= 1:
            self.console.print(f"[dim]{message}[/dim]")


app = typer.Typer(
    name="curse-archive",
    help="CurseArchive CLI - Incrementally mirror the CurseForge catalog",
    no_args_is_help=True,
)

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"curse-archive {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="CURSEARCHIVE_CONFIG",
        help="Path to config file (YAML or JSON)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Show detail lines (-v); also log at DEBUG (-vv)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """CurseArchive CLI - download and verify catalog files."""
    global _context
    _context = CliContext(config=config, verbosity=verbosity)
    _context.log_debug(f"Config file: {config}")


@app.command("run")
def run_cmd(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Storage root"),
    manifest_url: Optional[str] = typer.Option(
        None, "--manifest-url", help="Manifest URL or local manifest path"
    ),
    types: Optional[List[str]] = typer.Option(
        None, "--type", "-t", help="Project type to archive (repeatable)"
    ),
    always_hash_check: Optional[bool] = typer.Option(
        None,
        "--always-hash-check/--trust-existing",
        help="Re-download blobs without a sidecar, or trust them as-is",
    ),
    project_workers: Optional[int] = typer.Option(None, "--project-workers", min=1),
    file_workers: Optional[int] = typer.Option(None, "--file-workers", min=1),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--no-strict", help="Exit 1 if any error was logged during the run"
    ),
) -> None:
    """Fetch the manifest and archive every selected project."""
    ctx = get_context()
    overrides: Dict[str, Any] = {
        "data_dir": str(data_dir) if data_dir else None,
        "manifest_url": manifest_url,
        "always_hash_check": always_hash_check,
        "strict": strict,
        "selection": {"project_types": list(types) if types else None},
        "concurrency": {"project_workers": project_workers, "file_workers": file_workers},
    }
    config = ctx.load(overrides)
    setup_logging(
        level=config.logging.level,
        log_dir=config.resolved_log_dir(),
        retention_days=config.logging.retention_days,
        max_log_size_mb=config.logging.max_log_size_mb,
    )

    try:
        summary = runner.run(config)
    except (ManifestFetchError, ManifestParseError) as e:
        ctx.console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)

    ctx.console.print(
        f"[bold]Archived {summary.completed}/{summary.selected} projects[/bold]: "
        f"{summary.downloaded} downloaded, {summary.skipped} up to date, "
        f"{summary.failed_files} failed, {summary.missing_files} missing"
    )
    if summary.errors:
        ctx.console.print(
            f"[yellow]{summary.errors} error(s) recorded in "
            f"{ContentStore(config.data_dir).error_log_path}[/yellow]"
        )
    ctx.console.print("Done")
    raise typer.Exit(summary.exit_code(config.strict))


@app.command("verify")
def verify_cmd(
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", "-d", help="Storage root"),
) -> None:
    """Rehash every archived blob against its sidecar without touching the network."""
    ctx = get_context()
    config = ctx.load({"data_dir": str(data_dir) if data_dir else None})
    report = verify_store(ContentStore(config.data_dir))

    for blob in report.mismatched:
        ctx.console.print(f"[red]✗ sha256 mismatch:[/red] {blob}")
    for blob in report.unreadable:
        ctx.console.print(f"[red]✗ unreadable:[/red] {blob}")
    for blob in report.unrecorded:
        ctx.log_debug(f"no sidecar: {blob}")
    ctx.console.print(
        f"Checked {report.checked} blobs: {report.verified} verified, "
        f"{len(report.mismatched)} mismatched, {len(report.unrecorded)} without sidecar, "
        f"{len(report.unreadable)} unreadable"
    )
    if not report.ok:
        raise typer.Exit(1)


@app.command("version")
def version_cmd() -> None:
    """Show version information."""
    get_context().console.print(f"[bold]curse-archive[/bold] version {__version__}")


__all__ = ["app", "CliContext", "get_context", "main"]
