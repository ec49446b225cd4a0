"""Command line interface for nestzip."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from nestzip.cli_support import ConsoleSink, configure_logging, relative_label, run_payload
from nestzip.config import ConfigError, ConfigManager, NestzipConfig
from nestzip.orchestrator import (
    InvalidInputError,
    RootCompositionError,
    RunCancelled,
    RunResult,
    build_orchestrator,
)
from nestzip.progress import NullSink
from nestzip.scanning import DirectoryScanner, ManifestPolicy, directory_depth, sort_deepest_first

console = Console()
err_console = Console(stderr=True)

_DESTRUCTIVE_PROMPT = (
    "This will zip all subfolders from deepest to shallowest and DELETE the original "
    "folders after zipping. Continue?"
)


class PermissionDeniedError(click.ClickException):
    """Raised when a run stops because the filesystem refused access."""

    exit_code = 3


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(3 if code == "permission_denied" else 1)

    if isinstance(original, click.ClickException):
        raise original
    if code == "permission_denied":
        raise PermissionDeniedError(message) from original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool) -> None:
    """Print CLI output unless quiet mode suppresses it.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
    """

    if quiet and mode != "error":
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Target root path relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(cli_overrides: dict[str, Any] | None = None) -> NestzipConfig:
    try:
        return ConfigManager().load(cli_overrides=cli_overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _resolve_quiet(ctx: click.Context, quiet: bool, config: NestzipConfig) -> bool:
    explicit = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    return quiet if explicit else config.cli.quiet_default


def _emit_run_result(result: RunResult, *, quiet: bool) -> None:
    """Render the outcome of a completed run."""

    if result.failed:
        _emit_message("[red]Folders that could not be archived:[/red]", mode="error", quiet=quiet)
        for path, message in result.failed.items():
            label = relative_label(Path(path), result.root)
            _emit_message(f"  - {label}: {message}", mode="error", quiet=quiet)

    if result.scan_failures:
        _emit_message(
            f"[yellow]{len(result.scan_failures)} folder(s) could not be read and were "
            "skipped.[/yellow]",
            mode="warning",
            quiet=quiet,
        )

    if result.archive is not None:
        _emit_message(
            f"[cyan]Archive written to {result.archive}[/cyan]", mode="detail", quiet=quiet
        )

    headline = (
        "[green]✓ Zipping completed successfully![/green]"
        if result.succeeded
        else "[yellow]Zipping completed with errors.[/yellow]"
    )
    _emit_message(headline, mode="summary", quiet=quiet)
    _emit_message(
        _format_summary_line(
            "Run",
            result.root,
            {
                "archived": len(result.archived),
                "folded": len(result.skipped),
                "failed": len(result.failed),
                "mode": result.mode,
            },
        ),
        mode="summary",
        quiet=quiet,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="nestzip")
def cli() -> None:
    """nestzip archives directory trees bottom-up into nested ZIP files."""


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=str),
    help="Write the top-level archive to this file.",
)
@click.option(
    "--mode",
    type=click.Choice(["delete", "export"]),
    help="`delete` replaces folders with archives; `export` leaves the tree untouched.",
)
@click.option(
    "--zip-root/--no-zip-root",
    default=None,
    help="In delete mode, also archive and remove PATH itself (rejected in export mode).",
)
@click.option("-y", "--yes", is_flag=True, help="Do not ask before deleting folders.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the run.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def run(
    ctx: click.Context,
    path: str,
    output: str | None,
    mode: str | None,
    zip_root: bool | None,
    yes: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """Archive the folders below PATH, deepest first.

    Args:
        ctx: Click context used for parameter source inspection.
        path: Root directory to archive.
        output: Destination file for the top-level archive.
        mode: Run mode overriding the configured default.
        zip_root: Whether to archive and remove PATH in delete mode.
        yes: Skip the confirmation prompt for destructive runs.
        json_output: If True, emit a JSON payload instead of rich output.
        quiet: When True, suppress non-error CLI output.
    """

    if json_output and quiet:
        raise click.ClickException("--json cannot be combined with --quiet.")
    flags = {"run.mode": mode, "run.zip_root": zip_root}
    config = _load_config({key: value for key, value in flags.items() if value is not None})
    configure_logging(config.logging, err_console)
    if zip_root and config.run.mode == "export":
        raise click.BadOptionUsage(
            "zip_root", "--zip-root only applies to delete mode; use --output in export mode."
        )
    quiet_enabled = _resolve_quiet(ctx, quiet, config)

    if config.run.mode == "delete" and config.run.confirm_destructive and not yes:
        click.confirm(_DESTRUCTIVE_PROMPT, abort=True)

    sink = ConsoleSink(
        console,
        show_log=config.cli.show_log,
        quiet=quiet_enabled or json_output,
    )
    orchestrator = build_orchestrator(config, sink=sink, output=Path(output) if output else None)

    try:
        with sink:
            result = orchestrator.run(Path(path))
    except InvalidInputError as exc:
        _handle_cli_error(str(exc), code="invalid_input", json_output=json_output, original=exc)
        return
    except RunCancelled as exc:
        _handle_cli_error(str(exc), code="cancelled", json_output=json_output, original=exc)
        return
    except PermissionError as exc:
        _handle_cli_error(
            f"✗ Permission denied: {exc}. Ensure you have permission to modify the folder.",
            code="permission_denied",
            json_output=json_output,
            original=exc,
        )
        return
    except RootCompositionError as exc:
        if exc.permission_denied:
            _handle_cli_error(
                f"✗ Permission denied: {exc.__cause__}. "
                "Ensure you have permission to modify the folder.",
                code="permission_denied",
                json_output=json_output,
                original=exc,
            )
        _handle_cli_error(
            f"✗ Error: {exc}",
            code="root_composition_failed",
            json_output=json_output,
            details={"exception": type(exc.__cause__).__name__},
            original=exc,
        )
        return
    except Exception as exc:
        _handle_cli_error(
            f"✗ Error: {exc}",
            code="internal_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            original=exc,
        )
        return

    if json_output:
        console.print_json(data=run_payload(result))
        return

    _emit_run_result(result, quiet=quiet_enabled)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--json", "json_output", is_flag=True, help="Emit the plan as JSON.")
@click.pass_context
def plan(ctx: click.Context, path: str, json_output: bool) -> None:
    """Show the processing order for PATH without writing anything.

    Args:
        ctx: Click context.
        path: Root directory to inspect.
        json_output: If True, emit JSON instead of a table.
    """

    config = _load_config()
    configure_logging(config.logging, err_console)
    root = Path(path).expanduser().resolve()

    sink = NullSink()
    scan = DirectoryScanner(follow_symlinks=config.scan.follow_symlinks, sink=sink).scan(root)
    policy = ManifestPolicy(config.markers, sink=sink)
    extension = config.archive.extension

    rows: list[dict[str, Any]] = []
    for node in sort_deepest_first(scan.directories, root):
        qualifies = policy.should_archive(node.path)
        rows.append(
            {
                "path": relative_label(node.path, root),
                "depth": directory_depth(node.path, root),
                "archive": qualifies,
                "entry": f"{node.name}.{extension}" if qualifies else f"{node.name}/",
            }
        )

    if json_output:
        console.print_json(
            data={
                "root": root.as_posix(),
                "directories": rows,
                "scan_failures": [
                    {"path": failure.path.as_posix(), "reason": failure.reason}
                    for failure in scan.failures
                ],
            }
        )
        return

    table = Table(title=f"Processing order for {root}")
    table.add_column("#", justify="right")
    table.add_column("Folder", overflow="fold")
    table.add_column("Depth", justify="right")
    table.add_column("Archived")
    table.add_column("Entry in parent")
    for index, row in enumerate(rows, start=1):
        table.add_row(
            str(index),
            row["path"],
            str(row["depth"]),
            "yes" if row["archive"] else "no",
            row["entry"],
        )
    console.print(table)

    for failure in scan.failures:
        console.print(f"[yellow]Skipped unreadable folder {failure.path}: {failure.reason}[/yellow]")

    archived = sum(1 for row in rows if row["archive"])
    console.print(
        _format_summary_line(
            "Plan",
            root,
            {"folders": len(rows), "archived": archived, "folded": len(rows) - archived},
        )
    )


def _print_config_diff(before: str, after: str) -> bool:
    """Print the difference between two config file texts.

    Returns:
        bool: False when nothing besides the timestamp changed.
    """

    diff = list(
        difflib.unified_diff(
            before.splitlines(),
            after.splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    edits = [
        line
        for line in diff[2:]
        if line.startswith(("+", "-")) and not line[1:].startswith("# Last updated")
    ]
    if not edits:
        return False
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    return True


@cli.group()
def config() -> None:
    """Manage nestzip configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore NESTZIP__ environment overrides.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration.

    Args:
        no_env: If True, show file values without environment overrides.
    """
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(f"[dim]# {manager.config_path}[/dim]", highlight=False)
    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal assigned to KEY.")
def config_set(key: str, value: str) -> None:
    """Store VALUE under the dotted KEY, for example `run.mode`."""
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.read_text()
    try:
        manager.update(key, parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not _print_config_diff(before, manager.read_text()):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(f"[green]Updated {key}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Edit the configuration file; invalid edits are not saved."""
    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.read_text()

    edited = click.edit(before, extension=".yaml")
    if edited is None or edited == before:
        console.print("[yellow]No changes applied.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        manager.write(parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    _print_config_diff(before, manager.read_text())
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
