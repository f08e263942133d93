"""Command module for hashdrift directory checks."""

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.tree import Tree

from hashdrift.cli.app import app, help_callback, version_callback
from hashdrift.config import RunConfig
from hashdrift.manifest.models import DiffReport
from hashdrift.services.check_service import CheckService, DirectoryResult
from hashdrift.services.exceptions import ConfigError, HashdriftError
from hashdrift.utils import notify, setup_logging

# Create rich console
console = Console()


def display_path(path: str) -> str:
    """Printable form of a path whose undecodable bytes were escaped by os.fsdecode."""
    return path.encode("utf-8", "surrogateescape").decode("utf-8", "replace")


def split_path(path: str):
    """Split a relative path into its top-level directory and the remainder."""
    parts = display_path(path).split("/", 1)
    dir_name = parts[0] if len(parts) > 1 else ""
    file_name = parts[1] if len(parts) > 1 else parts[0]
    return dir_name, file_name


def add_records_to_tree(tree: Tree, records: Dict[str, str], style: str):
    """Add path -> detail records to tree, grouped by top-level directory."""
    by_dir = {}
    for path, detail in sorted(records.items()):
        dir_name, file_name = split_path(path)
        by_dir.setdefault(dir_name, []).append((file_name, detail))

    for dir_name, files in sorted(by_dir.items()):
        branch = tree.add(f"[bold]{dir_name}/[/bold]") if dir_name else tree
        for file_name, detail in files:
            branch.add(f"[{style}]{file_name}[/{style}] {detail}".rstrip())


def display_report(title: str, report: DiffReport, verbose: bool = False):
    """Display drift using Rich for better visualization."""
    tree = Tree(title)

    if not report.has_drift:
        tree.add(f"No changes ({report.unchanged} files unchanged)")
        console.print(Panel(tree, expand=False))
        return

    if not verbose:
        # Compact display by top-level directory
        by_dir = {}
        for change_type, paths in [
            ("new", [r.path for r in report.new_files]),
            ("changed", [r.path for r in report.changed]),
            ("missing", [r.path for r in report.missing]),
            ("moved", [r.path for r in report.moved]),
        ]:
            for path in paths:
                dir_name = split_path(path)[0] or "."
                by_dir.setdefault(dir_name, {"new": 0, "changed": 0, "missing": 0, "moved": 0})
                by_dir[dir_name][change_type] += 1

        for dir_name, counts in sorted(by_dir.items()):
            summary_parts = []
            if counts["new"]:
                summary_parts.append(f"[green]+{counts['new']} new[/green]")
            if counts["changed"]:
                summary_parts.append(f"[yellow]~{counts['changed']} changed[/yellow]")
            if counts["missing"]:
                summary_parts.append(f"[red]-{counts['missing']} missing[/red]")
            if counts["moved"]:
                summary_parts.append(f"[blue]->{counts['moved']} moved?[/blue]")
            tree.add(f"[bold]{dir_name}/[/bold] {' '.join(summary_parts)}")

    else:
        counts = report.counts
        summary = []
        if counts.new_file:
            summary.append(f"[green]{counts.new_file} new[/green]")
        if counts.changed:
            summary.append(f"[yellow]{counts.changed} changed[/yellow]")
        if counts.missing:
            summary.append(f"[red]{counts.missing} missing[/red]")
        tree.add(f"Found {', '.join(summary)}")

        if report.new_files:
            branch = tree.add("[green]New Files[/green]")
            add_records_to_tree(
                branch, {r.path: f"({r.hash[:8]})" for r in report.new_files}, "green"
            )
        if report.changed:
            branch = tree.add("[yellow]Changed[/yellow]")
            add_records_to_tree(
                branch,
                {r.path: f"({r.old_hash[:8]} -> {r.new_hash[:8]})" for r in report.changed},
                "yellow",
            )
        if report.missing:
            branch = tree.add("[red]Missing[/red]")
            add_records_to_tree(
                branch,
                {
                    r.path: f"({r.hash[:8]})"
                    + (
                        f" [blue]moved to? {', '.join(map(display_path, r.moved_hint))}[/blue]"
                        if r.moved_hint
                        else ""
                    )
                    for r in report.missing
                },
                "red",
            )

    console.print(Panel(tree, expand=False))


def display_result(result: DirectoryResult, verbose: bool = False):
    """Display the outcome for one directory."""
    if result.first_run:
        note = " (dry run)" if not result.committed else ""
        console.print(
            f"[green]Initialized[/green] {result.directory}: "
            f"{len(result.report.new_files)} files hashed{note}"
        )
    else:
        display_report(str(result.directory), result.report, verbose)

    if result.errors:
        console.print(f"[red]{len(result.errors)} files could not be read:[/red]")
        for path, error in sorted(result.errors.items()):
            console.print(f"  [red]{display_path(path)}[/red]: {error}")


def build_config(**overrides) -> RunConfig:
    """
    Merge command line overrides into settings from the environment.

    Raises:
        ConfigError: If a value fails validation
    """
    try:
        return RunConfig(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {messages}") from e


async def run_check(config: RunConfig, directories: Sequence[Path]) -> List[DirectoryResult]:
    """Run checks over all directories."""
    service = CheckService(config)
    return await service.run(directories)


@app.command(context_settings={"help_option_names": []})
def check(
    directories: Optional[List[Path]] = typer.Argument(
        None, help="Directories to check.", show_default=False
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report errors."),
    nice: Optional[int] = typer.Option(
        None, "--nice", "-n", min=-20, max=19, help="Niceness increment for the run."
    ),
    exclude: Optional[str] = typer.Option(
        None, "--exclude", "-X", help="Regular expression of relative paths to skip."
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Show every drifted file."),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Compute drift without writing manifest or log."
    ),
    as_json: bool = typer.Option(False, "--json", help="Print each report as JSON."),
    no_lock: bool = typer.Option(
        False, "--no-lock", help="Do not toggle write permissions on store files."
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    show_help: Optional[bool] = typer.Option(
        None,
        "--help",
        "-h",
        help="Show this message and exit.",
        callback=help_callback,
        is_eager=True,
        expose_value=False,
    ),
) -> None:
    """Hash directory trees and record drift against the previous run."""
    # sinks from the environment alone, so a rejected option is still notified
    try:
        defaults = build_config()
    except ConfigError:
        defaults = None
    setup_logging(
        level="WARNING" if quiet else "INFO",
        syslog=defaults.syslog if defaults else True,
    )

    try:
        config = build_config(
            quiet=quiet or None,
            nice=nice,
            exclude=exclude,
            dry_run=dry_run or None,
            use_lock=False if no_lock else None,
        )
        setup_logging(
            level="WARNING" if config.quiet else config.log_level,
            log_file=config.log_file,
            syslog=config.syslog,
        )
        results = asyncio.run(run_check(config, directories or []))

    except HashdriftError as e:
        notify(f"hashdrift aborted: {e}", level="ERROR")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except Exception as e:
        logger.exception("Check failed")
        notify(f"hashdrift aborted: {e}", level="ERROR")
        typer.echo(f"Error during check: {e}", err=True)
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps([r.report.to_dict() for r in results], indent=2))
    elif not config.quiet:
        for result in results:
            display_result(result, verbose)
