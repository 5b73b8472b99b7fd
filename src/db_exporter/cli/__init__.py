"""CLI for database exports.

Usage:
    db-exporter profiles
    db-exporter --profile local analyze --threshold-mb 25
    db-exporter --profile local export
    db-exporter --profile local export --tables users,logs --format csv --csv-multi archive
    db-exporter --profile local export --skip audit_log --format sql --scope structure
    db-exporter --url mysql://root:pw@localhost/shop export --format xml --sse

Commands:
    profiles  - List available profiles
    analyze   - Show table sizes and flag large tables
    export    - Export tables as SQL, CSV or XML
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from db_exporter.config.loader import load_db_config
from db_exporter.config.models import ExporterConfig, ExportSettings
from db_exporter.errors import ExportError, InvalidJob
from db_exporter.export.analysis import analyze_tables, split_main_and_skipped
from db_exporter.export.events import CompleteEvent, ErrorEvent, ProgressEvent
from db_exporter.export.models import build_job
from db_exporter.export.naming import build_destination
from db_exporter.export.service import ExportHandle, cancel, start_export
from db_exporter.factory import ProfileNotFoundError, get_active_profile_name, get_source

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("db_exporter")


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _split_names(value: str | None) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _load_settings(args: argparse.Namespace) -> ExportSettings:
    """Export settings from db.toml, or defaults when running from --url."""
    if args.url:
        try:
            return load_db_config(args.config).export
        except FileNotFoundError:
            return ExportSettings()
    return load_db_config(args.config).export


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_analyze(args: argparse.Namespace) -> int:
    """Async implementation for analyze command.

    Returns:
        0 on success, 1 if the database cannot be reached.
    """
    settings = _load_settings(args)
    threshold = args.threshold_mb if args.threshold_mb is not None else settings.large_table_threshold_mb

    source = get_source(args.profile, args.config, args.env_prefix, args.url)
    try:
        infos = await analyze_tables(source, threshold)
    except ExportError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        await source.close()

    table = Table(
        title=f"Tables in {source.database_name or 'database'}",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Table")
    table.add_column("Size (MB)", justify="right")
    table.add_column("")

    for info in infos:
        flag = "[yellow]large[/yellow]" if info.is_large else ""
        table.add_row(info.name, f"{info.size_mb:.2f}", flag)

    console.print(table)

    main, skipped = split_main_and_skipped(infos)
    console.print(
        f"\nMain backup: [bold]{len(main)}[/bold] tables, "
        f"skipped large tables: [bold yellow]{len(skipped)}[/bold yellow] "
        f"(threshold {threshold} MB)"
    )
    return 0


async def _async_export(args: argparse.Namespace) -> int:
    """Async implementation for export command.

    The first Ctrl-C sets the job's cancellation token; the export stops at
    its next checkpoint and removes the partial file.

    Returns:
        0 when the export completes, 1 on error or cancellation.
    """
    settings = _load_settings(args)
    source = get_source(args.profile, args.config, args.env_prefix, args.url)
    loop = asyncio.get_running_loop()
    handle: ExportHandle | None = None

    try:
        requested = _split_names(args.tables)
        if requested:
            tables = requested
            kind = "table" if len(tables) == 1 else "selected"
        else:
            skipped = set(_split_names(args.skip))
            tables = [t for t in await source.table_names() if t not in skipped]
            kind = "main"

        try:
            job = build_job(
                tables,
                format=args.format or settings.default_format,
                scope=args.scope or settings.default_scope,
                csv_multi=args.csv_multi or settings.default_csv_multi,
            )
        except InvalidJob as e:
            console.print(f"[bold red]x[/bold red] {e}")
            return 1

        destination = args.output or build_destination(
            settings.output_dir, job, source.database_name, kind
        )
        handle = ExportHandle(job=job, destination=Path(destination))

        try:
            loop.add_signal_handler(signal.SIGINT, cancel, handle)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable; Ctrl-C will abort without cleanup")

        channel = start_export(handle, source, chunk_size=args.chunk_size or settings.chunk_size)

        if args.sse:
            async for event in channel:
                sys.stdout.write(event.to_sse())
                sys.stdout.flush()
        else:
            with Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Starting export...", total=100)
                async for event in channel:
                    if isinstance(event, ProgressEvent):
                        progress.update(
                            task, completed=event.overall_percent, description=event.message
                        )
                    elif isinstance(event, CompleteEvent):
                        progress.update(task, completed=100)

        terminal = channel.terminal
    except ExportError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    finally:
        if handle is not None:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass
        await source.close()

    if isinstance(terminal, CompleteEvent):
        if not args.sse:
            console.print(
                f"[bold green]v[/bold green] {terminal.message} "
                f"[bold cyan]{terminal.result_locator}[/bold cyan]"
            )
        return 0

    if isinstance(terminal, ErrorEvent) and not args.sse:
        style = "yellow" if terminal.code == "cancelled" else "red"
        console.print(f"[bold {style}]x[/bold {style}] {terminal.message}")
    return 1


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if db.toml is missing or invalid.
    """
    try:
        config: ExporterConfig = load_db_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = get_active_profile_name(config, args.profile, args.env_prefix)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.provider,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    """Show table sizes.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_analyze(args))


def cmd_export(args: argparse.Namespace) -> int:
    """Run an export.  Wraps the async implementation with ``asyncio.run()``."""
    return _run(_async_export(args))


def _run(coro) -> int:
    try:
        return asyncio.run(coro)
    except (FileNotFoundError, ValueError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db-exporter",
        description="Streaming database export to SQL, CSV or XML",
    )

    parser.add_argument("--config", default=None, help="Path to db.toml (default: ./db.toml)")
    parser.add_argument("--profile", "-p", default=None, help="Profile name from db.toml")
    parser.add_argument(
        "--url",
        default=None,
        help="Connect to this database URL instead of a profile",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    # analyze command
    p_analyze = subparsers.add_parser(
        "analyze",
        help="Show table sizes and flag large tables",
    )
    p_analyze.add_argument(
        "--threshold-mb",
        type=float,
        default=None,
        help="Tables larger than this are flagged (default: from db.toml, 10)",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    # export command
    p_export = subparsers.add_parser("export", help="Export tables")
    p_export.add_argument(
        "--tables",
        "-t",
        default=None,
        help="Comma-separated tables to export (default: all tables)",
    )
    p_export.add_argument(
        "--skip",
        default=None,
        help="Comma-separated tables to leave out when exporting all tables",
    )
    p_export.add_argument("--format", "-f", choices=["sql", "csv", "xml"], default=None)
    p_export.add_argument(
        "--scope",
        choices=["structure", "data", "both"],
        default=None,
        help="What to export (SQL only)",
    )
    p_export.add_argument(
        "--csv-multi",
        choices=["archive", "concatenated"],
        default=None,
        help="Multi-table CSV packaging: one ZIP member per table, or one file",
    )
    p_export.add_argument("--output", "-o", default=None, help="Output file path")
    p_export.add_argument("--chunk-size", type=int, default=None, help="Rows per chunk")
    p_export.add_argument(
        "--sse",
        action="store_true",
        help="Print progress as a server-sent event stream",
    )
    p_export.set_defaults(func=cmd_export)

    return parser


def main() -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args()
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
