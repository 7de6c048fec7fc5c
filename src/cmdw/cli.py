"""CLI entry point using typer."""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from cmdw import __version__
from cmdw.config import (
    CONFIG_FILE,
    AppConfig,
    ConfigError,
    load_config,
    parse_bool,
    parse_int,
    save_config,
)
from cmdw.hooks.installer import HookMode, InstallResult
from cmdw.services.query import HistoryQuery
from cmdw.session import create_session, print_history
from cmdw.utils.system import check_shell

app = typer.Typer(
    name="cmdw",
    help="Timestamped command history for interactive shells.",
    add_completion=False,
)
ignore_app = typer.Typer(help="Manage ignored command patterns.")
app.add_typer(ignore_app, name="ignore")
console = Console()
err_console = Console(stderr=True)


def _load() -> AppConfig:
    try:
        return load_config()
    except ConfigError as e:
        err_console.print(f"[red]Invalid configuration: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _setup_logging(config: AppConfig) -> None:
    log_path = Path(config.logging.file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(str(log_path)),
            logging.StreamHandler(sys.stderr),
        ],
    )


@app.command()
def shell(
    hooks: HookMode = typer.Option(None, "--hooks", help="Hook primitive to use (auto, registry, trap)"),
) -> None:
    """Start an interactive shell that timestamps every command."""
    config = _load()
    _setup_logging(config)

    installed, version_info = check_shell(config.shell.program)
    if not installed:
        console.print(f"[red]{version_info}[/red]")
        raise typer.Exit(1)

    try:
        session = create_session(config, mode=hooks, console=console)
    except ValueError:
        console.print(f"[red]Invalid shell.hooks value: {config.shell.hooks}[/red]")
        raise typer.Exit(1)
    if session.installed is InstallResult.FAILED:
        console.print("[yellow]Hooks could not be installed, commands will not be logged.[/yellow]")

    console.print(f"[dim]cmdw v{__version__} | {version_info} | history: {config.history.file}[/dim]")
    status = session.shell.run()
    raise typer.Exit(status)


@app.command()
def history(
    index: int = typer.Argument(None, help="Entry number to show"),
) -> None:
    """List logged commands, or show one entry with its timestamps."""
    config = _load()
    query = HistoryQuery(config.history.file)

    if index is not None:
        if not print_history(console, query, index):
            console.print(f"[red]No history entry {index}.[/red]")
            raise typer.Exit(1)
        return

    table = Table(title="Command history")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Command", style="green")
    for number, text in query.list():
        table.add_row(str(number), Text(text))
    if table.row_count == 0:
        console.print("[dim]No commands logged.[/dim]")
        return
    console.print(table)


def _set_enabled(enabled: bool) -> None:
    config = _load()
    config.engine.enabled = enabled
    save_config(config)


@app.command()
def enable() -> None:
    """Log commands in new sessions."""
    _set_enabled(True)
    console.print("[green]cmdw enabled.[/green]")


@app.command()
def disable() -> None:
    """Stop logging commands in new sessions."""
    _set_enabled(False)
    console.print("[yellow]cmdw disabled.[/yellow]")


@ignore_app.command("list")
def ignore_list() -> None:
    """Show ignore patterns in match order."""
    config = _load()
    if not config.engine.ignore:
        console.print("[dim]No ignore patterns, every command is logged.[/dim]")
        return
    for i, rule in enumerate(config.engine.ignore, start=1):
        console.print(f"{i:>3}  {rule}", markup=False, highlight=False)


@ignore_app.command("add")
def ignore_add(pattern: str = typer.Argument(..., help="Regular expression matched against the whole command")) -> None:
    """Add an ignore pattern."""
    try:
        re.compile(pattern)
    except re.error as e:
        console.print(f"[red]Invalid pattern: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    config = _load()
    if pattern in config.engine.ignore:
        console.print(f"[dim]Already ignored: {escape(pattern)}[/dim]")
        return
    config.engine.ignore.append(pattern)
    save_config(config)
    console.print(f"[green]Ignoring: {escape(pattern)}[/green]")


@ignore_app.command("remove")
def ignore_remove(pattern: str = typer.Argument(..., help="Pattern to remove")) -> None:
    """Remove an ignore pattern."""
    config = _load()
    if pattern not in config.engine.ignore:
        console.print(f"[red]Not an ignore pattern: {escape(pattern)}[/red]")
        raise typer.Exit(1)
    config.engine.ignore.remove(pattern)
    save_config(config)
    console.print(f"[green]Removed: {escape(pattern)}[/green]")


@app.command()
def config(
    key: str = typer.Argument(None, help="Config key (e.g., history.max_records)"),
    value: str = typer.Argument(None, help="New value"),
) -> None:
    """View or modify configuration."""
    cfg = _load()

    if key is None:
        # Show all config
        table = Table(title="Configuration")
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("history.file", Text(cfg.history.file))
        table.add_row("history.max_records", str(cfg.history.max_records))
        table.add_row("engine.enabled", str(cfg.engine.enabled))
        table.add_row("engine.ignore", Text(", ".join(cfg.engine.ignore) or "(none)"))
        table.add_row("shell.program", Text(cfg.shell.program))
        table.add_row("shell.prompt", Text(cfg.shell.prompt))
        table.add_row("shell.hooks", Text(cfg.shell.hooks))
        table.add_row("shell.show_timestamps", str(cfg.shell.show_timestamps))
        table.add_row("logging.level", Text(cfg.logging.level))
        table.add_row("logging.file", Text(cfg.logging.file))

        console.print(table)
        console.print(f"[dim]{CONFIG_FILE}[/dim]")
        return

    if value is None:
        console.print("[red]Usage: cmdw config <key> <value>[/red]")
        raise typer.Exit(1)

    # Set config value
    parts = key.split(".")
    if len(parts) != 2:
        console.print("[red]Key format: section.key (e.g., history.max_records)[/red]")
        raise typer.Exit(1)

    section, attr = parts
    section_map = {"history": cfg.history, "engine": cfg.engine, "shell": cfg.shell, "logging": cfg.logging}

    if section not in section_map:
        console.print(f"[red]Unknown section: {escape(section)}[/red]")
        raise typer.Exit(1)

    obj = section_map[section]
    if not hasattr(obj, attr):
        console.print(f"[red]Unknown key: {escape(key)}[/red]")
        raise typer.Exit(1)

    # Type coercion
    current = getattr(obj, attr)
    if isinstance(current, list):
        console.print(f"[red]Use 'cmdw ignore add/remove' to change {escape(key)}[/red]")
        raise typer.Exit(1)
    try:
        if isinstance(current, bool):
            typed_value = parse_bool(value, key)
        elif isinstance(current, int):
            typed_value = parse_int(value, key)
            if typed_value < 0:
                raise ConfigError(f"{key}: must be >= 0, got {typed_value}")
        else:
            typed_value = value
    except ConfigError as e:
        console.print(f"[red]Invalid value: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if key == "shell.hooks" and typed_value not in [m.value for m in HookMode]:
        console.print(f"[red]shell.hooks must be one of: {', '.join(m.value for m in HookMode)}[/red]")
        raise typer.Exit(1)

    setattr(obj, attr, typed_value)
    save_config(cfg)
    console.print(f"[green]{escape(key)} = {escape(str(typed_value))}[/green]")


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines"),
) -> None:
    """View cmdw's diagnostic log."""
    cfg = _load()
    log_path = Path(cfg.logging.file).expanduser().resolve()
    if not log_path.exists():
        console.print("[dim]No log file found.[/dim]")
        return

    content = log_path.read_text(errors="replace")
    log_lines = content.strip().split("\n")
    for line in log_lines[-lines:]:
        console.print(line, markup=False, highlight=False)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"cmdw v{__version__}")

    cfg = _load()
    installed, version_info = check_shell(cfg.shell.program)
    if installed:
        console.print(f"Shell: {version_info}")
    else:
        console.print(f"Shell: [yellow]{cfg.shell.program} not installed[/yellow]")

    console.print(f"Python: {sys.version.split()[0]}")
    console.print(f"Config: {CONFIG_FILE}")


if __name__ == "__main__":
    app()
