"""Main Typer application for the postcheck CLI.

This module contains the main Typer app instance and registers all command
groups. It provides the entry point for the CLI and handles global options
like profile selection, debug mode and version display.
"""

import os
import sys
from functools import wraps
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.traceback import install

from . import __version__
from .config import ConfigManager, ENV_BASE_URL, ENV_TIMEOUT, ENV_SEED, ENV_WORKERS
from .exceptions import PostCheckError, ConfigurationError, format_error_for_user
from .report import EXIT_FAILED, EXIT_CONFIGURATION_ERROR

# Install rich traceback handler for better error display
install(show_locals=False)

ENV_CONFIG_DIR = "POSTCHECK_CONFIG_DIR"

app = typer.Typer(
    name="postcheck",
    help="Contract-verification harness for a posts REST API",
    context_settings={"help_option_names": ["-h", "--help"]},
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"postcheck {__version__}")
        raise typer.Exit()


def show_environment_info(debug: bool) -> None:
    """Show environment variable information if debug is enabled."""
    if not debug:
        return

    err_console.print("[dim]Environment variables:[/dim]")
    for var in (ENV_BASE_URL, ENV_TIMEOUT, ENV_SEED, ENV_WORKERS, ENV_CONFIG_DIR):
        err_console.print(f"[dim]  {var}: {escape(os.getenv(var, '[not set]'))}[/dim]")


@app.callback()
def main(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(
        None,
        "--profile",
        "-p",
        help="Configuration profile to use",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """postcheck - verify a posts REST API against its contract.

    Examples:
        # Run every scenario against a local server
        postcheck run --base-url http://localhost:3000

        # Replay a run with the same fixtures
        postcheck run --seed 1234 --scenario post-lifecycle

        # Save a profile and make it the default
        postcheck config add local --base-url http://localhost:3000
    """
    config_dir = os.getenv(ENV_CONFIG_DIR)
    try:
        config_manager = ConfigManager(Path(config_dir) if config_dir else None)
    except ConfigurationError as e:
        err_console.print(f"[red]{escape(format_error_for_user(e, debug))}[/red]")
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    if profile is not None:
        try:
            config_manager.get_profile(profile)
        except ConfigurationError as e:
            err_console.print(f"[red]Error loading profile '{profile}': {escape(e.message)}[/red]")
            raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["profile_name"] = profile
    ctx.obj["config_manager"] = config_manager
    ctx.obj["console"] = console
    ctx.obj["err_console"] = err_console

    if debug:
        err_console.print("[dim]Debug mode enabled[/dim]")
        show_environment_info(debug)
        active = profile or config_manager.get_active_profile()
        if active:
            err_console.print(f"[dim]Using profile: {active}[/dim]")


def handle_exceptions(func):
    """Decorator to handle common exceptions in commands."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (typer.Exit, typer.Abort):
            raise
        except PostCheckError as e:
            ctx = kwargs.get("ctx")
            debug = ctx.obj.get("debug", False) if ctx is not None and ctx.obj else False
            err_console.print(f"[red]{escape(format_error_for_user(e, debug))}[/red]", highlight=False)
            if isinstance(e, ConfigurationError):
                raise typer.Exit(EXIT_CONFIGURATION_ERROR)
            if not debug:
                err_console.print("[dim]Use --debug for more details[/dim]")
            raise typer.Exit(EXIT_FAILED)
        except KeyboardInterrupt:
            err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(130)
    return wrapper


_registered = False


def register_commands() -> None:
    """Register all command groups with the main app."""
    global _registered
    if _registered:
        return

    from .cmds import config_app
    from .cmds.run import run, scenarios

    app.command("run")(run)
    app.command("scenarios")(scenarios)
    app.add_typer(config_app, name="config", help="Manage configuration profiles")
    _registered = True


def cli():
    """Entry point for the CLI."""
    register_commands()

    try:
        app()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    cli()
