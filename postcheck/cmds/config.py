"""Configuration management commands for the postcheck CLI.

This module provides commands for managing target server profiles:
adding, listing, inspecting, switching and removing them.
"""

import os
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.markup import escape

from ..config import ENV_BASE_URL, ENV_SEED, ENV_TIMEOUT, ENV_WORKERS
from ..exceptions import ConfigurationError
from ..report import EXIT_CONFIGURATION_ERROR

app = typer.Typer()
console = Console()


@app.command("add")
def add_profile(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Profile name"),
    base_url: str = typer.Option(..., "--base-url", help="Base URL of the posts API"),
    timeout: int = typer.Option(30, "--timeout", help="Request timeout in seconds"),
    workers: int = typer.Option(1, "--workers", help="Scenarios run concurrently"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for fixture generation"),
    read_after_delete_retries: int = typer.Option(
        0, "--read-after-delete-retries", help="Retries before a deleted post must read as 404"
    ),
) -> None:
    """Add a configuration profile.

    The first profile added becomes the active one.

    Examples:
        # Add a local server
        postcheck config add local --base-url http://localhost:3000

        # Add a staging server with a fixed seed
        postcheck config add staging --base-url https://staging.example.com --seed 42
    """
    config_manager = ctx.obj["config_manager"]

    try:
        profile = config_manager.create_profile(
            name,
            base_url,
            timeout=timeout,
            max_workers=workers,
            seed=seed,
            read_after_delete_retries=read_after_delete_retries,
        )
    except ConfigurationError as e:
        console.print(f"[red]Error adding profile: {escape(e.message)}[/red]")
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    if config_manager.get_active_profile() == profile.name:
        console.print(f"[green]Profile '{name}' saved and set as active![/green]")
    else:
        console.print(f"[green]Profile '{name}' saved![/green]")


@app.command("list")
def list_profiles(
    ctx: typer.Context,
) -> None:
    """List all configuration profiles.

    Examples:
        # List all profiles
        postcheck config list
    """
    config_manager = ctx.obj["config_manager"]
    profiles = config_manager.list_profiles()

    if not profiles:
        console.print("[yellow]No profiles configured. Run 'postcheck config add' to create one.[/yellow]")
        return

    table = Table(title="Configuration Profiles")
    table.add_column("Name", style="bold")
    table.add_column("Base URL", style="cyan")
    table.add_column("Timeout", justify="right", style="dim")
    table.add_column("Workers", justify="right", style="dim")
    table.add_column("Seed", justify="right", style="dim")
    table.add_column("Active", style="yellow")

    for profile in profiles:
        table.add_row(
            profile["name"],
            profile["base_url"],
            str(profile["timeout"]),
            str(profile["max_workers"]),
            "—" if profile["seed"] is None else str(profile["seed"]),
            "✓" if profile["active"] else "—",
        )

    console.print(table)


@app.command("show")
def show_profile(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Profile name (default: the effective configuration)"),
) -> None:
    """Show a profile and the environment variables that override it.

    Without a name, shows the configuration a run would use.

    Examples:
        # Show the effective configuration
        postcheck config show

        # Show a saved profile
        postcheck config show staging
    """
    config_manager = ctx.obj["config_manager"]

    try:
        if name is not None:
            profile = config_manager.get_profile(name)
        else:
            profile = config_manager.resolve_profile(ctx.obj["profile_name"])
    except ConfigurationError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    table = Table(title=f"Profile: {profile.name}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="bold")

    for key, value in profile.model_dump().items():
        table.add_row(key, "[dim]not set[/dim]" if value is None else escape(str(value)))

    table.add_row("", "")
    table.add_row("[bold]Environment Variables[/bold]", "")
    for var in (ENV_BASE_URL, ENV_TIMEOUT, ENV_WORKERS, ENV_SEED):
        value = os.getenv(var)
        table.add_row(var, escape(value) if value else "[dim]not set[/dim]")

    table.add_row("Config File", str(config_manager.config_file))
    console.print(table)


@app.command("use")
def use_profile(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Profile name to make active"),
) -> None:
    """Set the active profile.

    Examples:
        # Switch to staging
        postcheck config use staging
    """
    config_manager = ctx.obj["config_manager"]

    try:
        config_manager.set_active_profile(name)
    except ConfigurationError as e:
        console.print(f"[red]Error setting active profile: {escape(e.message)}[/red]")
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    console.print(f"[green]Profile '{name}' is now active![/green]")


@app.command("remove")
def remove_profile(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Profile name to remove"),
    force: bool = typer.Option(False, "--force", help="Remove without confirmation"),
) -> None:
    """Remove a configuration profile.

    Examples:
        # Remove with confirmation
        postcheck config remove old-server

        # Remove without confirmation
        postcheck config remove old-server --force
    """
    config_manager = ctx.obj["config_manager"]

    try:
        profile = config_manager.get_profile(name)
    except ConfigurationError as e:
        console.print(f"[red]Error removing profile: {escape(e.message)}[/red]")
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    is_active = config_manager.get_active_profile() == name

    if not force:
        console.print("[yellow]About to remove profile:[/yellow]")
        console.print(f"  Name: {profile.name}")
        console.print(f"  Base URL: {profile.model_dump()['base_url']}")
        console.print(f"  Active: {'Yes' if is_active else 'No'}")

        if not typer.confirm(f"Are you sure you want to remove profile '{name}'?"):
            console.print("[yellow]Remove cancelled[/yellow]")
            return

    config_manager.delete_profile(name)
    console.print(f"[green]Profile '{name}' removed![/green]")

    if is_active:
        console.print("[yellow]Note: no profile is active now. Run 'postcheck config use' to pick one.[/yellow]")
