"""Scenario commands for the postcheck CLI.

This module provides the commands that execute the contract scenarios
against a server and list the scenarios available in the catalog.
"""

import random
from typing import List, Optional

import typer
from rich.table import Table
from rich import box

from ..app import handle_exceptions
from ..report import ReportRenderer, RunReport
from ..runner import ScenarioRunner
from ..scenarios import build_catalog, select_scenarios


@handle_exceptions
def run(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Base URL of the posts API"),
    scenario: Optional[List[str]] = typer.Option(
        None, "--scenario", "-s", help="Scenario to run (repeatable, default: all)"
    ),
    workers: Optional[int] = typer.Option(None, "--workers", help="Scenarios run concurrently"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for fixture generation"),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    read_after_delete_retries: Optional[int] = typer.Option(
        None,
        "--read-after-delete-retries",
        help="Retries allowed before a deleted post must read as 404",
    ),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output format (table, json, yaml)"),
) -> None:
    """Run contract scenarios against a server.

    Exits 0 when every scenario passes, 1 on any contract violation or
    infrastructure error, and 2 when the only problems are configuration
    errors.

    Examples:
        # Run every scenario
        postcheck run --base-url http://localhost:3000

        # Run two scenarios with four workers
        postcheck run -s post-lifecycle -s create-and-update --workers 4

        # Reproduce a previous run
        postcheck run --seed 1234 --output json
    """
    config_manager = ctx.obj["config_manager"]
    debug = ctx.obj["debug"]
    err_console = ctx.obj["err_console"]

    renderer = ReportRenderer(ctx.obj["console"])
    output_format = renderer.determine_format(output)

    profile = config_manager.resolve_profile(
        ctx.obj["profile_name"],
        base_url=base_url,
        timeout=timeout,
        max_workers=workers,
        seed=seed,
        read_after_delete_retries=read_after_delete_retries,
    )
    if profile.seed is None:
        # Always report a seed so any run can be replayed
        profile = profile.model_copy(update={"seed": random.randrange(2**32)})

    catalog = build_catalog(
        read_after_delete_retries=profile.read_after_delete_retries,
        retry_base_delay=profile.retry_base_delay,
    )
    selected = select_scenarios(catalog, scenario)

    if debug:
        err_console.print(
            f"[dim][DEBUG] Running {len(selected)} scenario(s) against {profile.base_url} "
            f"with {profile.max_workers} worker(s), seed {profile.seed}[/dim]"
        )

    runner = ScenarioRunner.from_profile(profile, debug=debug, console=err_console)
    results = runner.run_all(selected, max_workers=profile.max_workers)

    report = RunReport(results=results, seed=profile.seed)
    renderer.render(report, output_format)

    raise typer.Exit(report.exit_code)


@handle_exceptions
def scenarios(
    ctx: typer.Context,
) -> None:
    """List the built-in scenarios.

    Examples:
        # Show every scenario and its steps
        postcheck scenarios
    """
    table = Table(title="Scenarios", box=box.ROUNDED)
    table.add_column("Name", style="bold")
    table.add_column("Steps", justify="right")
    table.add_column("Description")

    for item in build_catalog():
        table.add_row(item.name, str(len(item.steps)), item.description)

    ctx.obj["console"].print(table)
