"""Run reports and their rendering.

This module aggregates scenario results into a run verdict and renders it
as a table, JSON or YAML. Contract violations and infrastructure errors
are counted separately so a flaky network is never mistaken for a
regression in the API.
"""

import json
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.table import Table
from rich import box
from rich.markup import escape

from .exceptions import ConfigurationError
from .runner import ScenarioResult, ScenarioOutcome

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIGURATION_ERROR = 2

FORMATS = ("table", "json", "yaml")

OUTCOME_STYLES = {
    "passed": "green",
    "failed": "red",
    "error": "yellow",
    "skipped": "dim",
}


@dataclass
class RunReport:
    """Verdicts of every scenario in one run."""

    results: List[ScenarioResult] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def violation_count(self) -> int:
        return sum(len(result.violations) for result in self.results)

    @property
    def infrastructure_error_count(self) -> int:
        return sum(len(result.infrastructure_errors) for result in self.results)

    @property
    def configuration_error_count(self) -> int:
        return sum(1 for result in self.results if result.configuration_error is not None)

    @property
    def exit_code(self) -> int:
        """Process exit status for this run.

        Any contract violation or infrastructure error gives 1. Otherwise a
        malformed scenario gives 2.
        """
        failed = any(result.outcome == ScenarioOutcome.FAILED for result in self.results)
        if failed or self.violation_count or self.infrastructure_error_count:
            return EXIT_FAILED
        if self.configuration_error_count:
            return EXIT_CONFIGURATION_ERROR
        return EXIT_OK

    def summary(self) -> Dict[str, Any]:
        """Return a JSON-serializable summary of the run."""
        counts = {outcome.value: 0 for outcome in ScenarioOutcome}
        for result in self.results:
            counts[result.outcome.value] += 1
        return {
            "scenarios": len(self.results),
            **counts,
            "violations": self.violation_count,
            "infrastructure_errors": self.infrastructure_error_count,
            "configuration_errors": self.configuration_error_count,
            "seed": self.seed,
            "exit_code": self.exit_code,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary(),
            "scenarios": [result.to_dict() for result in self.results],
        }


class ReportRenderer:
    """Renders run reports in table, JSON or YAML format."""

    def __init__(self, console: Optional[Console] = None) -> None:
        """Initialize the renderer.

        Args:
            console: Rich console instance. If None, creates a new one.
        """
        self.console = console or Console()

    def determine_format(self, format_override: Optional[str] = None) -> str:
        """Determine the output format to use.

        Args:
            format_override: Explicit format override

        Returns:
            Format name (table, json, yaml)

        Raises:
            ConfigurationError: If the requested format is unknown
        """
        format_name = format_override or os.environ.get("POSTCHECK_OUTPUT_FORMAT")
        if not format_name:
            # Tables for a terminal, JSON when piped
            return "table" if sys.stdout.isatty() else "json"

        format_name = format_name.lower()
        if format_name not in FORMATS:
            raise ConfigurationError(
                f"Unknown output format: {format_name}. Choose from {', '.join(FORMATS)}"
            )
        return format_name

    def render(self, report: RunReport, format: Optional[str] = None) -> None:
        """Render a report in the requested format.

        Raises:
            ConfigurationError: If the format is unknown
        """
        format_name = self.determine_format(format)

        if format_name == "table":
            self.render_table(report)
        elif format_name == "json":
            self.render_json(report)
        else:
            self.render_yaml(report)

    def render_json(self, report: RunReport) -> None:
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False, default=str))

    def render_yaml(self, report: RunReport) -> None:
        # Round-trip through JSON so enums and datetimes become plain scalars
        data = json.loads(json.dumps(report.to_dict(), default=str))
        print(yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False))

    def render_table(self, report: RunReport) -> None:
        """Render a scenario table followed by the details of each failure."""
        table = Table(title=f"Scenarios ({len(report.results)})", box=box.ROUNDED)
        table.add_column("Scenario", style="bold")
        table.add_column("Outcome")
        table.add_column("Steps", justify="right")
        table.add_column("Violations", justify="right")
        table.add_column("Infra errors", justify="right")
        table.add_column("Duration", justify="right", style="dim")

        for result in report.results:
            style = OUTCOME_STYLES[result.outcome.value]
            passed_steps = sum(1 for step in result.steps if step.passed)
            table.add_row(
                result.name,
                f"[{style}]{result.outcome.value}[/{style}]",
                f"{passed_steps}/{len(result.steps)}",
                str(len(result.violations)),
                str(len(result.infrastructure_errors)),
                f"{result.duration_ms:.0f} ms",
            )

        self.console.print(table)

        for result in report.results:
            if not result.passed:
                self._render_failure(result)

        summary = report.summary()
        style = "green" if report.passed else "red"
        self.console.print(
            f"\n[{style}]{summary['passed']} passed, {summary['failed']} failed, "
            f"{summary['error']} errors[/{style}] "
            f"[dim]({summary['violations']} violations, "
            f"{summary['infrastructure_errors']} infrastructure errors"
            + (f", seed {report.seed}" if report.seed is not None else "")
            + ")[/dim]"
        )

    def _render_failure(self, result: ScenarioResult) -> None:
        self.console.print(f"\n[bold]{result.name}[/bold] [dim]{escape(result.description)}[/dim]")

        if result.configuration_error is not None:
            self.console.print(f"  [yellow]configuration error:[/yellow] {escape(result.configuration_error.message)}")
            return

        for step in result.steps:
            if step.passed:
                continue
            style = OUTCOME_STYLES[step.outcome.value]
            location = f"{step.method} {step.url}" if step.url else step.method
            self.console.print(f"  [{style}]{step.outcome.value}[/{style}] {escape(step.name)} [dim]{escape(location)}[/dim]")

            if step.detail:
                self.console.print(f"    [dim]{escape(step.detail)}[/dim]")
            if step.error is not None:
                self.console.print(f"    [yellow]{type(step.error).__name__}:[/yellow] {escape(step.error.message)}")
            for violation in step.violations:
                self.console.print(f"    [red]{violation.kind}[/red] {escape(violation.message)}")
                self.console.print(
                    f"      expected: {violation.expected!r}\n      actual:   {violation.actual!r}",
                    markup=False,
                    highlight=False,
                )
            if step.attempts > 1:
                self.console.print(f"    [dim]after {step.attempts} attempts[/dim]")
