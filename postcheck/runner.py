"""Scenario execution engine.

The runner executes a scenario's steps strictly in declared order. Before
the first request it checks that every state name a step refers to is
either available from the start or extracted by an earlier step; a
scenario that fails this check is reported as a configuration error and
sends nothing. During the run each response is evaluated, its extractions
are written into the scenario's context, and the next request is built
from that context. Every step is attempted, so the result lists every
violated expectation, not just the first.

Scenarios own disjoint state and their own HTTP client, which lets
``run_all`` execute them concurrently.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape

from .assertions import evaluate
from .client import HttpClient
from .config import Profile
from .exceptions import (
    ConfigurationError,
    ContractViolation,
    FieldMismatch,
    InfrastructureError,
    MaxRetriesExceededError,
    MissingField,
)
from .context import ScenarioContext, StateTypeError
from .fixtures import FixtureBuilder, ValueGenerator
from .models.response import HttpResponse
from .scenario import Scenario, Step
from .utils.paths import MISSING, get_nested_value


class StepOutcome(str, Enum):
    """Outcome of a single step."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class ScenarioOutcome(str, Enum):
    """Verdict of a whole scenario."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class StepResult:
    """What happened when one step was executed."""

    index: int
    name: str
    method: str
    url: Optional[str]
    outcome: StepOutcome
    started_at: datetime
    finished_at: datetime
    status_code: Optional[int] = None
    violations: List[ContractViolation] = field(default_factory=list)
    error: Optional[InfrastructureError] = None
    detail: Optional[str] = None
    attempts: int = 0
    response_body: Optional[Any] = None

    @property
    def passed(self) -> bool:
        return self.outcome == StepOutcome.PASSED

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        result: Dict[str, Any] = {
            "index": self.index,
            "name": self.name,
            "method": self.method,
            "url": self.url,
            "outcome": self.outcome.value,
            "status_code": self.status_code,
            "attempts": self.attempts,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
            "violations": [violation.to_dict() for violation in self.violations],
        }
        if self.error is not None:
            result["error"] = {"kind": type(self.error).__name__, "message": self.error.message}
        if self.detail:
            result["detail"] = self.detail
        return result


@dataclass
class ScenarioResult:
    """Aggregate result of one scenario run."""

    name: str
    description: str
    started_at: datetime
    finished_at: datetime
    steps: List[StepResult] = field(default_factory=list)
    configuration_error: Optional[ConfigurationError] = None

    @property
    def violations(self) -> List[Tuple[str, ContractViolation]]:
        """Every violated expectation, paired with the step that produced it."""
        return [(step.name, violation) for step in self.steps for violation in step.violations]

    @property
    def infrastructure_errors(self) -> List[Tuple[str, InfrastructureError]]:
        return [(step.name, step.error) for step in self.steps if step.error is not None]

    @property
    def outcome(self) -> ScenarioOutcome:
        if self.configuration_error is not None:
            return ScenarioOutcome.ERROR
        if all(step.passed for step in self.steps):
            return ScenarioOutcome.PASSED
        return ScenarioOutcome.FAILED

    @property
    def passed(self) -> bool:
        return self.outcome == ScenarioOutcome.PASSED

    @property
    def duration_ms(self) -> float:
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        result: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "outcome": self.outcome.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": round(self.duration_ms, 2),
            "steps": [step.to_dict() for step in self.steps],
        }
        if self.configuration_error is not None:
            result["configuration_error"] = self.configuration_error.message
        return result


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ScenarioRunner:
    """Executes scenarios against a server through per-scenario clients."""

    def __init__(
        self,
        client_factory: Callable[[], HttpClient],
        builder: Optional[FixtureBuilder] = None,
        debug: bool = False,
        console: Optional[Console] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the runner.

        Args:
            client_factory: Creates a fresh HTTP client for each scenario
            builder: Fixture builder; a randomly seeded one if None
            debug: Whether to print step-by-step progress
            console: Rich console used for debug output
            sleep: Function used to wait between retry attempts
        """
        self.client_factory = client_factory
        self.builder = builder or FixtureBuilder()
        self.debug = debug
        self.console = console or Console(stderr=True)
        self.sleep = sleep

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        debug: bool = False,
        console: Optional[Console] = None,
    ) -> "ScenarioRunner":
        """Create a runner targeting the server a profile describes."""
        return cls(
            client_factory=lambda: HttpClient.from_profile(profile, debug=debug, console=console),
            builder=FixtureBuilder(ValueGenerator(seed=profile.seed)),
            debug=debug,
            console=console,
        )

    def _debug(self, scenario: Scenario, message: str) -> None:
        if self.debug:
            self.console.print(f"[dim][DEBUG] {scenario.name}: {escape(message)}[/dim]")

    def plan(self, scenario: Scenario, context: ScenarioContext) -> List[Dict[str, int]]:
        """Check a scenario's state references before anything is sent.

        Returns:
            For each step, the names it reads that an earlier step extracts,
            mapped to the index of the most recent such step

        Raises:
            ConfigurationError: If the scenario is malformed
        """
        if not scenario.steps:
            raise ConfigurationError(f"Scenario '{scenario.name}' has no steps")

        available = context.initial_names()
        producers: Dict[str, int] = {}
        dependencies: List[Dict[str, int]] = []

        for index, step in enumerate(scenario.steps):
            if step.retry is not None and step.method != "GET":
                raise ConfigurationError(
                    f"Step '{step.name}' declares a retry policy but {step.method} is not idempotent",
                    details={"scenario": scenario.name, "step": step.name},
                )

            try:
                references = list(step.references())
            except ConfigurationError as e:
                raise ConfigurationError(
                    f"Step '{step.name}': {e.message}",
                    details={"scenario": scenario.name, "step": step.name, **e.details},
                )

            step_dependencies: Dict[str, int] = {}
            for name in references:
                if name in producers:
                    step_dependencies[name] = producers[name]
                elif name not in available:
                    raise ConfigurationError(
                        f"Step '{step.name}' references '{name}', which no earlier step provides",
                        details={"scenario": scenario.name, "step": step.name, "reference": name},
                    )
            dependencies.append(step_dependencies)

            for target in step.extract:
                if not context.is_storable(target):
                    raise ConfigurationError(
                        f"Step '{step.name}' extracts into unknown state '{target}'",
                        details={"scenario": scenario.name, "step": step.name, "reference": target},
                    )
                producers[target] = index

        return dependencies

    def run(self, scenario: Scenario, context: Optional[ScenarioContext] = None) -> ScenarioResult:
        """Execute one scenario and return its result.

        Args:
            scenario: Scenario to execute
            context: State to run with; freshly built if None

        Returns:
            Result listing every step outcome and violation
        """
        started_at = _now()
        if context is None:
            context = self.builder.build_context(scenario)

        try:
            dependencies = self.plan(scenario, context)
        except ConfigurationError as e:
            self._debug(scenario, f"configuration error: {e.message}")
            return ScenarioResult(
                name=scenario.name,
                description=scenario.description,
                started_at=started_at,
                finished_at=_now(),
                configuration_error=e,
            )

        steps: List[StepResult] = []
        client = self.client_factory()
        try:
            for index, step in enumerate(scenario.steps):
                step_started_at = _now()
                try:
                    result = self._execute_step(scenario, index, dependencies[index], context, client)
                except Exception as e:
                    # Any other error is scoped to this step
                    self._debug(scenario, f"'{step.name}' raised {type(e).__name__}: {e}")
                    result = StepResult(
                        index=index,
                        name=step.name,
                        method=step.method,
                        url=None,
                        outcome=StepOutcome.ERROR,
                        started_at=step_started_at,
                        finished_at=_now(),
                        detail=f"{type(e).__name__}: {e}",
                    )
                steps.append(result)
            self._debug(scenario, f"final state: {context.snapshot()}")
        finally:
            close = getattr(client, "close", None)
            if close is not None:
                close()

        return ScenarioResult(
            name=scenario.name,
            description=scenario.description,
            started_at=started_at,
            finished_at=_now(),
            steps=steps,
        )

    def run_all(self, scenarios: Sequence[Scenario], max_workers: int = 1) -> List[ScenarioResult]:
        """Execute several independent scenarios.

        Contexts are built up front in declared order, so a seeded run
        generates the same fixtures however the scenarios are scheduled.
        Results are returned in declared order.
        """
        contexts = [self.builder.build_context(scenario) for scenario in scenarios]

        if max_workers <= 1 or len(scenarios) <= 1:
            return [self.run(scenario, context) for scenario, context in zip(scenarios, contexts)]

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [
                executor.submit(self.run, scenario, context)
                for scenario, context in zip(scenarios, contexts)
            ]
            return [future.result() for future in futures]

    def _execute_step(
        self,
        scenario: Scenario,
        index: int,
        dependencies: Dict[str, int],
        context: ScenarioContext,
        client: HttpClient,
    ) -> StepResult:
        """Build, send, evaluate and extract for one step."""
        started_at = _now()
        step = scenario.steps[index]

        unresolved = [name for name in dependencies if name not in context.produced]
        if unresolved:
            sources = ", ".join(
                f"{name} (from step '{scenario.steps[dependencies[name]].name}')" for name in unresolved
            )
            self._debug(scenario, f"skipping '{step.name}', unresolved: {sources}")
            return StepResult(
                index=index,
                name=step.name,
                method=step.method,
                url=None,
                outcome=StepOutcome.SKIPPED,
                started_at=started_at,
                finished_at=_now(),
                detail=f"Unresolved state: {sources}",
            )

        url = context.render(step.path)
        headers = {name: context.render(value) for name, value in step.headers.items()}
        body = context.materialize(step.body)
        self._debug(scenario, f"step {index + 1} '{step.name}': {step.method} {url}")

        def send() -> Tuple[HttpResponse, List[ContractViolation]]:
            response = client.request(step.method, url, headers=headers, json=body)
            return response, evaluate(response, step.expectations, context)

        try:
            response, violations, attempts = self._send(scenario, step, send)
        except InfrastructureError as e:
            self._debug(scenario, f"infrastructure error: {e.message}")
            return StepResult(
                index=index,
                name=step.name,
                method=step.method,
                url=url,
                outcome=StepOutcome.ERROR,
                started_at=started_at,
                finished_at=_now(),
                error=e,
                attempts=e.details.get("attempts", 1),
            )

        violations.extend(self._extract(scenario, step, response, context))

        return StepResult(
            index=index,
            name=step.name,
            method=step.method,
            url=url,
            outcome=StepOutcome.FAILED if violations else StepOutcome.PASSED,
            started_at=started_at,
            finished_at=_now(),
            status_code=response.status_code,
            violations=violations,
            attempts=attempts,
            response_body=response.body,
        )

    def _send(
        self,
        scenario: Scenario,
        step: Step,
        send: Callable[[], Tuple[HttpResponse, List[ContractViolation]]],
    ) -> Tuple[HttpResponse, List[ContractViolation], int]:
        """Send a step once, or under its retry policy until expectations hold."""
        if step.retry is None:
            response, violations = send()
            return response, violations, 1

        def sleep(delay: float) -> None:
            self._debug(scenario, f"'{step.name}' not settled, retrying in {delay:.2f}s")
            self.sleep(delay)

        manager = step.retry.manager(sleep=sleep)
        try:
            outcome = manager.execute_with_retry(send, is_settled=lambda result: not result[1])
        except MaxRetriesExceededError as e:
            if e.last_exception is None:
                raise
            if isinstance(e.last_exception, InfrastructureError):
                e.last_exception.details["attempts"] = e.attempts
            raise e.last_exception
        self._debug(scenario, f"'{step.name}' retry metrics: {manager.get_metrics()}")
        response, violations = outcome.result
        return response, violations, outcome.attempts

    def _extract(
        self,
        scenario: Scenario,
        step: Step,
        response: HttpResponse,
        context: ScenarioContext,
    ) -> List[ContractViolation]:
        """Store the step's extracted values, reporting any that are missing."""
        violations: List[ContractViolation] = []
        for target, path in step.extract.items():
            value = get_nested_value(response.body, path)
            if value is MISSING:
                violations.append(MissingField(
                    f"Cannot extract '{target}': field '{path or '<body>'}' is absent",
                    expected="present",
                    actual=None,
                    path=path,
                ))
                continue
            try:
                context.store(target, value)
            except StateTypeError as e:
                violations.append(FieldMismatch(str(e), expected=target, actual=value, path=path))
                continue
            self._debug(scenario, f"extracted {target} = {value!r}")
        return violations
