"""Expectations and the evaluator that checks them against a response.

Each expectation inspects one attribute of a response and returns a typed
``ContractViolation`` when it does not hold. ``evaluate`` runs every
expectation of a step and collects all violations; it never stops at the
first one.
"""

from typing import Any, Callable, Iterator, List, Optional, Sequence

from .context import ScenarioContext, StateRef, value_names
from .exceptions import (
    ContractViolation,
    StatusMismatch,
    HeaderMismatch,
    FieldMismatch,
    MissingField,
    MembershipMismatch,
    OrderingMismatch,
)
from .models.response import HttpResponse
from .utils.paths import MISSING, get_nested_value


def _body_label(path: str) -> str:
    return path if path else "<body>"


class Expectation:
    """Base class for a single declared assertion on a response."""

    def references(self) -> Iterator[str]:
        """State names this expectation reads."""
        return iter(())

    def describe(self) -> str:
        raise NotImplementedError

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        """Return a violation if the response fails this expectation."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.describe()


class StatusEquals(Expectation):
    """Status code equals an expected integer."""

    def __init__(self, expected: int) -> None:
        self.expected = expected

    def describe(self) -> str:
        return f"status == {self.expected}"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        if response.status_code == self.expected:
            return None
        return StatusMismatch(
            f"Expected status {self.expected}, got {response.status_code}",
            expected=self.expected,
            actual=response.status_code,
            path="status",
        )


class HeaderContains(Expectation):
    """Named header is present and its value contains a substring.

    The header name is matched case-insensitively, the value case-sensitively.
    """

    def __init__(self, name: str, substring: str) -> None:
        self.name = name
        self.substring = substring

    def describe(self) -> str:
        return f"header {self.name} contains {self.substring!r}"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        actual = response.header(self.name)
        if actual is None:
            return HeaderMismatch(
                f"Header '{self.name}' is absent",
                expected=self.substring,
                actual=None,
                path=self.name,
            )
        if self.substring not in actual:
            return HeaderMismatch(
                f"Header '{self.name}' does not contain {self.substring!r}",
                expected=self.substring,
                actual=actual,
                path=self.name,
            )
        return None


class FieldEquals(Expectation):
    """Body field at a path equals an expected value, which may be a ``ref``."""

    def __init__(self, path: str, expected: Any) -> None:
        self.path = path
        self.expected = expected

    def references(self) -> Iterator[str]:
        return value_names(self.expected)

    def describe(self) -> str:
        return f"{_body_label(self.path)} == {self.expected!r}"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        expected = context.materialize(self.expected)
        actual = get_nested_value(response.body, self.path)
        if actual is MISSING:
            return FieldMismatch(
                f"Field '{_body_label(self.path)}' is absent",
                expected=expected,
                actual=None,
                path=self.path,
            )
        if actual != expected:
            return FieldMismatch(
                f"Field '{_body_label(self.path)}' is {actual!r}, expected {expected!r}",
                expected=expected,
                actual=actual,
                path=self.path,
            )
        return None


class FieldPresent(Expectation):
    """Body field at a path exists."""

    def __init__(self, path: str) -> None:
        self.path = path

    def describe(self) -> str:
        return f"{_body_label(self.path)} is present"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        if get_nested_value(response.body, self.path) is MISSING:
            return MissingField(
                f"Field '{_body_label(self.path)}' is absent",
                expected="present",
                actual=None,
                path=self.path,
            )
        return None


class FieldNotEmpty(Expectation):
    """Body field at a path exists and is neither null nor empty."""

    def __init__(self, path: str) -> None:
        self.path = path

    def describe(self) -> str:
        return f"{_body_label(self.path)} is not empty"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        actual = get_nested_value(response.body, self.path)
        if actual is MISSING or actual is None or actual == "" or actual == [] or actual == {}:
            return MissingField(
                f"Field '{_body_label(self.path)}' is absent or empty",
                expected="non-empty",
                actual=None if actual is MISSING else actual,
                path=self.path,
            )
        return None


class CollectionContains(Expectation):
    """Projection of a sequence contains a value.

    The field at ``path`` is treated as a sequence and each element's
    ``projection`` field is collected, e.g. every ``id`` of a list body.
    """

    def __init__(self, path: str, value: Any, projection: str = "id") -> None:
        self.path = path
        self.value = value
        self.projection = projection

    def references(self) -> Iterator[str]:
        return value_names(self.value)

    def describe(self) -> str:
        return f"{_body_label(self.path)}[*].{self.projection} contains {self.value!r}"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        value = context.materialize(self.value)
        sequence = get_nested_value(response.body, self.path)
        if not isinstance(sequence, list):
            return MembershipMismatch(
                f"Field '{_body_label(self.path)}' is not a sequence",
                expected=value,
                actual=None if sequence is MISSING else sequence,
                path=self.path,
            )

        projected = [get_nested_value(item, self.projection) for item in sequence]
        projected = [item for item in projected if item is not MISSING]
        if value not in projected:
            return MembershipMismatch(
                f"{value!r} not found in {_body_label(self.path)}[*].{self.projection}",
                expected=value,
                actual=projected,
                path=self.path,
            )
        return None


class SequentialEquals(Expectation):
    """Element ``i`` of a sequence has ``field == index_fn(i)`` for every i.

    With ``count`` the sequence must hold exactly that many elements;
    otherwise every element present is checked.
    """

    def __init__(
        self,
        path: str,
        index_fn: Callable[[int], Any],
        field: str = "id",
        count: Optional[int] = None,
    ) -> None:
        self.path = path
        self.index_fn = index_fn
        self.field = field
        self.count = count

    def describe(self) -> str:
        scope = f"first {self.count}" if self.count is not None else "all"
        return f"{_body_label(self.path)}[i].{self.field} follows index ({scope})"

    def check(self, response: HttpResponse, context: ScenarioContext) -> Optional[ContractViolation]:
        sequence = get_nested_value(response.body, self.path)
        if not isinstance(sequence, list):
            return OrderingMismatch(
                f"Field '{_body_label(self.path)}' is not a sequence",
                expected="sequence",
                actual=None if sequence is MISSING else sequence,
                path=self.path,
            )

        count = len(sequence) if self.count is None else self.count
        expected = [self.index_fn(i) for i in range(count)]
        actual = [get_nested_value(item, self.field) for item in sequence]
        actual = [None if item is MISSING else item for item in actual]

        if len(sequence) != count:
            return OrderingMismatch(
                f"Expected {count} elements, got {len(sequence)}",
                expected=expected,
                actual=actual,
                path=self.path,
            )

        for i in range(count):
            if actual[i] != expected[i]:
                return OrderingMismatch(
                    f"Element {i} has {self.field}={actual[i]!r}, expected {expected[i]!r}",
                    expected=expected,
                    actual=actual,
                    path=f"{self.path}.{i}.{self.field}" if self.path else f"{i}.{self.field}",
                )
        return None


def evaluate(
    response: HttpResponse,
    expectations: Sequence[Expectation],
    context: ScenarioContext,
) -> List[ContractViolation]:
    """Check a response against every expectation and collect all violations."""
    violations = []
    for expectation in expectations:
        violation = expectation.check(response, context)
        if violation is not None:
            violations.append(violation)
    return violations
