"""Declarative scenario and step definitions.

A scenario is an ordered list of steps. Each step is a request template
plus the expectations for its response and the values to extract from it:

    Step(
        name="create post",
        method="POST",
        path="/posts",
        headers={"Authorization": "Bearer {session.access_token}"},
        body={"title": ref("post.title")},
        expectations=[StatusEquals(201), FieldPresent("id")],
        extract={"post.id": "id"},
    )

Later steps refer to ``{post.id}`` and receive the id the server assigned.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Literal

from .assertions import Expectation
from .context import template_names, value_names
from .utils.retry import RetryManager

HttpMethod = Literal["GET", "POST", "PUT", "DELETE"]


class RetryPolicy(BaseModel):
    """Opt-in re-issue of an idempotent step until its expectations hold."""

    max_retries: int = Field(default=3, ge=0, le=10)
    base_delay: float = Field(default=0.5, gt=0)
    max_delay: float = Field(default=5.0, gt=0)
    backoff_factor: float = Field(default=2.0, ge=1)
    jitter: bool = False

    def manager(self, sleep: Optional[Callable[[float], None]] = None) -> RetryManager:
        """Create a retry manager configured by this policy."""
        kwargs: Dict[str, Any] = {}
        if sleep is not None:
            kwargs["sleep"] = sleep
        return RetryManager(
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            jitter=self.jitter,
            **kwargs,
        )


class Step(BaseModel):
    """One HTTP request and the expectations declared for its response."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    method: HttpMethod
    path: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    expectations: List[Expectation] = Field(default_factory=list)
    extract: Dict[str, str] = Field(default_factory=dict)
    retry: Optional[RetryPolicy] = None

    def references(self) -> Iterator[str]:
        """State names this step reads while building or checking its request."""
        yield from template_names(self.path)
        for value in self.headers.values():
            yield from template_names(value)
        yield from value_names(self.body)
        for expectation in self.expectations:
            yield from expectation.references()


class Scenario(BaseModel):
    """An independently verifiable sequence of steps with one verdict."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str
    description: str = ""
    steps: List[Step] = Field(default_factory=list)
    # Receives the run's ValueGenerator and returns scenario-local values
    variables: Optional[Callable[[Any], Dict[str, Any]]] = None
