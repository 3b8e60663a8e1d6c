"""postcheck package.

A contract-verification harness for a posts REST API. Scenarios of HTTP
steps are run against a live server, every response is checked against
declared expectations, and each scenario gets an independent verdict.
"""

__version__ = "0.1.0"
__description__ = "Contract-verification harness for a posts REST API"

# Re-export main classes for convenience
from .client import HttpClient
from .config import ConfigManager, Profile
from .context import ScenarioContext, ref
from .fixtures import FixtureBuilder, ValueGenerator
from .scenario import RetryPolicy, Scenario, Step
from .runner import ScenarioRunner, ScenarioResult, StepResult, ScenarioOutcome, StepOutcome
from .report import RunReport, ReportRenderer
from .scenarios import build_catalog, select_scenarios
from .utils.retry import RetryManager
from .exceptions import (
    PostCheckError,
    ConfigurationError,
    InfrastructureError,
    RequestTimeoutError,
    ConnectionFailedError,
    MaxRetriesExceededError,
    ContractViolation,
    StatusMismatch,
    HeaderMismatch,
    FieldMismatch,
    MissingField,
    MembershipMismatch,
    OrderingMismatch,
)

__all__ = [
    "__version__",
    "__description__",
    "HttpClient",
    "ConfigManager",
    "Profile",
    "ScenarioContext",
    "ref",
    "FixtureBuilder",
    "ValueGenerator",
    "RetryPolicy",
    "Scenario",
    "Step",
    "ScenarioRunner",
    "ScenarioResult",
    "StepResult",
    "ScenarioOutcome",
    "StepOutcome",
    "RunReport",
    "ReportRenderer",
    "build_catalog",
    "select_scenarios",
    "RetryManager",
    "PostCheckError",
    "ConfigurationError",
    "InfrastructureError",
    "RequestTimeoutError",
    "ConnectionFailedError",
    "MaxRetriesExceededError",
    "ContractViolation",
    "StatusMismatch",
    "HeaderMismatch",
    "FieldMismatch",
    "MissingField",
    "MembershipMismatch",
    "OrderingMismatch",
]
