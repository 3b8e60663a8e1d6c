"""Fixture generation for scenarios.

Every random value a scenario uses comes through ``ValueGenerator``, so a
whole run can be replayed by seeding one object. ``FixtureBuilder`` turns
those values into post and credential fixtures and assembles the
per-scenario context that owns them.
"""

import string
import threading
from typing import Optional, TYPE_CHECKING

from faker import Faker

from .context import ScenarioContext
from .models.fixture import PostFixture, CredentialFixture

if TYPE_CHECKING:
    from .scenario import Scenario

ALPHANUMERIC = string.ascii_letters + string.digits

# Number.MAX_SAFE_INTEGER, the largest id a JSON client can round-trip exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1


class ValueGenerator:
    """Source of random primitive values for one run.

    Emails and integers never repeat within a generator's lifetime. Calls
    are serialized, so one generator may be shared by concurrent scenarios.
    """

    def __init__(self, seed: Optional[int] = None, locale: str = "en_US") -> None:
        """Initialize the generator.

        Args:
            seed: Seed for deterministic replay. Random if None.
            locale: Faker locale used for emails
        """
        self.seed = seed
        self._faker = Faker(locale)
        if seed is not None:
            self._faker.seed_instance(seed)
        self._lock = threading.Lock()

    def random_int(self, min_value: int = 1, max_value: int = MAX_SAFE_INTEGER) -> int:
        """Return an integer not returned before by this generator."""
        with self._lock:
            return self._faker.unique.random_int(min=min_value, max=max_value)

    def random_email(self) -> str:
        """Return an email address not returned before by this generator."""
        with self._lock:
            return self._faker.unique.email()

    def random_password(self, length: int = 12) -> str:
        """Return a password mixing letters, digits and symbols."""
        with self._lock:
            return self._faker.password(length=length)

    def random_alphanumeric(self, length: int = 10) -> str:
        """Return a string of ASCII letters and digits."""
        with self._lock:
            return self._faker.lexify("?" * length, letters=ALPHANUMERIC)


class FixtureBuilder:
    """Builds fresh fixtures and scenario contexts from a value generator."""

    def __init__(self, generator: Optional[ValueGenerator] = None) -> None:
        self.generator = generator or ValueGenerator()

    def build_post(self) -> PostFixture:
        """Return a new post fixture with random seed values."""
        return PostFixture(
            id=self.generator.random_int(),
            user_id=self.generator.random_int(),
            title=self.generator.random_alphanumeric(),
            body=self.generator.random_alphanumeric(),
        )

    def build_credential(self) -> CredentialFixture:
        """Return a new credential with a never-used email."""
        return CredentialFixture(
            email=self.generator.random_email(),
            password=self.generator.random_password(),
        )

    def build_context(self, scenario: "Scenario") -> ScenarioContext:
        """Assemble the private state one scenario run will own."""
        variables = scenario.variables(self.generator) if scenario.variables else {}
        return ScenarioContext(
            post=self.build_post(),
            credential=self.build_credential(),
            variables=dict(variables),
        )
