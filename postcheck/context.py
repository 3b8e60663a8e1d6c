"""Per-scenario state and the references that read it.

A scenario refers to state by name: ``post.id``, ``post.title``,
``credential.email``, ``session.access_token`` or the name of a scenario
variable. Strings use ``{name}`` placeholders, structured values use
``ref(name)``. Both are resolved against the scenario's own
``ScenarioContext`` at the moment a step is built, so a value extracted from
one response flows into every later request that names it.
"""

from string import Formatter
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models.fixture import PostFixture, CredentialFixture, Session

POST_FIELDS = ("id", "user_id", "title", "body")
CREDENTIAL_FIELDS = ("email", "password")
SESSION_TOKEN = "session.access_token"


class StateRef:
    """Placeholder for a state value inside a body or an expectation."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"ref({self.name!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, StateRef) and other.name == self.name

    def __hash__(self) -> int:
        return hash(("StateRef", self.name))


def ref(name: str) -> StateRef:
    """Refer to a state value that is resolved when the step runs."""
    return StateRef(name)


def parse_template(template: str) -> List[Tuple[str, Optional[str]]]:
    """Split a ``{name}`` template into (literal, name) pairs.

    Raises:
        ConfigurationError: If the template is malformed
    """
    try:
        return [(literal, field_name) for literal, field_name, _, _ in Formatter().parse(template)]
    except ValueError as e:
        raise ConfigurationError(
            f"Malformed template '{template}': {e}",
            details={"template": template},
        )


def template_names(template: str) -> Iterator[str]:
    """Yield the state names a ``{name}`` template refers to."""
    for _, field_name in parse_template(template):
        if field_name:
            yield field_name


def value_names(value: Any) -> Iterator[str]:
    """Yield the state names referenced anywhere inside a structured value."""
    if isinstance(value, StateRef):
        yield value.name
    elif isinstance(value, dict):
        for item in value.values():
            yield from value_names(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from value_names(item)


class StateTypeError(ValueError):
    """Raised when an extracted value does not fit the state it is stored in."""


class ScenarioContext:
    """State owned by one scenario run.

    Holds the scenario's post and credential fixtures, the session once a
    token has been extracted, scenario variables, and the names written by
    extraction so far.
    """

    def __init__(
        self,
        post: PostFixture,
        credential: CredentialFixture,
        variables: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.post = post
        self.credential = credential
        self.session: Optional[Session] = None
        self.variables: Dict[str, Any] = variables or {}
        self.produced: Set[str] = set()

    def initial_names(self) -> Set[str]:
        """Names that resolve before any step has run."""
        names = {f"post.{field}" for field in POST_FIELDS}
        names.update(f"credential.{field}" for field in CREDENTIAL_FIELDS)
        names.update(self.variables)
        return names

    @staticmethod
    def is_storable(name: str) -> bool:
        """Whether an extraction may write to this name."""
        prefix, _, field = name.partition(".")
        if prefix == "post":
            return field in POST_FIELDS
        if prefix == "credential":
            return field in CREDENTIAL_FIELDS
        if prefix == "session":
            return name == SESSION_TOKEN
        return "." not in name

    def resolve(self, name: str) -> Any:
        """Return the current value of a state name.

        Raises:
            KeyError: If the name does not resolve
        """
        prefix, _, field = name.partition(".")
        if prefix == "post" and field in POST_FIELDS:
            return getattr(self.post, field)
        if prefix == "credential" and field in CREDENTIAL_FIELDS:
            return getattr(self.credential, field)
        if name == SESSION_TOKEN:
            if self.session is None:
                raise KeyError(name)
            return self.session.access_token
        if name in self.variables:
            return self.variables[name]
        raise KeyError(name)

    def store(self, name: str, value: Any) -> None:
        """Write an extracted value into the scenario's state.

        Post and credential fields are written back into the fixtures, the
        access token creates the session, anything else becomes a variable.

        Raises:
            StateTypeError: If the value does not fit the target field
        """
        prefix, _, field = name.partition(".")
        try:
            if prefix == "post" and field in POST_FIELDS:
                setattr(self.post, field, value)
            elif prefix == "credential" and field in CREDENTIAL_FIELDS:
                setattr(self.credential, field, value)
            elif name == SESSION_TOKEN:
                self.session = Session(access_token=value)
            else:
                self.variables[name] = value
        except ValidationError as e:
            raise StateTypeError(f"Cannot store {value!r} in '{name}': {e.errors()[0]['msg']}")
        self.produced.add(name)

    def render(self, template: str) -> str:
        """Substitute ``{name}`` placeholders with current state values."""
        parts = []
        for literal, field_name in parse_template(template):
            parts.append(literal)
            if field_name:
                parts.append(str(self.resolve(field_name)))
        return "".join(parts)

    def materialize(self, value: Any) -> Any:
        """Replace every ``ref`` inside a structured value with its state value."""
        if isinstance(value, StateRef):
            return self.resolve(value.name)
        if isinstance(value, dict):
            return {key: self.materialize(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.materialize(item) for item in value]
        if isinstance(value, tuple):
            return tuple(self.materialize(item) for item in value)
        return value

    def snapshot(self) -> Dict[str, Any]:
        """Current state, for reports and debugging."""
        return {
            "post": self.post.model_dump(),
            "credential": {"email": self.credential.email},
            "session": self.session is not None,
            "variables": dict(self.variables),
        }
