"""Unit tests for context.py module.

Tests state references, template rendering and how extracted values are
written back into a scenario's fixtures.
"""

import pytest

from postcheck.context import ScenarioContext, StateTypeError, ref, template_names, value_names
from postcheck.exceptions import ConfigurationError
from postcheck.models.fixture import CredentialFixture, PostFixture


@pytest.fixture
def context():
    return ScenarioContext(
        post=PostFixture(id=42, user_id=9, title="abc", body="def"),
        credential=CredentialFixture(email="user@example.com", password="pw"),
        variables={"update_title": "xyz"},
    )


class TestReferences:
    """Test cases for reference discovery."""

    def test_template_names(self):
        assert list(template_names("/posts/{post.id}")) == ["post.id"]
        assert list(template_names("Bearer {session.access_token}")) == ["session.access_token"]
        assert list(template_names("/posts?_start=0&_end=10")) == []

    def test_malformed_template(self):
        with pytest.raises(ConfigurationError, match="Malformed template") as exc_info:
            list(template_names("/posts/{post.id"))

        assert exc_info.value.details == {"template": "/posts/{post.id"}

    def test_value_names_walks_structures(self):
        body = {"userId": ref("post.user_id"), "tags": [ref("a"), "literal"], "nested": {"x": ref("b")}}

        assert sorted(value_names(body)) == ["a", "b", "post.user_id"]

    def test_ref_equality(self):
        assert ref("post.id") == ref("post.id")
        assert ref("post.id") != ref("post.title")
        assert repr(ref("post.id")) == "ref('post.id')"


class TestScenarioContext:
    """Test cases for the ScenarioContext class."""

    def test_initial_names(self, context):
        names = context.initial_names()

        assert "post.id" in names
        assert "credential.email" in names
        assert "update_title" in names
        assert "session.access_token" not in names

    def test_resolve_fixture_fields(self, context):
        assert context.resolve("post.id") == 42
        assert context.resolve("post.user_id") == 9
        assert context.resolve("credential.password") == "pw"
        assert context.resolve("update_title") == "xyz"

    def test_resolve_unknown_name(self, context):
        with pytest.raises(KeyError):
            context.resolve("post.slug")

    def test_session_token_unavailable_until_stored(self, context):
        with pytest.raises(KeyError):
            context.resolve("session.access_token")

        context.store("session.access_token", "tok")

        assert context.resolve("session.access_token") == "tok"
        assert context.session.authorization() == "Bearer tok"

    def test_store_writes_back_into_post(self, context):
        context.store("post.id", 101)
        context.store("post.title", "new")

        assert context.post.id == 101
        assert context.post.title == "new"
        assert context.produced == {"post.id", "post.title"}

    def test_store_rejects_wrong_type(self, context):
        with pytest.raises(StateTypeError):
            context.store("post.id", "not-a-number")

        assert context.post.id == 42
        assert "post.id" not in context.produced

    def test_store_rejects_empty_token(self, context):
        with pytest.raises(StateTypeError):
            context.store("session.access_token", "")

    def test_store_variable(self, context):
        context.store("comment_id", 5)

        assert context.resolve("comment_id") == 5

    @pytest.mark.parametrize("name,storable", [
        ("post.id", True),
        ("post.slug", False),
        ("credential.email", True),
        ("session.access_token", True),
        ("session.refresh_token", False),
        ("comment_id", True),
        ("comment.id", False),
    ])
    def test_is_storable(self, name, storable):
        assert ScenarioContext.is_storable(name) is storable

    def test_render(self, context):
        context.store("session.access_token", "tok")

        assert context.render("/posts/{post.id}") == "/posts/42"
        assert context.render("Bearer {session.access_token}") == "Bearer tok"
        assert context.render("/posts") == "/posts"

    def test_render_malformed_template(self, context):
        with pytest.raises(ConfigurationError, match="Malformed template"):
            context.render("/posts/{post.id")

    def test_materialize(self, context):
        body = {"userId": ref("post.user_id"), "title": ref("update_title"), "ids": [ref("post.id"), 1]}

        assert context.materialize(body) == {"userId": 9, "title": "xyz", "ids": [42, 1]}

    def test_snapshot_hides_password(self, context):
        snapshot = context.snapshot()

        assert snapshot["post"]["id"] == 42
        assert snapshot["credential"] == {"email": "user@example.com"}
        assert snapshot["session"] is False
