"""Shared fixtures for postcheck tests.

Provides an in-memory posts server that honours the API contract the
built-in scenarios verify, and a client that talks to it without a
network. Each server can be tuned to misbehave in specific ways.
"""

import itertools
import threading
from typing import Any, Dict, List, Optional
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlsplit

import pytest

from postcheck.exceptions import ConnectionFailedError
from postcheck.fixtures import FixtureBuilder, ValueGenerator
from postcheck.models.response import HttpResponse
from postcheck.runner import ScenarioRunner

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


class FakePostsServer:
    """Posts API kept in memory.

    Knobs:
        stale_reads: number of reads that still return a deleted post
        content_type: value of the Content-Type response header
        reverse_listing: list posts in descending id order
        drop_created_id: omit ``id`` from create responses
        unreachable_paths: path prefixes that raise a connection failure
    """

    def __init__(self, post_count: int = 100) -> None:
        self.posts: Dict[int, Dict[str, Any]] = {
            i: {"id": i, "userId": (i - 1) // 10 + 1, "title": f"title {i}", "body": f"body {i}"}
            for i in range(1, post_count + 1)
        }
        self.users: Dict[str, str] = {}
        self.tokens: Dict[str, str] = {}
        self.deleted: Dict[int, Dict[str, Any]] = {}
        self.requests: List[Dict[str, Any]] = []

        self.stale_reads = 0
        self.content_type = JSON_CONTENT_TYPE
        self.reverse_listing = False
        self.drop_created_id = False
        self.unreachable_paths: List[str] = []

        self._token_counter = itertools.count(1)
        self._lock = threading.Lock()

    def handle(self, method: str, url: str, headers: Dict[str, str], json: Any) -> HttpResponse:
        parts = urlsplit(url)
        path = parts.path
        query = parse_qs(parts.query)

        with self._lock:
            self.requests.append({"method": method, "path": path, "query": query, "headers": headers, "json": json})

            for prefix in self.unreachable_paths:
                if path.startswith(prefix):
                    raise ConnectionFailedError("Connection refused", method=method, url=url)

            if path == "/register" and method == "POST":
                return self._register(json or {})

            guarded = path.startswith("/664/")
            if guarded:
                path = path[len("/664"):]
                if not self._authorized(headers):
                    return self._respond(401, "jwt malformed")

            if path == "/posts":
                if method == "GET":
                    return self._list(query)
                if method == "POST":
                    return self._create(json or {})

            if path.startswith("/posts/"):
                try:
                    post_id = int(path[len("/posts/"):])
                except ValueError:
                    return self._respond(404, {})
                if method == "GET":
                    return self._read(post_id)
                if method == "PUT":
                    return self._update(post_id, json or {})
                if method == "DELETE":
                    return self._delete(post_id)

            return self._respond(404, {})

    def _respond(self, status: int, body: Any) -> HttpResponse:
        return HttpResponse(
            status_code=status,
            headers={"Content-Type": self.content_type},
            body=body,
            text=str(body),
        )

    def _authorized(self, headers: Dict[str, str]) -> bool:
        value = headers.get("Authorization", "")
        return value.startswith("Bearer ") and value[len("Bearer "):] in self.tokens

    def _register(self, payload: Dict[str, Any]) -> HttpResponse:
        email = payload.get("email")
        password = payload.get("password")
        if not email or not password:
            return self._respond(400, "Email and password are required")
        if email in self.users:
            return self._respond(400, "Email already exists")
        self.users[email] = password
        token = f"token-{next(self._token_counter)}"
        self.tokens[token] = email
        return self._respond(201, {"accessToken": token, "user": {"email": email, "id": len(self.users)}})

    def _list(self, query: Dict[str, List[str]]) -> HttpResponse:
        posts = sorted(self.posts.values(), key=lambda post: post["id"], reverse=self.reverse_listing)
        if "id" in query:
            wanted = {int(value) for value in query["id"]}
            posts = [post for post in posts if post["id"] in wanted]
        start = int(query.get("_start", ["0"])[0])
        end = query.get("_end")
        posts = posts[start:int(end[0])] if end else posts[start:]
        return self._respond(200, [dict(post) for post in posts])

    def _create(self, payload: Dict[str, Any]) -> HttpResponse:
        post_id = max(list(self.posts) + list(self.deleted) + [0]) + 1
        post = {**payload, "id": post_id}
        self.posts[post_id] = post
        body = dict(post)
        if self.drop_created_id:
            del body["id"]
        return self._respond(201, body)

    def _read(self, post_id: int) -> HttpResponse:
        if post_id in self.posts:
            return self._respond(200, dict(self.posts[post_id]))
        if post_id in self.deleted and self.stale_reads > 0:
            self.stale_reads -= 1
            return self._respond(200, dict(self.deleted[post_id]))
        return self._respond(404, {})

    def _update(self, post_id: int, payload: Dict[str, Any]) -> HttpResponse:
        if post_id not in self.posts:
            return self._respond(404, {})
        post = {**payload, "id": post_id}
        self.posts[post_id] = post
        return self._respond(200, dict(post))

    def _delete(self, post_id: int) -> HttpResponse:
        if post_id not in self.posts:
            return self._respond(404, {})
        self.deleted[post_id] = self.posts.pop(post_id)
        return self._respond(200, {})


class FakeClient:
    """Stand-in for ``HttpClient`` that routes requests to a fake server."""

    def __init__(self, server: FakePostsServer) -> None:
        self.server = server
        self.closed = False

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> HttpResponse:
        return self.server.handle(method.upper(), url, headers or {}, json)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_server():
    """A fresh in-memory posts server with posts 1..100."""
    return FakePostsServer()


@pytest.fixture
def client_factory(fake_server):
    """Factory that records every client it hands out."""
    clients: List[FakeClient] = []

    def factory() -> FakeClient:
        client = FakeClient(fake_server)
        clients.append(client)
        return client

    factory.clients = clients
    return factory


@pytest.fixture
def sleep():
    """Replacement for time.sleep that records delays without waiting."""
    return Mock()


@pytest.fixture
def runner(client_factory, sleep):
    """Scenario runner with seeded fixtures against the fake server."""
    builder = FixtureBuilder(ValueGenerator(seed=1234))
    return ScenarioRunner(client_factory=client_factory, builder=builder, sleep=sleep)


@pytest.fixture
def patched_http_client(fake_server):
    """Route every client the runner creates from a profile to the fake server."""
    with patch("postcheck.runner.HttpClient") as mock_client_class:
        mock_client_class.from_profile.side_effect = (
            lambda profile, debug=False, console=None: FakeClient(fake_server)
        )
        yield mock_client_class
