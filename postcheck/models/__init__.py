"""Data models for postcheck.

This package contains Pydantic models for the fixtures a scenario works
with and for the responses returned by the HTTP client.
"""

from .fixture import PostFixture, CredentialFixture, Session
from .response import HttpResponse

__all__ = [
    "PostFixture",
    "CredentialFixture",
    "Session",
    "HttpResponse",
]
