"""Fixture and session models used while a scenario runs."""

from typing import Dict, Any
from pydantic import BaseModel, ConfigDict, field_validator


class PostFixture(BaseModel):
    """In-memory post record.

    Mutable for the lifetime of one scenario: the id is written back after a
    create response, title and body after an update response.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int
    user_id: int
    title: str
    body: str

    def payload(self) -> Dict[str, Any]:
        """Request body for creating or replacing this post."""
        return {"userId": self.user_id, "title": self.title, "body": self.body}


class CredentialFixture(BaseModel):
    """Email and password used to register a fresh account."""

    model_config = ConfigDict(validate_assignment=True)

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate email has a local part and a domain."""
        local, sep, domain = v.partition("@")
        if not sep or not local or not domain:
            raise ValueError("Email must be in the form local@domain")
        return v

    def payload(self) -> Dict[str, str]:
        """Request body for registration."""
        return {"email": self.email, "password": self.password}


class Session(BaseModel):
    """Access token issued to one scenario."""

    access_token: str

    @field_validator("access_token")
    @classmethod
    def validate_access_token(cls, v: str) -> str:
        """Validate token is not empty."""
        if not v:
            raise ValueError("Access token cannot be empty")
        return v

    def authorization(self) -> str:
        """Value for the Authorization header."""
        return f"Bearer {self.access_token}"
