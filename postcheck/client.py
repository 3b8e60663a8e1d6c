"""HTTP client for the posts API under test.

This module provides a thin client over a requests session. It issues
exactly one request per call, converts transport failures into
infrastructure errors and never interprets status codes: deciding whether a
404 is correct is the job of the assertion evaluator, not the transport.
"""

from typing import Dict, Any, Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from rich.console import Console
from rich.markup import escape

from .config import Profile
from .models.response import HttpResponse
from .exceptions import (
    InfrastructureError,
    RequestTimeoutError,
    ConnectionFailedError,
)

METHODS = ("GET", "POST", "PUT", "DELETE")


class HttpClient:
    """Request/response client bound to one base URL."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        debug: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server URL that relative request paths are joined to
            timeout: Per-request timeout in seconds
            debug: Whether to print request and response details
            console: Rich console used for debug output
        """
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout
        self.debug = debug
        self.console = console or Console(stderr=True)

        self.session = requests.Session()
        self._configure_session()

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        debug: bool = False,
        console: Optional[Console] = None,
    ) -> "HttpClient":
        """Create a client from a configuration profile."""
        return cls(
            base_url=str(profile.base_url),
            timeout=profile.timeout,
            debug=debug,
            console=console,
        )

    def _configure_session(self) -> None:
        """Configure the requests session without transport-level retries."""
        # A retried POST would create a duplicate resource
        retry_strategy = Retry(total=0, connect=0, read=0, redirect=0, status=0)

        adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=1, pool_maxsize=1)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def build_url(self, url: str) -> str:
        """Join a relative path to the base URL. Absolute URLs pass through."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _parse_body(self, response: requests.Response) -> Optional[Any]:
        """Parse a JSON body, returning None when there is none."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> HttpResponse:
        """Send one request and return its response.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            url: Absolute URL or path relative to the base URL
            headers: Request headers
            json: Structured payload sent as a JSON body

        Returns:
            Parsed response

        Raises:
            RequestTimeoutError: If the request exceeds the timeout
            ConnectionFailedError: If the server cannot be reached
            InfrastructureError: For any other transport failure
        """
        method = method.upper()
        if method not in METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")

        full_url = self.build_url(url)

        if self.debug:
            self.console.print(f"[dim][DEBUG] {method} {escape(full_url)}[/dim]")
            if headers:
                self.console.print(f"[dim][DEBUG] Headers: {escape(str(headers))}[/dim]")
            if json is not None:
                self.console.print(f"[dim][DEBUG] Body: {escape(str(json))}[/dim]")

        try:
            response = self.session.request(
                method=method,
                url=full_url,
                headers=headers or {},
                json=json,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"Request timed out after {self.timeout}s: {e}",
                timeout=self.timeout,
                method=method,
                url=full_url,
            )
        except requests.exceptions.ConnectionError as e:
            raise ConnectionFailedError(
                f"Connection failed: {e}",
                method=method,
                url=full_url,
            )
        except requests.exceptions.RequestException as e:
            raise InfrastructureError(
                f"Request failed: {e}",
                method=method,
                url=full_url,
            )

        if self.debug:
            self.console.print(f"[dim][DEBUG] Response status: {response.status_code}[/dim]")

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=self._parse_body(response),
            text=response.text,
            elapsed_ms=response.elapsed.total_seconds() * 1000 if response.elapsed else 0.0,
        )

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()
