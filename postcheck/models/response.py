"""Transport-neutral response model."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class HttpResponse(BaseModel):
    """Status, headers and parsed body of one HTTP exchange."""

    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None
    text: str = ""
    elapsed_ms: float = 0.0

    def header(self, name: str) -> Optional[str]:
        """Look up a header by name, ignoring case."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None
