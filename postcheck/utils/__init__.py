"""Utility modules for postcheck.

This package contains the retry manager and helpers for reading values
out of parsed response bodies.
"""

from .paths import MISSING, get_nested_value
from .retry import RetryManager, RetryOutcome

__all__ = [
    "MISSING",
    "get_nested_value",
    "RetryManager",
    "RetryOutcome",
]
