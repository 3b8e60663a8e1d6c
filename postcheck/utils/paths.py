"""Helpers for addressing values inside parsed JSON bodies."""

from typing import Any, List


class _Missing:
    """Sentinel for a path that does not resolve."""

    def __repr__(self) -> str:
        return "<missing>"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def split_path(path: str) -> List[str]:
    """Split a dot-separated body path. The empty path addresses the root."""
    if not path or path == ".":
        return []
    return path.split(".")


def get_nested_value(obj: Any, path: str) -> Any:
    """Get a value from a nested structure using dot notation.

    Integer segments index into lists, so ``"0.id"`` reads the id of the
    first element of an array body.

    Returns:
        The value, or ``MISSING`` when any segment does not resolve
    """
    value = obj
    for key in split_path(path):
        if isinstance(value, dict):
            if key not in value:
                return MISSING
            value = value[key]
        elif isinstance(value, list):
            try:
                value = value[int(key)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return value
