"""
Input validation helpers shared by the profile, catalog and restore modules.

Validation happens before any gateway request is built, so a rejected
input never produces network traffic.
"""

from __future__ import annotations

from collections.abc import Iterable


class ValidationError(ValueError):
    """Raised when caller-supplied input is invalid."""

    pass


def require_text(value: str | None, field_name: str) -> str:
    """
    Return ``value`` stripped of surrounding whitespace.

    Args:
        value: Raw input, possibly None
        field_name: Name used in the error message

    Returns:
        The stripped string

    Raises:
        ValidationError: If the value is None or blank
    """
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def require_filenames(filenames: Iterable[str]) -> list[str]:
    """
    Normalize a collection of backup filenames for a batched request.

    Blank names are discarded and duplicates collapse, so the result is
    a sorted list of unique names.

    Raises:
        ValidationError: If nothing remains after normalization
    """
    names = {name.strip() for name in filenames if name and name.strip()}
    if not names:
        raise ValidationError("No backups selected")
    return sorted(names)
