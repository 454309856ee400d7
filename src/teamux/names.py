"""Team and worker name rules shared by tmux sessions and on-disk state."""

from __future__ import annotations

import re

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9-]")
MAX_NAME_LENGTH = 50


class InvalidNameError(ValueError):
    """Raised when a team or worker name has too few usable characters."""


def sanitize_name(name: str) -> str:
    """Strip ``name`` to ``[A-Za-z0-9-]`` and truncate it to 50 characters."""

    sanitized = _INVALID_NAME_CHARS.sub("", name)
    if not sanitized:
        raise InvalidNameError(
            f'Invalid name: "{name}" contains no valid characters (alphanumeric or hyphen)'
        )
    if len(sanitized) < 2:
        raise InvalidNameError(
            f'Invalid name: "{name}" too short after sanitization (minimum 2 characters)'
        )
    return sanitized[:MAX_NAME_LENGTH]


def require_clean_name(name: str) -> str:
    """Return ``name`` unchanged, or raise if sanitizing would alter it."""

    sanitized = sanitize_name(name)
    if sanitized != name:
        raise InvalidNameError(
            f'Invalid name: "{name}" may only use letters, digits and hyphens '
            f"(at most {MAX_NAME_LENGTH} characters)"
        )
    return name


__all__ = ["InvalidNameError", "MAX_NAME_LENGTH", "require_clean_name", "sanitize_name"]
