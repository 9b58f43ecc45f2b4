"""Normalisation of untrusted names into safe storage-key fragments."""

import re

FALLBACK_NAME = "file"

_PATH_SEPARATORS = re.compile(r"[\\/]")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9_.-]")


def sanitize_name(raw_name: str) -> str:
    """Reduce an untrusted file name or identifier to ``[A-Za-z0-9_.-]``.

    Only the final path segment is kept, whitespace runs become a single
    underscore and leading dots are dropped so the result can never be
    ``.`` or ``..``. Returns ``"file"`` when nothing survives.

    Examples:
        >>> sanitize_name("../../etc/passwd")
        'passwd'
        >>> sanitize_name("my holiday  photo.png")
        'my_holiday_photo.png'
    """
    name = _PATH_SEPARATORS.split(raw_name or "")[-1]
    name = _WHITESPACE.sub("_", name)
    name = _DISALLOWED.sub("", name)
    name = name.lstrip(".")
    return name or FALLBACK_NAME


def is_safe_identifier(value: str) -> bool:
    """True when ``value`` is non-empty and survives sanitizing unchanged."""
    return bool(value) and sanitize_name(value) == value
