"""Input hygiene helpers for user-supplied strings."""

from __future__ import annotations

import re

_HTML_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
    "'": "&#x27;",
}
_HTML_ESCAPE_RE = re.compile(r"[<>&\"']")
_LIKE_SPECIALS_RE = re.compile(r"([%_\\])")
_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

MAX_EMAIL_LENGTH = 254


def sanitize_string(value: str) -> str:
    """Trim and HTML-escape a string.

    Examples:
        >>> sanitize_string("  <b>hi</b> ")
        '&lt;b&gt;hi&lt;/b&gt;'
    """
    return _HTML_ESCAPE_RE.sub(lambda m: _HTML_ESCAPES[m.group(0)], value.strip())


def escape_like_query(value: str) -> str:
    """Escape ``%``, ``_`` and ``\\`` for use inside a SQL LIKE pattern."""
    return _LIKE_SPECIALS_RE.sub(r"\\\1", value)


def is_valid_email(value: str) -> bool:
    return len(value) <= MAX_EMAIL_LENGTH and _EMAIL_RE.fullmatch(value) is not None


def normalize_email(value: str) -> str:
    """Sanitize and lowercase an email before it reaches an identity provider."""
    return sanitize_string(value).lower()
