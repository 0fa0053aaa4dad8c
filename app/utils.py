"""Utility helpers for the Cine Explorer service."""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime


UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
YEAR_SUFFIX_RE = re.compile(r"-(\d{4})$")
YEAR_RE = re.compile(r"(\d{4})")

_INVALID_SLUG_CHARS_RE = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_REPEATED_HYPHENS_RE = re.compile(r"-+")


def generate_slug(title: str | None, year: str | int | None = None) -> str:
    """Return the canonical URL slug for a title and optional release year."""

    value = unicodedata.normalize("NFKD", (title or "").lower())
    value = value.encode("ascii", "ignore").decode("ascii")
    value = _INVALID_SLUG_CHARS_RE.sub("", value)
    value = _WHITESPACE_RE.sub("-", value.strip())
    value = _REPEATED_HYPHENS_RE.sub("-", value).strip("-")

    if not value or year is None or year == "":
        return value
    year_slug = generate_slug(str(year))
    if not year_slug:
        return value
    return f"{value}-{year_slug}"


def strip_year_suffix(slug: str) -> str:
    """Drop a trailing ``-YYYY`` segment from ``slug`` if present."""

    return YEAR_SUFFIX_RE.sub("", slug)


def release_year(value: date | datetime | str | None) -> str | None:
    """Extract the four digit year from a date or date-like string."""

    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return f"{value.year:04d}"
    match = YEAR_RE.search(str(value))
    if not match:
        return None
    return match.group(1)


def looks_like_uuid(value: str | None) -> bool:
    """Return ``True`` when ``value`` has the canonical UUID shape."""

    if not value:
        return False
    return bool(UUID_RE.match(value.strip()))
