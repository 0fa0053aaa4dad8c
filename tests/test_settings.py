"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.config import DEFAULT_LANGUAGE_PRIORITY, Settings


def test_language_priority_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.stream_language_priority == DEFAULT_LANGUAGE_PRIORITY


def test_language_priority_parses_comma_separated_values() -> None:
    """Language priority should be parsed from a comma separated string."""

    settings = Settings(
        _env_file=None,
        STREAM_LANGUAGE_PRIORITY="Subtitulado,  Español   Latino , subtitulado",
    )

    assert settings.stream_language_priority == ("Subtitulado", "Español Latino")


def test_language_priority_accepts_lists() -> None:
    settings = Settings(_env_file=None, STREAM_LANGUAGE_PRIORITY=["Inglés", "Español"])

    assert settings.stream_language_priority == ("Inglés", "Español")


def test_language_priority_blank_defaults() -> None:
    """Blank values fall back to the default ordering."""

    settings = Settings(_env_file=None, STREAM_LANGUAGE_PRIORITY=" , ")

    assert settings.stream_language_priority == DEFAULT_LANGUAGE_PRIORITY


def test_session_ttl_bounds() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, ADMIN_SESSION_TTL=10)
