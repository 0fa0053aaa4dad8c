"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_STREAM_LANGUAGE = "Español Latino"
DEFAULT_LANGUAGE_PRIORITY: tuple[str, ...] = (
    "Español Latino",
    "Español",
    "Subtitulado",
)
DEMO_STREAM_URL = (
    "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"
)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Cine Explorer", alias="APP_NAME")
    site_description: str = Field(
        default="Explora miles de películas y series online",
        alias="SITE_DESCRIPTION",
    )
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinexplorer.db", alias="DATABASE_URL"
    )

    admin_email: str | None = Field(default=None, alias="ADMIN_EMAIL")
    admin_password_hash: str | None = Field(
        default=None, alias="ADMIN_PASSWORD_HASH"
    )
    admin_session_ttl_seconds: int = Field(
        default=43_200, alias="ADMIN_SESSION_TTL", ge=300, le=604_800
    )

    related_limit: int = Field(default=6, alias="RELATED_LIMIT", ge=1, le=50)
    most_viewed_limit: int = Field(
        default=20, alias="MOST_VIEWED_LIMIT", ge=1, le=100
    )
    search_result_limit: int = Field(
        default=10, alias="SEARCH_RESULT_LIMIT", ge=1, le=50
    )

    stream_language_priority: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_LANGUAGE_PRIORITY, alias="STREAM_LANGUAGE_PRIORITY"
    )
    demo_stream_url: str = Field(default=DEMO_STREAM_URL, alias="DEMO_STREAM_URL")

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("stream_language_priority", mode="before")
    @classmethod
    def _parse_language_priority(cls, value: object) -> tuple[str, ...]:
        """Normalise the language ordering from environment values."""

        if value is None:
            return DEFAULT_LANGUAGE_PRIORITY
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError(
                "STREAM_LANGUAGE_PRIORITY must be a string or iterable of strings"
            )

        cleaned: list[str] = []
        for entry in raw_values:
            if not entry:
                continue
            label = " ".join(entry.split())
            if label.casefold() not in {existing.casefold() for existing in cleaned}:
                cleaned.append(label)
        if not cleaned:
            return DEFAULT_LANGUAGE_PRIORITY
        return tuple(cleaned)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
