"""Pydantic models describing catalog payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal, Sequence

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_STREAM_LANGUAGE
from .utils import generate_slug, release_year

ContentType = Literal["movie", "series"]
CONTENT_TYPES: tuple[ContentType, ...] = ("movie", "series")


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _clean_stream_servers(value: object) -> list[object]:
    """Drop entries without a playable URL before validation."""

    if value is None or not isinstance(value, (list, tuple)):
        return []
    cleaned: list[object] = []
    for entry in value:
        if isinstance(entry, StreamServer):
            cleaned.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        url = entry.get("url")
        if isinstance(url, str) and url.strip():
            cleaned.append(entry)
    return cleaned


def _clean_genres(value: object) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        raise ValueError("genres must be a list of strings")
    cleaned: list[str] = []
    for entry in value:
        label = " ".join(str(entry).split())
        if label and label not in cleaned:
            cleaned.append(label)
    return cleaned


class StreamServer(BaseModel):
    """A named, language and quality tagged playable URL."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    name: str = "Servidor"
    url: str
    quality: str | None = None
    language: str | None = None

    @field_validator("url")
    @classmethod
    def _require_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Stream server URL must not be empty")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, value: object) -> object:
        return _blank_to_none(value) or "Servidor"

    @field_validator("quality", "language", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)

    def language_label(self, default: str = DEFAULT_STREAM_LANGUAGE) -> str:
        """Return the language used to group this server."""

        return self.language or default


StreamServerList = Annotated[list[StreamServer], BeforeValidator(_clean_stream_servers)]
GenreList = Annotated[list[str], BeforeValidator(_clean_genres)]


class Episode(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    episode_number: int = Field(ge=0)
    title: str | None = None
    overview: str | None = None
    stream_servers: StreamServerList = Field(default_factory=list)


class Season(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    season_number: int = Field(ge=0)
    title: str | None = None
    episodes: list[Episode] = Field(default_factory=list)

    def find_episode(self, episode_number: int) -> Episode | None:
        for episode in self.episodes:
            if episode.episode_number == episode_number:
                return episode
        return None


class CatalogItem(BaseModel):
    """Fields shared by movies and series."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    id: str
    type: ContentType
    title: str
    original_title: str | None = None
    slug: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    genres: GenreList = Field(default_factory=list)
    rating: float | None = None
    tmdb_id: int | None = None
    stream_servers: StreamServerList = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @property
    def release(self) -> date | None:
        return None

    @property
    def year(self) -> str | None:
        return release_year(self.release)

    def canonical_slug(self) -> str:
        """Return the slug the generator derives for this item."""

        return generate_slug(self.title)

    def public_slug(self) -> str:
        """Return the slug used in public URLs."""

        return self.slug or self.canonical_slug() or self.id

    def slug_variants(self) -> set[str]:
        """Return every slug form this item should answer to."""

        variants: set[str] = set()
        if self.slug:
            variants.add(self.slug)
            normalized = generate_slug(self.slug)
            if normalized:
                variants.add(normalized)
        for title in (self.title, self.original_title):
            base = generate_slug(title)
            if not base:
                continue
            variants.add(base)
            if self.year:
                variants.add(generate_slug(title, self.year))
        return variants

    def shares_genre(self, genres: Sequence[str]) -> bool:
        wanted = {genre.strip().casefold() for genre in genres if genre.strip()}
        return any(genre.casefold() in wanted for genre in self.genres)

    def to_card(self) -> dict[str, Any]:
        """Return the compact representation used by listing grids."""

        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "slug": self.public_slug(),
            "poster_path": self.poster_path,
            "year": self.year,
            "rating": self.rating,
            "genres": list(self.genres),
        }


class Movie(CatalogItem):
    type: Literal["movie"] = "movie"
    release_date: date | None = None
    runtime: int | None = None
    trailer_url: str | None = None
    stream_url: str | None = None

    @property
    def release(self) -> date | None:
        return self.release_date

    def canonical_slug(self) -> str:
        return generate_slug(self.title, self.year)


class Series(CatalogItem):
    type: Literal["series"] = "series"
    first_air_date: date | None = None
    number_of_seasons: int | None = None
    number_of_episodes: int | None = None
    status: str | None = None
    seasons: list[Season] = Field(default_factory=list)

    @field_validator("seasons", mode="before")
    @classmethod
    def _coerce_seasons(cls, value: object) -> object:
        if value is None or not isinstance(value, (list, tuple)):
            return []
        return value

    @property
    def release(self) -> date | None:
        return self.first_air_date

    def find_episode(self, season_number: int, episode_number: int) -> Episode | None:
        for season in self.seasons:
            if season.season_number == season_number:
                return season.find_episode(episode_number)
        return None


ITEM_MODELS: dict[str, type[Movie] | type[Series]] = {
    "movie": Movie,
    "series": Series,
}


def item_from_record(kind: str, record: Any) -> Movie | Series:
    """Validate an ORM record into its typed catalog model."""

    columns = {column.key: getattr(record, column.key) for column in record.__table__.columns}
    columns["type"] = kind
    return ITEM_MODELS[kind].model_validate(columns)


class CatalogItemPayload(BaseModel):
    """Partial payload accepted by the admin create and update operations."""

    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )

    title: str | None = None
    original_title: str | None = None
    slug: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    genres: GenreList | None = None
    rating: float | None = Field(default=None, ge=0, le=10)
    tmdb_id: int | None = None
    stream_servers: StreamServerList | None = None

    @field_validator(
        "title",
        "original_title",
        "overview",
        "poster_path",
        "backdrop_path",
        mode="before",
    )
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)

    @field_validator("slug", mode="before")
    @classmethod
    def _normalise_slug(cls, value: object) -> object:
        if value is None:
            return None
        return generate_slug(str(value)) or None

    def to_columns(self) -> dict[str, Any]:
        """Return the explicitly supplied fields as column values."""

        data = self.model_dump(mode="python", exclude_unset=True)
        if "stream_servers" in data:
            data["stream_servers"] = [
                server.model_dump(mode="json", exclude_none=True)
                for server in self.stream_servers or []
            ]
        return data


class MoviePayload(CatalogItemPayload):
    release_date: date | None = None
    runtime: int | None = Field(default=None, ge=0)
    trailer_url: str | None = None
    stream_url: str | None = None

    @field_validator("trailer_url", "stream_url", "release_date", mode="before")
    @classmethod
    def _strip_optional(cls, value: object) -> object:
        return _blank_to_none(value)


class SeriesPayload(CatalogItemPayload):
    first_air_date: date | None = None
    number_of_seasons: int | None = Field(default=None, ge=0)
    number_of_episodes: int | None = Field(default=None, ge=0)
    status: str | None = None
    seasons: list[Season] | None = None

    @field_validator("first_air_date", "status", mode="before")
    @classmethod
    def _strip_optional(cls, value: object) -> object:
        return _blank_to_none(value)

    def to_columns(self) -> dict[str, Any]:
        data = super().to_columns()
        if "seasons" in data:
            data["seasons"] = [
                season.model_dump(mode="json", exclude_none=True)
                for season in self.seasons or []
            ]
        return data


PAYLOAD_MODELS: dict[str, type[MoviePayload] | type[SeriesPayload]] = {
    "movie": MoviePayload,
    "series": SeriesPayload,
}


class SearchResult(BaseModel):
    """Combined movie/series search hit."""

    id: str
    type: ContentType
    title: str
    slug: str
    poster_path: str | None = None
    year: str | None = None
    rating: float | None = None
    overview: str | None = None

    @classmethod
    def from_item(cls, item: CatalogItem) -> "SearchResult":
        return cls(
            id=item.id,
            type=item.type,
            title=item.title,
            slug=item.public_slug(),
            poster_path=item.poster_path,
            year=item.year,
            rating=item.rating,
            overview=item.overview,
        )


class FeaturedEntry(BaseModel):
    """A featured carousel slot resolved to its catalog item."""

    id: str
    display_order: int
    item: Movie | Series = Field(discriminator="type")


class SiteSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    site_name: str
    site_description: str
    logo_url: str | None = None
    ads_code: str | None = None
    telegram_url: str | None = None
    updated_at: datetime | None = None


class SiteSettingsPayload(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )

    site_name: str | None = Field(default=None, max_length=120)
    site_description: str | None = None
    logo_url: str | None = None
    ads_code: str | None = None
    telegram_url: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        return _blank_to_none(value)
