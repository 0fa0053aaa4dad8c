"""SQLAlchemy ORM models backing the persistent state."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class CatalogRecordMixin:
    """Columns shared by the movie and series tables."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    tmdb_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(255))
    original_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    overview: Mapped[str | None] = mapped_column(Text, nullable=True)
    poster_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    backdrop_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    genres: Mapped[list[str]] = mapped_column(JSON, default=list)
    rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    stream_servers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class MovieRecord(CatalogRecordMixin, Base):
    """Represents a persisted movie."""

    __tablename__ = "movies"

    release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    runtime: Mapped[int | None] = mapped_column(Integer, nullable=True)
    trailer_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    stream_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)


class SeriesRecord(CatalogRecordMixin, Base):
    """Represents a persisted series with its seasons and episodes."""

    __tablename__ = "series"

    first_air_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    number_of_seasons: Mapped[int | None] = mapped_column(Integer, nullable=True)
    number_of_episodes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    seasons: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)


class FeaturedItemRecord(Base):
    """Entry of the home page featured carousel."""

    __tablename__ = "featured_items"
    __table_args__ = (
        UniqueConstraint("item_type", "item_id", name="uq_featured_item"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    item_id: Mapped[str] = mapped_column(String(36))
    item_type: Mapped[str] = mapped_column(String(16))
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )


class SiteSettingsRecord(Base):
    """Single-row table holding the public site settings."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    site_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    site_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ads_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    telegram_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class MovieViewRecord(Base):
    """A single recorded playback page view of a movie."""

    __tablename__ = "movie_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        "movie_id", String(36), ForeignKey("movies.id", ondelete="CASCADE"), index=True
    )
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class SeriesViewRecord(Base):
    """A single recorded playback page view of a series."""

    __tablename__ = "series_views"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        "series_id", String(36), ForeignKey("series.id", ondelete="CASCADE"), index=True
    )
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    viewed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


CATALOG_RECORDS: dict[str, type[MovieRecord] | type[SeriesRecord]] = {
    "movie": MovieRecord,
    "series": SeriesRecord,
}

VIEW_RECORDS: dict[str, type[MovieViewRecord] | type[SeriesViewRecord]] = {
    "movie": MovieViewRecord,
    "series": SeriesViewRecord,
}
