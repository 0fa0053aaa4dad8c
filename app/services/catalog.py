"""Catalog reads and admin mutations for movies and series."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Sequence

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy import delete as sql_delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import CATALOG_RECORDS, VIEW_RECORDS, FeaturedItemRecord
from ..errors import (
    BackendError,
    CatalogValidationError,
    NotFoundError,
    backend_errors,
)
from ..models import (
    CONTENT_TYPES,
    PAYLOAD_MODELS,
    CatalogItem,
    CatalogItemPayload,
    SearchResult,
    item_from_record,
)
from ..utils import generate_slug, release_year
from .related import DEFAULT_RELATED_LIMIT, RelatedContentMatcher
from .resolver import SlugResolver

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
RELEASE_COLUMNS = {"movie": "release_date", "series": "first_air_date"}


def contains_pattern(term: str) -> str:
    """Return a LIKE pattern matching ``term`` literally anywhere in a value."""

    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def check_kind(kind: str) -> str:
    if kind not in CONTENT_TYPES:
        raise CatalogValidationError(f"Unsupported content type: {kind}")
    return kind


def derive_slug(kind: str, title: str, release: object) -> str:
    """Return the slug stored for an item written without an explicit one.

    Movies carry their release year so remakes stay distinct; series are
    addressed by title alone.
    """

    if kind == "movie":
        return generate_slug(title, release_year(release))  # type: ignore[arg-type]
    return generate_slug(title)


class CatalogService:
    """Coordinates catalog queries, slug resolution and related lookups."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        search_limit: int = 10,
    ) -> None:
        self._session_factory = session_factory
        self._search_limit = search_limit
        self.resolver = SlugResolver(session_factory)
        self.related = RelatedContentMatcher(session_factory)

    # Reads -----------------------------------------------------------------

    async def list_items(
        self,
        kind: str,
        *,
        search: str = "",
        genre: str | None = None,
        limit: int | None = None,
    ) -> list[CatalogItem]:
        """Return items newest first, optionally filtered by title or genre."""

        record_type = CATALOG_RECORDS[check_kind(kind)]
        statement = select(record_type).order_by(
            record_type.created_at.desc(), record_type.id
        )
        term = search.strip()
        if term:
            statement = statement.where(
                record_type.title.ilike(contains_pattern(term), escape="\\")
            )
        if limit is not None and not genre:
            statement = statement.limit(limit)

        with backend_errors(f"listing {kind}"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                records = result.scalars().all()

        items = [item_from_record(kind, record) for record in records]
        if genre:
            items = [item for item in items if item.shares_genre([genre])]
            if limit is not None:
                items = items[:limit]
        return items

    async def get_item(self, kind: str, item_id: str) -> CatalogItem:
        record_type = CATALOG_RECORDS[check_kind(kind)]
        with backend_errors(f"loading {kind} {item_id}"):
            async with self._session_factory() as session:
                record = await session.get(record_type, item_id)
        if record is None:
            raise NotFoundError()
        return item_from_record(kind, record)

    async def resolve_by_slug(self, kind: str, slug: str) -> CatalogItem:
        return await self.resolver.resolve(check_kind(kind), slug)

    async def find_related(
        self,
        kind: str,
        item_id: str,
        genres: Sequence[str] | None = None,
        *,
        limit: int = DEFAULT_RELATED_LIMIT,
    ) -> list[CatalogItem]:
        return await self.related.find_related(
            check_kind(kind), item_id, genres, limit=limit
        )

    async def count_items(self, kind: str) -> int:
        record_type = CATALOG_RECORDS[check_kind(kind)]
        with backend_errors(f"counting {kind}"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(func.count()).select_from(record_type)
                )
                return int(result.scalar_one())

    async def list_genres(self) -> list[str]:
        """Return every genre label in use, sorted case-insensitively."""

        seen: dict[str, str] = {}
        for kind in CONTENT_TYPES:
            record_type = CATALOG_RECORDS[kind]
            with backend_errors(f"listing {kind} genres"):
                async with self._session_factory() as session:
                    result = await session.execute(select(record_type.genres))
                    rows = result.scalars().all()
            for genres in rows:
                for genre in genres or []:
                    label = " ".join(str(genre).split())
                    if label:
                        seen.setdefault(label.casefold(), label)
        return sorted(seen.values(), key=str.casefold)

    async def search_all(self, term: str) -> list[SearchResult]:
        """Search movie and series titles, best rated first."""

        term = (term or "").strip()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        results: list[SearchResult] = []
        for kind in CONTENT_TYPES:
            record_type = CATALOG_RECORDS[kind]
            statement = (
                select(record_type)
                .where(record_type.title.ilike(contains_pattern(term), escape="\\"))
                .order_by(record_type.rating.desc().nulls_last(), record_type.id)
                .limit(self._search_limit)
            )
            try:
                with backend_errors(f"searching {kind}"):
                    async with self._session_factory() as session:
                        result = await session.execute(statement)
                        records = result.scalars().all()
            except BackendError:
                logger.warning("Search for %r skipped %s results", term, kind)
                continue
            results.extend(
                SearchResult.from_item(item_from_record(kind, record))
                for record in records
            )

        results.sort(key=lambda hit: hit.rating or 0, reverse=True)
        return results[: self._search_limit]

    # Mutations -------------------------------------------------------------

    def parse_payload(
        self, kind: str, data: Mapping[str, Any] | CatalogItemPayload
    ) -> CatalogItemPayload:
        payload_type = PAYLOAD_MODELS[check_kind(kind)]
        if isinstance(data, payload_type):
            return data
        if isinstance(data, CatalogItemPayload):
            data = data.model_dump(exclude_unset=True)
        try:
            return payload_type.model_validate(data)
        except ValidationError as exc:
            raise CatalogValidationError(str(exc)) from exc

    async def create_item(
        self, kind: str, data: Mapping[str, Any] | CatalogItemPayload
    ) -> CatalogItem:
        payload = self.parse_payload(kind, data)
        if not payload.title:
            raise CatalogValidationError("El título es obligatorio")

        columns = payload.to_columns()
        if not columns.get("slug"):
            columns["slug"] = derive_slug(
                kind, payload.title, columns.get(RELEASE_COLUMNS[kind])
            )
        columns.setdefault("genres", [])
        columns.setdefault("stream_servers", [])

        record_type = CATALOG_RECORDS[kind]
        with backend_errors(f"creating {kind}"):
            async with self._session_factory() as session:
                record = record_type(**columns)
                session.add(record)
                await session.commit()
                await session.refresh(record)
        item = item_from_record(kind, record)
        logger.info("Created %s %s (%s)", kind, item.id, item.slug)
        return item

    async def update_item(
        self, kind: str, item_id: str, data: Mapping[str, Any] | CatalogItemPayload
    ) -> CatalogItem:
        """Apply a partial update; concurrent writers follow last-write-wins."""

        payload = self.parse_payload(kind, data)
        columns = payload.to_columns()
        if "title" in columns and not columns["title"]:
            raise CatalogValidationError("El título es obligatorio")

        record_type = CATALOG_RECORDS[kind]
        release_column = RELEASE_COLUMNS[kind]
        with backend_errors(f"updating {kind} {item_id}"):
            async with self._session_factory() as session:
                record = await session.get(record_type, item_id)
                if record is None:
                    raise NotFoundError()

                previous_slug = derive_slug(
                    kind, record.title, getattr(record, release_column)
                )
                slug_was_derived = not record.slug or record.slug == previous_slug
                for key, value in columns.items():
                    if key == "slug":
                        continue
                    setattr(record, key, value)

                if columns.get("slug"):
                    record.slug = columns["slug"]
                elif "slug" in columns or slug_was_derived:
                    record.slug = derive_slug(
                        kind, record.title, getattr(record, release_column)
                    )
                record.updated_at = datetime.utcnow()
                await session.commit()
                await session.refresh(record)
        return item_from_record(kind, record)

    async def delete_item(self, kind: str, item_id: str) -> None:
        record_type = CATALOG_RECORDS[check_kind(kind)]
        view_type = VIEW_RECORDS[kind]
        with backend_errors(f"deleting {kind} {item_id}"):
            async with self._session_factory() as session:
                record = await session.get(record_type, item_id)
                if record is None:
                    raise NotFoundError()
                await session.execute(
                    sql_delete(view_type).where(view_type.item_id == item_id)
                )
                await session.execute(
                    sql_delete(FeaturedItemRecord).where(
                        FeaturedItemRecord.item_type == kind,
                        FeaturedItemRecord.item_id == item_id,
                    )
                )
                await session.delete(record)
                await session.commit()
        logger.info("Deleted %s %s", kind, item_id)

    async def fix_missing_slugs(self) -> dict[str, int]:
        """Rewrite missing or drifted slugs with the canonical generator."""

        fixed: dict[str, int] = {}
        for kind in CONTENT_TYPES:
            record_type = CATALOG_RECORDS[kind]
            release_column = RELEASE_COLUMNS[kind]
            count = 0
            with backend_errors(f"repairing {kind} slugs"):
                async with self._session_factory() as session:
                    result = await session.execute(select(record_type))
                    for record in result.scalars().all():
                        expected = derive_slug(
                            kind, record.title, getattr(record, release_column)
                        )
                        if expected and record.slug != expected:
                            record.slug = expected
                            count += 1
                    await session.commit()
            fixed[kind] = count
        logger.info("Slug repair updated %s", fixed)
        return fixed