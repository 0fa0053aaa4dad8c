"""Genre-overlap based "you might also like" lookups."""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import CATALOG_RECORDS
from ..errors import BackendError, backend_errors
from ..models import CatalogItem, item_from_record

logger = logging.getLogger(__name__)

DEFAULT_RELATED_LIMIT = 6


class RelatedContentMatcher:
    """Find items of the same kind sharing at least one genre."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_related(
        self,
        kind: str,
        item_id: str,
        genres: Sequence[str] | None = None,
        *,
        limit: int = DEFAULT_RELATED_LIMIT,
    ) -> list[CatalogItem]:
        """Return up to ``limit`` related items, never including ``item_id``.

        Matches are ordered by rating (unrated last), then newest first. When
        the overlap query fails or finds nothing the most recently added items
        are returned instead; if that fails too the result is empty.
        """

        if limit <= 0:
            return []
        wanted = [genre for genre in genres or [] if genre and genre.strip()]

        try:
            related = await self._genre_overlap(kind, item_id, wanted, limit)
        except (BackendError, ValidationError):
            logger.warning(
                "Related %s lookup for %s failed; using recent items", kind, item_id
            )
            related = []
        if related:
            return related

        try:
            return await self._recent(kind, item_id, limit)
        except (BackendError, ValidationError):
            logger.warning("Recent %s fallback for %s failed", kind, item_id)
            return []

    async def _genre_overlap(
        self, kind: str, item_id: str, genres: list[str], limit: int
    ) -> list[CatalogItem]:
        record_type = CATALOG_RECORDS[kind]
        statement = (
            select(record_type)
            .where(record_type.id != item_id)
            .order_by(
                record_type.rating.desc().nulls_last(),
                record_type.created_at.desc(),
                record_type.id,
            )
        )
        with backend_errors(f"loading related {kind} for {item_id}"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                records = result.scalars().all()

        matches: list[CatalogItem] = []
        for record in records:
            item = item_from_record(kind, record)
            if genres and not item.shares_genre(genres):
                continue
            matches.append(item)
            if len(matches) >= limit:
                break
        return matches

    async def _recent(self, kind: str, item_id: str, limit: int) -> list[CatalogItem]:
        record_type = CATALOG_RECORDS[kind]
        statement = (
            select(record_type)
            .where(record_type.id != item_id)
            .order_by(record_type.created_at.desc(), record_type.id)
            .limit(limit)
        )
        with backend_errors(f"loading recent {kind}"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return [item_from_record(kind, record) for record in result.scalars().all()]
