"""Resolution of human-readable slugs to catalog records."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import CATALOG_RECORDS
from ..errors import NotFoundError, backend_errors
from ..models import CatalogItem, item_from_record
from ..utils import generate_slug, looks_like_uuid, strip_year_suffix

logger = logging.getLogger(__name__)


class SlugResolver:
    """Locate a movie or series from an incoming slug or identifier.

    Lookups cascade from the cheapest to the most tolerant strategy:

    1. identifiers shaped like a UUID are looked up by primary key;
    2. the stored ``slug`` column is queried through its index;
    3. every item of the requested kind is scanned and matched against the
       slug variants derived from its titles and release year, first with the
       input as given and then with a trailing ``-YYYY`` removed.

    Stored slugs may be missing or stale (items created before slugs existed,
    titles edited later), so the last step never requires a migration.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve(self, kind: str, value: str) -> CatalogItem:
        record_type = CATALOG_RECORDS[kind]
        raw = (value or "").strip()
        if not raw:
            raise NotFoundError()

        with backend_errors(f"resolving {kind} '{raw}'"):
            async with self._session_factory() as session:
                if looks_like_uuid(raw):
                    record = await session.get(record_type, raw.lower())
                    if record is None and raw != raw.lower():
                        record = await session.get(record_type, raw)
                    if record is not None:
                        return item_from_record(kind, record)

                normalized = generate_slug(raw)
                indexed = await session.execute(
                    select(record_type)
                    .where(record_type.slug.in_(sorted({raw, normalized} - {""})))
                    .order_by(record_type.created_at, record_type.id)
                    .limit(1)
                )
                record = indexed.scalars().first()
                if record is not None:
                    return item_from_record(kind, record)

                result = await session.execute(
                    select(record_type).order_by(record_type.created_at, record_type.id)
                )
                candidates = [
                    item_from_record(kind, candidate)
                    for candidate in result.scalars().all()
                ]

        match = self._match_variants(raw, candidates)
        if match is None:
            logger.info("No %s matches slug '%s'", kind, raw)
            raise NotFoundError()
        return match

    @staticmethod
    def _match_variants(
        value: str, candidates: list[CatalogItem]
    ) -> CatalogItem | None:
        exact_forms = {value, generate_slug(value)} - {""}
        stripped = strip_year_suffix(generate_slug(value))
        passes = [exact_forms]
        if stripped and stripped not in exact_forms:
            passes.append({stripped})

        variants = [(candidate, candidate.slug_variants()) for candidate in candidates]
        for forms in passes:
            for candidate, candidate_variants in variants:
                if forms & candidate_variants:
                    return candidate
        return None
