"""Featured carousel, site settings and view tracking."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Sequence

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db_models import (
    CATALOG_RECORDS,
    VIEW_RECORDS,
    FeaturedItemRecord,
    SiteSettingsRecord,
)
from ..errors import (
    BackendError,
    CatalogValidationError,
    NotFoundError,
    backend_errors,
)
from ..models import (
    CatalogItem,
    FeaturedEntry,
    SiteSettings,
    SiteSettingsPayload,
    item_from_record,
)
from .catalog import check_kind

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1
DEFAULT_SITE_NAME = "Cine Explorer"
DEFAULT_SITE_DESCRIPTION = "Explora miles de películas y series online"


class FeaturedService:
    """Manage the ordered list of items shown in the home carousel."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_featured(self) -> list[FeaturedEntry]:
        """Return featured slots in display order, skipping deleted items."""

        entries: list[FeaturedEntry] = []
        with backend_errors("listing featured items"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(FeaturedItemRecord).order_by(
                        FeaturedItemRecord.display_order, FeaturedItemRecord.created_at
                    )
                )
                for slot in result.scalars().all():
                    record_type = CATALOG_RECORDS.get(slot.item_type)
                    if record_type is None:
                        continue
                    record = await session.get(record_type, slot.item_id)
                    if record is None:
                        logger.debug(
                            "Featured slot %s points at missing %s %s",
                            slot.id,
                            slot.item_type,
                            slot.item_id,
                        )
                        continue
                    entries.append(
                        FeaturedEntry(
                            id=slot.id,
                            display_order=slot.display_order,
                            item=item_from_record(slot.item_type, record),
                        )
                    )
        return entries

    async def add_featured(self, kind: str, item_id: str) -> FeaturedEntry:
        record_type = CATALOG_RECORDS[check_kind(kind)]
        with backend_errors(f"featuring {kind} {item_id}"):
            async with self._session_factory() as session:
                record = await session.get(record_type, item_id)
                if record is None:
                    raise NotFoundError()
                existing = await session.execute(
                    select(FeaturedItemRecord).where(
                        FeaturedItemRecord.item_type == kind,
                        FeaturedItemRecord.item_id == item_id,
                    )
                )
                if existing.scalars().first() is not None:
                    raise CatalogValidationError("Este elemento ya está destacado")
                highest = await session.execute(
                    select(func.max(FeaturedItemRecord.display_order))
                )
                next_order = (highest.scalar_one_or_none() or 0) + 1
                slot = FeaturedItemRecord(
                    item_id=item_id, item_type=kind, display_order=next_order
                )
                session.add(slot)
                await session.commit()
                await session.refresh(slot)
                return FeaturedEntry(
                    id=slot.id,
                    display_order=slot.display_order,
                    item=item_from_record(kind, record),
                )

    async def remove_featured(self, slot_id: str) -> None:
        with backend_errors(f"removing featured slot {slot_id}"):
            async with self._session_factory() as session:
                slot = await session.get(FeaturedItemRecord, slot_id)
                if slot is None:
                    raise NotFoundError()
                await session.delete(slot)
                await session.commit()

    async def reorder(self, slot_ids: Sequence[str]) -> list[FeaturedEntry]:
        """Renumber slots so they follow ``slot_ids``; unlisted slots go last."""

        if len(set(slot_ids)) != len(slot_ids):
            raise CatalogValidationError("Duplicate featured slot identifiers")
        with backend_errors("reordering featured items"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(FeaturedItemRecord).order_by(
                        FeaturedItemRecord.display_order, FeaturedItemRecord.created_at
                    )
                )
                slots = {slot.id: slot for slot in result.scalars().all()}
                unknown = [slot_id for slot_id in slot_ids if slot_id not in slots]
                if unknown:
                    raise NotFoundError(f"Unknown featured slots: {', '.join(unknown)}")
                ordered = [slots.pop(slot_id) for slot_id in slot_ids]
                ordered.extend(slots.values())
                for position, slot in enumerate(ordered, start=1):
                    slot.display_order = position
                await session.commit()
        return await self.list_featured()


class SiteSettingsService:
    """Read and update the single site settings row."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        default_name: str = DEFAULT_SITE_NAME,
        default_description: str = DEFAULT_SITE_DESCRIPTION,
    ) -> None:
        self._session_factory = session_factory
        self._default_name = default_name
        self._default_description = default_description

    def defaults(self) -> SiteSettings:
        return SiteSettings(
            site_name=self._default_name,
            site_description=self._default_description,
            updated_at=datetime.utcnow(),
        )

    async def get_settings(self) -> SiteSettings:
        """Return stored settings, or the defaults when none can be read."""

        try:
            with backend_errors("loading site settings"):
                async with self._session_factory() as session:
                    record = await session.get(SiteSettingsRecord, SETTINGS_ROW_ID)
        except BackendError:
            logger.warning("Falling back to default site settings")
            return self.defaults()
        if record is None:
            return self.defaults()
        return self._to_model(record)

    async def update_settings(
        self, data: Mapping[str, Any] | SiteSettingsPayload
    ) -> SiteSettings:
        if isinstance(data, SiteSettingsPayload):
            payload = data
        else:
            try:
                payload = SiteSettingsPayload.model_validate(data)
            except ValidationError as exc:
                raise CatalogValidationError(str(exc)) from exc
        changes = payload.model_dump(exclude_unset=True)

        with backend_errors("updating site settings"):
            async with self._session_factory() as session:
                record = await session.get(SiteSettingsRecord, SETTINGS_ROW_ID)
                if record is None:
                    record = SiteSettingsRecord(
                        id=SETTINGS_ROW_ID,
                        site_name=self._default_name,
                        site_description=self._default_description,
                    )
                    session.add(record)
                for key, value in changes.items():
                    setattr(record, key, value)
                record.updated_at = datetime.utcnow()
                await session.commit()
                await session.refresh(record)
        return self._to_model(record)

    def _to_model(self, record: SiteSettingsRecord) -> SiteSettings:
        return SiteSettings(
            site_name=record.site_name or self._default_name,
            site_description=record.site_description or self._default_description,
            logo_url=record.logo_url,
            ads_code=record.ads_code,
            telegram_url=record.telegram_url,
            updated_at=record.updated_at,
        )


class ViewsService:
    """Record detail page views and rank the most watched items."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_view(
        self, kind: str, item_id: str, *, user_agent: str | None = None
    ) -> bool:
        """Store a view; failures are logged and reported as ``False``."""

        view_type = VIEW_RECORDS[check_kind(kind)]
        record_type = CATALOG_RECORDS[kind]
        try:
            with backend_errors(f"recording {kind} view"):
                async with self._session_factory() as session:
                    if await session.get(record_type, item_id) is None:
                        logger.warning("Ignoring view for unknown %s %s", kind, item_id)
                        return False
                    session.add(
                        view_type(item_id=item_id, user_agent=(user_agent or "")[:512] or None)
                    )
                    await session.commit()
        except BackendError:
            logger.warning("Could not record view for %s %s", kind, item_id)
            return False
        return True

    async def most_viewed(self, kind: str, *, limit: int = 20) -> list[CatalogItem]:
        """Return the most viewed items, or the newest when nothing ranks."""

        view_type = VIEW_RECORDS[check_kind(kind)]
        record_type = CATALOG_RECORDS[kind]
        view_count = func.count(view_type.id).label("view_count")
        ranked = (
            select(record_type, view_count)
            .join(view_type, view_type.item_id == record_type.id)
            .group_by(record_type.id)
            .order_by(view_count.desc(), record_type.created_at.desc())
            .limit(limit)
        )
        try:
            with backend_errors(f"ranking {kind} views"):
                async with self._session_factory() as session:
                    result = await session.execute(ranked)
                    items = [item_from_record(kind, row[0]) for row in result.all()]
        except BackendError:
            logger.warning("Most viewed %s unavailable, falling back to recent", kind)
            items = []
        if items:
            return items

        with backend_errors(f"loading recent {kind}"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(record_type)
                    .order_by(record_type.created_at.desc(), record_type.id)
                    .limit(limit)
                )
                return [item_from_record(kind, record) for record in result.scalars().all()]
