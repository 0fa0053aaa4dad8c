"""Pytest configuration and test helpers."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app import db_models  # noqa: E402,F401
from app.database import Database  # noqa: E402


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture
def run_scenario(
    database_url: str,
) -> Callable[[Callable[[Database], Awaitable[Any]]], Any]:
    """Run ``scenario(database)`` against a freshly created schema."""

    def _run(scenario: Callable[[Database], Awaitable[Any]]) -> Any:
        async def _main() -> Any:
            database = Database(database_url)
            await database.create_all()
            try:
                return await scenario(database)
            finally:
                await database.dispose()

        return asyncio.run(_main())

    return _run


async def insert_record(database: Database, kind: str, **columns: Any) -> Any:
    """Insert a catalog row directly, bypassing service validation."""

    record_type = db_models.CATALOG_RECORDS[kind]
    columns.setdefault("genres", [])
    columns.setdefault("stream_servers", [])
    async with database.session() as session:
        record = record_type(**columns)
        session.add(record)
        await session.commit()
        await session.refresh(record)
        return record


@pytest.fixture
def seed() -> Callable[..., Awaitable[Any]]:
    return insert_record
