"""Database utilities for the Cine Explorer service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base with consistent naming conventions."""

    metadata = MetaData()


class Database:
    """Thin wrapper managing the SQLAlchemy async engine and sessions."""

    def __init__(self, database_url: str):
        self._engine: AsyncEngine = create_async_engine(database_url, future=True)
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_all(self) -> None:
        """Create database tables if they do not yet exist."""

        async with self._engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)
            await connection.run_sync(self._apply_schema_migrations)

    @staticmethod
    def _apply_schema_migrations(sync_connection) -> None:
        """Add columns introduced after the catalog tables were first created."""

        inspector = inspect(sync_connection)
        table_names = set(inspector.get_table_names())

        def _ensure_column(
            table: str, name: str, ddl: str, init_sql: str | None = None
        ) -> None:
            if table not in table_names:
                return
            existing_columns = {
                column["name"] for column in inspector.get_columns(table)
            }
            if name in existing_columns:
                return
            sync_connection.execute(text(ddl))
            if init_sql:
                sync_connection.execute(text(init_sql))

        for table in ("movies", "series"):
            _ensure_column(
                table,
                "slug",
                f"ALTER TABLE {table} ADD COLUMN slug VARCHAR(255)",
            )
            _ensure_column(
                table,
                "stream_servers",
                f"ALTER TABLE {table} ADD COLUMN stream_servers JSON",
                f"UPDATE {table} SET stream_servers = '[]' WHERE stream_servers IS NULL",
            )
            if table in table_names:
                sync_connection.execute(
                    text(f"CREATE INDEX IF NOT EXISTS ix_{table}_slug ON {table} (slug)")
                )
        _ensure_column(
            "series",
            "seasons",
            "ALTER TABLE series ADD COLUMN seasons JSON",
            "UPDATE series SET seasons = '[]' WHERE seasons IS NULL",
        )

    async def dispose(self) -> None:
        """Dispose of the underlying database engine."""

        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Provide a transactional scope around a series of operations."""

        async with self.session_factory() as session:
            yield session
