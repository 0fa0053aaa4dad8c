"""Error taxonomy shared by the catalog services."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base class for errors raised by the catalog services."""


class NotFoundError(CatalogError):
    """Raised when a slug or identifier does not match any record."""

    def __init__(self, message: str = "Item not found") -> None:
        super().__init__(message)


class BackendError(CatalogError):
    """Raised when a query or mutation against the database fails."""


class MetadataImportError(CatalogError):
    """Raised when third-party metadata cannot be turned into a catalog item."""


class CatalogValidationError(CatalogError, ValueError):
    """Raised when a payload is missing required fields or is out of range."""


@contextmanager
def backend_errors(action: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into :class:`BackendError`."""

    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("Database operation failed while %s: %s", action, exc)
        raise BackendError(f"Database error while {action}: {exc}") from exc
