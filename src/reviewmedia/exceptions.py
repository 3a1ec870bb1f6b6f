"""Persistence errors raised by the media record repository."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import exc as sa_exc

__all__ = [
    "RepositoryError",
    "DuplicateRecordError",
    "DatabaseOperationError",
    "handle_sqlalchemy_errors",
]


class RepositoryError(Exception):
    """Base class for persistence layer failures."""

    def __init__(self, message: str, *, entity: str | None = None) -> None:
        super().__init__(f"{entity}: {message}" if entity else message)
        self.entity = entity


class DuplicateRecordError(RepositoryError):
    """Raised when a record id or storage key is already taken."""


class DatabaseOperationError(RepositoryError):
    """Raised for unexpected database errors."""


@contextmanager
def handle_sqlalchemy_errors(*, entity: str | None = None) -> Iterator[None]:
    """Translate SQLAlchemy errors into repository errors."""

    try:
        yield
    except sa_exc.IntegrityError as exc:
        raise DuplicateRecordError("integrity constraint violated", entity=entity) from exc
    except sa_exc.SQLAlchemyError as exc:
        raise DatabaseOperationError("database operation failed", entity=entity) from exc
