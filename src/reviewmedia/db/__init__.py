"""Database models and schema helpers."""

from .db_models import Base, MediaRecordModel

__all__ = ["Base", "MediaRecordModel"]
