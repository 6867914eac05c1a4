"""Repository pattern for Translarr database operations using SQLAlchemy ORM."""

from db.repositories.base import BaseRepository
from db.repositories.config import ConfigRepository
from db.repositories.subtitles import SubtitleEntryRepository
from db.repositories.usage import ApiUsageRepository
from db.repositories.watch import SeriesWatchConfigRepository

__all__ = [
    "BaseRepository",
    "ConfigRepository",
    "SubtitleEntryRepository",
    "ApiUsageRepository",
    "SeriesWatchConfigRepository",
]
