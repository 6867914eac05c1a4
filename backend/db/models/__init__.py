"""SQLAlchemy ORM models for the Translarr database.

All models use Flask-SQLAlchemy's db.Model as the base class.
Import all models from here so db.create_all() sees every table.
"""

from db.models.core import (
    ApiUsage,
    AppSetting,
    SeriesWatchConfig,
    SubtitleEntry,
    is_translation_eligible,
)

__all__ = [
    "ApiUsage",
    "AppSetting",
    "SeriesWatchConfig",
    "SubtitleEntry",
    "is_translation_eligible",
]
