"""Core ORM models: subtitle entries, watch configs, API usage, app settings.

Timestamps are naive UTC datetimes (SQLite has no timezone support); use
db.repositories.base.utcnow() when writing them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, UniqueConstraint, and_, not_, or_
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db


def is_translation_eligible(processed: bool, wanted: bool, already_had: bool,
                            force_process: bool) -> bool:
    """Whether an entry should be picked up by the next translation batch.

    Unprocessed wanted entries without an existing target subtitle are
    eligible; force_process overrides every other flag.
    """
    return (not processed and wanted and not already_had) or force_process


class SubtitleEntry(db.Model):
    """One video file and its subtitle translation status."""

    __tablename__ = "subtitle_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    series: Mapped[str] = mapped_column(Text, nullable=False)
    season: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(Text, nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    is_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_wanted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    force_process: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    already_had: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_scanned: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_subtitle_entries_series_season", "series", "season"),
        Index("idx_subtitle_entries_eligibility", "is_processed", "is_wanted", "already_had"),
    )

    @hybrid_property
    def is_eligible(self) -> bool:
        return is_translation_eligible(
            self.is_processed, self.is_wanted, self.already_had, self.force_process
        )

    @is_eligible.inplace.expression
    @classmethod
    def _is_eligible_expression(cls):
        return or_(
            and_(not_(cls.is_processed), cls.is_wanted, not_(cls.already_had)),
            cls.force_process,
        )


class SeriesWatchConfig(db.Model):
    """Auto-watch rule for a series (season_name NULL) or a single season."""

    __tablename__ = "series_watch_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    series_name: Mapped[str] = mapped_column(Text, nullable=False)
    season_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    auto_watch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("series_name", "season_name", name="uq_series_watch_scope"),
    )


class ApiUsage(db.Model):
    """One successful translation request (append-only)."""

    __tablename__ = "api_usage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("idx_api_usage_model_date", "model", "date"),)


class AppSetting(db.Model):
    """Runtime key/value settings editable without a restart."""

    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


__all__ = [
    "is_translation_eligible",
    "SubtitleEntry",
    "SeriesWatchConfig",
    "ApiUsage",
    "AppSetting",
]
