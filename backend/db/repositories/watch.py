"""Series watch config repository using SQLAlchemy ORM.

A config with season_name NULL covers the whole series. Uniqueness of
(series_name, season_name) is checked here as well as in the schema,
because NULL season names never collide in a SQL unique constraint.
"""

import logging
from typing import Optional

from sqlalchemy import select

from db.models.core import SeriesWatchConfig
from db.repositories.base import BaseRepository
from error_handler import ConflictError

logger = logging.getLogger(__name__)


def _scope_label(series_name: str, season_name: Optional[str]) -> str:
    label = f"series '{series_name}'"
    if season_name is not None:
        label += f" season '{season_name}'"
    return label


class SeriesWatchConfigRepository(BaseRepository):
    """Repository for series_watch_configs table operations."""

    def _scope_stmt(self, series_name: str, season_name: Optional[str]):
        stmt = select(SeriesWatchConfig).where(SeriesWatchConfig.series_name == series_name)
        if season_name is None:
            return stmt.where(SeriesWatchConfig.season_name.is_(None))
        return stmt.where(SeriesWatchConfig.season_name == season_name)

    def get_all(self) -> list[dict]:
        """Get all watch configs ordered by series and season."""
        stmt = select(SeriesWatchConfig).order_by(
            SeriesWatchConfig.series_name, SeriesWatchConfig.season_name
        )
        return [self._to_dict(c) for c in self.session.execute(stmt).scalars().all()]

    def get(self, series_name: str, season_name: Optional[str]) -> Optional[dict]:
        """Get the config for an exact scope, or None."""
        config = self.session.execute(self._scope_stmt(series_name, season_name)).scalars().first()
        return self._to_dict(config)

    def is_watched(self, series_name: str, season_name: str) -> bool:
        """True if the series, or this exact season of it, is auto-watched."""
        series_stmt = self._scope_stmt(series_name, None).where(SeriesWatchConfig.auto_watch.is_(True))
        if self.session.execute(series_stmt).scalars().first() is not None:
            return True

        season_stmt = self._scope_stmt(series_name, season_name).where(SeriesWatchConfig.auto_watch.is_(True))
        return self.session.execute(season_stmt).scalars().first() is not None

    def add(self, series_name: str, season_name: Optional[str], auto_watch: bool = True) -> dict:
        """Create a watch config.

        Raises:
            ConflictError: If a config already exists for the exact scope.
        """
        if self.get(series_name, season_name) is not None:
            raise ConflictError(
                f"Watch configuration already exists for {_scope_label(series_name, season_name)}",
                context={"series_name": series_name, "season_name": season_name},
            )

        config = SeriesWatchConfig(
            series_name=series_name,
            season_name=season_name,
            auto_watch=auto_watch,
            created_at=self._now(),
        )
        self.session.add(config)
        self._commit()
        return self._to_dict(config)

    def delete(self, series_name: str, season_name: Optional[str]) -> bool:
        """Delete the config for an exact scope. Returns False if none existed."""
        config = self.session.execute(self._scope_stmt(series_name, season_name)).scalars().first()
        if config is None:
            return False

        self.session.delete(config)
        self._commit()
        return True
