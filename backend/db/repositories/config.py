"""App settings repository using SQLAlchemy ORM (key/value store)."""

import logging
from typing import Optional

from sqlalchemy import select

from db.models.core import AppSetting
from db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ConfigRepository(BaseRepository):
    """Repository for app_settings table operations."""

    def _get_row(self, key: str) -> Optional[AppSetting]:
        return self.session.execute(
            select(AppSetting).where(AppSetting.key == key)
        ).scalars().first()

    def get_config_entry(self, key: str) -> Optional[str]:
        """Get a setting value by key.

        Returns:
            The value string, or None if key not found.
        """
        row = self._get_row(key)
        return row.value if row else None

    def save_config_entry(self, key: str, value: str, description: Optional[str] = None):
        """Insert or update a setting value (description kept unless given)."""
        row = self._get_row(key)
        if row is None:
            row = AppSetting(key=key, value=value, description=description,
                             updated_at=self._now())
            self.session.add(row)
        else:
            row.value = value
            row.updated_at = self._now()
            if description is not None:
                row.description = description
        self._commit()

    def add_if_missing(self, key: str, value: str, description: str = "") -> bool:
        """Insert a setting only if the key does not exist. Returns True if added."""
        if self._get_row(key) is not None:
            return False
        self.session.add(AppSetting(key=key, value=value, description=description,
                                    updated_at=self._now()))
        self._commit()
        return True

    def get_all_config_entries(self) -> list[dict]:
        """Get all settings ordered by key."""
        rows = self.session.execute(select(AppSetting).order_by(AppSetting.key)).scalars().all()
        return [self._to_dict(r) for r in rows]
