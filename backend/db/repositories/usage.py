"""API usage repository using SQLAlchemy ORM (append-only)."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select

from db.models.core import ApiUsage
from db.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class ApiUsageRepository(BaseRepository):
    """Repository for api_usage table operations."""

    def add(self, model: str, date: Optional[datetime] = None) -> dict:
        """Append one usage record."""
        record = ApiUsage(model=model, date=date or self._now())
        self.session.add(record)
        self._commit()
        return self._to_dict(record)

    def count_between(self, model: str, start: datetime, end: Optional[datetime] = None) -> int:
        """Count records for `model` with start <= date (< end when given)."""
        stmt = select(func.count()).select_from(ApiUsage).where(
            ApiUsage.model == model,
            ApiUsage.date >= start,
        )
        if end is not None:
            stmt = stmt.where(ApiUsage.date < end)
        return self.session.execute(stmt).scalar() or 0

    def get_today_count_for_model(self, model: str, now: Optional[datetime] = None) -> int:
        """Count records in the current UTC calendar day."""
        now = now or self._now()
        today = datetime(now.year, now.month, now.day)
        return self.count_between(model, today, today + timedelta(days=1))

    def get_last_minute_count_for_model(self, model: str, now: Optional[datetime] = None) -> int:
        """Count records in the trailing 60 seconds."""
        now = now or self._now()
        return self.count_between(model, now - timedelta(minutes=1))

    def get_by_date_range(self, start: datetime, end: datetime,
                          model: Optional[str] = None) -> list[dict]:
        """Get records with start <= date <= end, optionally for one model."""
        stmt = (
            select(ApiUsage)
            .where(ApiUsage.date >= start, ApiUsage.date <= end)
            .order_by(ApiUsage.date)
        )
        if model:
            stmt = stmt.where(ApiUsage.model == model)
        return [self._to_dict(u) for u in self.session.execute(stmt).scalars().all()]
