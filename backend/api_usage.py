"""Request quota tracking for the translation provider.

Every successful translation appends one api_usage row. A new request is
allowed only while both the per-UTC-day and the trailing-minute counts for
the model are below the limits read from the settings store on each call.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from db.repositories.base import utcnow
from db.repositories.usage import ApiUsageRepository
from settings_service import SettingsService

logger = logging.getLogger(__name__)


class ApiUsageService:
    """Daily and per-minute rate limiter over recorded usage."""

    def __init__(self, settings_service: Optional[SettingsService] = None,
                 repository: Optional[ApiUsageRepository] = None,
                 now: Callable[[], datetime] = utcnow):
        self.settings = settings_service or SettingsService()
        self.repo = repository or ApiUsageRepository()
        self._now = now

    def can_make_request(self, model: str) -> bool:
        """Check whether one more request for `model` fits in both windows.

        Raises:
            ConfigurationError: If a rate limit setting is not an integer.
        """
        per_day = self.settings.get_int_setting("RateLimitPerDay")
        per_minute = self.settings.get_int_setting("RateLimitPerMinute")

        now = self._now()
        today_count = self.repo.get_today_count_for_model(model, now=now)
        if today_count >= per_day:
            logger.warning("Daily limit reached for %s: %d/%d", model, today_count, per_day)
            return False

        minute_count = self.repo.get_last_minute_count_for_model(model, now=now)
        if minute_count >= per_minute:
            logger.debug("Per-minute limit reached for %s: %d/%d", model, minute_count, per_minute)
            return False

        return True

    def record_usage(self, model: str, timestamp: Optional[datetime] = None) -> None:
        """Append one usage record for `model`."""
        self.repo.add(model, timestamp or self._now())

    def get_usage_stats(self, start: datetime, end: datetime,
                        model: Optional[str] = None) -> list[dict]:
        """Return usage records in [start, end], optionally for one model."""
        return self.repo.get_by_date_range(start, end, model)
