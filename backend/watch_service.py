"""Auto-watch rules for series and seasons.

A watched scope makes newly scanned files wanted automatically. Enabling a
rule also marks the existing files of that scope wanted; disabling it only
removes the rule.
"""

import logging
from typing import Optional

from db.repositories.subtitles import SubtitleEntryRepository
from db.repositories.watch import SeriesWatchConfigRepository
from error_handler import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _normalize_scope(series_name: str, season_name: Optional[str]) -> tuple[str, Optional[str]]:
    if series_name is None or not series_name.strip():
        raise ValidationError("Series name cannot be empty.")
    if season_name is not None and not season_name.strip():
        season_name = None
    return series_name, season_name


class WatchService:
    """Resolve and manage SeriesWatchConfig rules."""

    def __init__(self, watch_repository: Optional[SeriesWatchConfigRepository] = None,
                 subtitle_repository: Optional[SubtitleEntryRepository] = None):
        self.watch_repo = watch_repository or SeriesWatchConfigRepository()
        self.subtitle_repo = subtitle_repository or SubtitleEntryRepository()

    def is_watched(self, series_name: str, season_name: str) -> bool:
        """True if the series or this season of it has an active rule."""
        return self.watch_repo.is_watched(series_name, season_name)

    def set_auto_watch(self, series_name: str, season_name: Optional[str], enable: bool) -> int:
        """Enable or disable auto-watch for a series (season None) or one season.

        Returns:
            Number of entries marked wanted (always 0 when disabling).

        Raises:
            ValidationError: Blank series name.
            ConflictError: Enabling a scope that already has a rule.
            NotFoundError: Disabling a scope without a rule.
        """
        series_name, season_name = _normalize_scope(series_name, season_name)

        if enable:
            self.watch_repo.add(series_name, season_name, auto_watch=True)
            updated = self.subtitle_repo.bulk_update_wanted(series_name, season_name, True)
            logger.info("Auto-watch enabled for %s / %s, %d entries marked wanted",
                        series_name, season_name or "*", updated)
            return updated

        if not self.watch_repo.delete(series_name, season_name):
            message = f"Watch configuration not found for series '{series_name}'"
            if season_name is not None:
                message += f" season '{season_name}'"
            raise NotFoundError(message, context={"series_name": series_name,
                                                  "season_name": season_name})

        logger.info("Auto-watch disabled for %s / %s", series_name, season_name or "*")
        return 0

    def remove_auto_watch(self, series_name: str, season_name: Optional[str]) -> bool:
        """Delete the rule for an exact scope. Returns False if none existed."""
        series_name, season_name = _normalize_scope(series_name, season_name)
        return self.watch_repo.delete(series_name, season_name)

    def get_all_watch_configs(self) -> list[dict]:
        return self.watch_repo.get_all()

    def get_series_groups_with_watch_status(self) -> list[dict]:
        """Per-series and per-season file counts with their watch flags.

        A season counts as watched when its series is watched.
        """
        groups = self.subtitle_repo.get_series_groups()
        configs = self.watch_repo.get_all()

        series_watch = {c["series_name"]: c["auto_watch"]
                        for c in configs if c["season_name"] is None}
        season_watch = {(c["series_name"], c["season_name"]): c["auto_watch"]
                        for c in configs if c["season_name"] is not None}

        for group in groups:
            group["is_watched"] = series_watch.get(group["series_name"], False)
            for season in group["seasons"]:
                season["is_watched"] = group["is_watched"] or season_watch.get(
                    (group["series_name"], season["season_name"]), False)

        return groups
