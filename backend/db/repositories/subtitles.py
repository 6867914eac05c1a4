"""Subtitle entries repository using SQLAlchemy ORM.

Entries are exchanged as plain dicts (column name -> value). Callers mutate
the dict and hand it back to update(); the row is matched on id.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy import case, delete, func, or_, select, update

from db.models.core import SubtitleEntry
from db.repositories.base import BaseRepository
from error_handler import NotFoundError

logger = logging.getLogger(__name__)

_MAX_SEARCH_LEN = 100

# Columns a caller may change through update()
_UPDATABLE_COLUMNS = (
    "series",
    "season",
    "file_name",
    "file_path",
    "is_processed",
    "is_wanted",
    "force_process",
    "already_had",
    "last_scanned",
    "processed_at",
    "error_message",
)


class SubtitleEntryRepository(BaseRepository):
    """Repository for subtitle_entries table operations."""

    def get_unprocessed_wanted(self, limit: int = 100) -> list[dict]:
        """Get up to `limit` entries eligible for translation, oldest first."""
        stmt = (
            select(SubtitleEntry)
            .where(SubtitleEntry.is_eligible)
            .order_by(SubtitleEntry.id)
            .limit(limit)
        )
        entries = self.session.execute(stmt).scalars().all()
        return [self._to_dict(e) for e in entries]

    def get_by_file_path(self, file_path: str) -> Optional[dict]:
        """Get an entry by its exact file path."""
        stmt = select(SubtitleEntry).where(SubtitleEntry.file_path == file_path)
        entry = self.session.execute(stmt).scalars().first()
        return self._to_dict(entry)

    def get_by_id(self, entry_id: int) -> Optional[dict]:
        """Get an entry by id, or None."""
        return self._to_dict(self.session.get(SubtitleEntry, entry_id))

    def add(self, entry: dict) -> dict:
        """Insert a new entry. Returns the stored row (with id)."""
        values = {k: v for k, v in entry.items() if k in _UPDATABLE_COLUMNS}
        values.setdefault("last_scanned", self._now())
        row = SubtitleEntry(**values)
        self.session.add(row)
        self._commit()
        if self._batch_mode:
            self.session.flush()
        entry["id"] = row.id
        return self._to_dict(row)

    def update(self, entry: dict) -> dict:
        """Persist all updatable fields of `entry` onto the row with the same id.

        Raises:
            NotFoundError: If no row has that id.
        """
        row = self.session.get(SubtitleEntry, entry.get("id"))
        if row is None:
            raise NotFoundError(f"SubtitleEntry with id {entry.get('id')} not found")

        for column in _UPDATABLE_COLUMNS:
            if column in entry:
                setattr(row, column, entry[column])

        self._commit()
        return self._to_dict(row)

    def set_error_message(self, entry_id: int, message: Optional[str]) -> bool:
        """Store error_message on one row, leaving every other column as persisted.

        Returns:
            False if no row has that id.
        """
        result = self.session.execute(
            update(SubtitleEntry).where(SubtitleEntry.id == entry_id).values(error_message=message)
        )
        self._commit()
        return bool(result.rowcount)

    def get_all(self) -> list[dict]:
        """Get all entries."""
        entries = self.session.execute(select(SubtitleEntry)).scalars().all()
        return [self._to_dict(e) for e in entries]

    def delete_by_ids(self, ids: Iterable[int]) -> int:
        """Delete entries by id. Returns the number of rows removed."""
        id_list = sorted({i for i in ids if i and i > 0})
        if not id_list:
            return 0

        result = self.session.execute(
            delete(SubtitleEntry).where(SubtitleEntry.id.in_(id_list))
        )
        self._commit()
        return result.rowcount or 0

    def bulk_update_wanted(self, series: str, season: Optional[str], is_wanted: bool) -> int:
        """Set is_wanted on every entry of a series (or one season of it).

        Returns:
            Number of rows updated.
        """
        stmt = update(SubtitleEntry).where(SubtitleEntry.series == series)
        if season is not None:
            stmt = stmt.where(SubtitleEntry.season == season)

        result = self.session.execute(stmt.values(is_wanted=is_wanted))
        self._commit()
        return result.rowcount or 0

    def get_paged(self, page: int = 1, page_size: int = 50,
                  is_processed: Optional[bool] = None,
                  is_wanted: Optional[bool] = None,
                  already_had: Optional[bool] = None,
                  search: Optional[str] = None) -> dict:
        """Get a page of entries with optional filters.

        Returns:
            Dict with 'items', 'total_count', 'page', 'page_size', 'total_pages'.
        """
        conditions = []
        if is_processed is not None:
            conditions.append(SubtitleEntry.is_processed == is_processed)
        if is_wanted is not None:
            conditions.append(SubtitleEntry.is_wanted == is_wanted)
        if already_had is not None:
            conditions.append(SubtitleEntry.already_had == already_had)
        if search and search.strip():
            pattern = f"%{search.strip()[:_MAX_SEARCH_LEN]}%"
            conditions.append(or_(
                SubtitleEntry.file_name.like(pattern),
                SubtitleEntry.series.like(pattern),
                SubtitleEntry.season.like(pattern),
            ))

        count_stmt = select(func.count()).select_from(SubtitleEntry)
        data_stmt = (
            select(SubtitleEntry)
            .order_by(SubtitleEntry.series, SubtitleEntry.season, SubtitleEntry.file_name)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        for cond in conditions:
            count_stmt = count_stmt.where(cond)
            data_stmt = data_stmt.where(cond)

        total = self.session.execute(count_stmt).scalar() or 0
        entries = self.session.execute(data_stmt).scalars().all()

        return {
            "items": [self._to_dict(e) for e in entries],
            "total_count": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }

    def get_series_groups(self) -> list[dict]:
        """Aggregate file counts per series and season.

        Returns:
            List of series dicts (sorted by name), each with total_files,
            wanted_files, processed_files and a 'seasons' list of the same
            counters per season.
        """
        stmt = (
            select(
                SubtitleEntry.series,
                SubtitleEntry.season,
                func.count(),
                func.sum(case((SubtitleEntry.is_wanted, 1), else_=0)),
                func.sum(case((SubtitleEntry.is_processed, 1), else_=0)),
            )
            .group_by(SubtitleEntry.series, SubtitleEntry.season)
            .order_by(SubtitleEntry.series, SubtitleEntry.season)
        )

        groups: dict[str, dict] = {}
        for series, season, total, wanted, processed in self.session.execute(stmt).all():
            group = groups.setdefault(series, {
                "series_name": series,
                "total_files": 0,
                "wanted_files": 0,
                "processed_files": 0,
                "is_watched": False,
                "seasons": [],
            })
            group["total_files"] += total
            group["wanted_files"] += wanted or 0
            group["processed_files"] += processed or 0
            group["seasons"].append({
                "season_name": season,
                "total_files": total,
                "wanted_files": wanted or 0,
                "processed_files": processed or 0,
                "is_watched": False,
            })

        return [groups[name] for name in sorted(groups)]

    def get_library_stats(self) -> dict:
        """Get library-wide counters."""
        row = self.session.execute(
            select(
                func.count(),
                func.sum(case((SubtitleEntry.is_processed, 1), else_=0)),
                func.sum(case((SubtitleEntry.is_wanted, 1), else_=0)),
                func.sum(case((SubtitleEntry.already_had, 1), else_=0)),
                func.sum(case((SubtitleEntry.error_message.is_not(None), 1), else_=0)),
                func.max(SubtitleEntry.last_scanned),
            )
        ).one()

        total, processed, wanted, already_had, errors, last_scanned = row
        processed = processed or 0
        return {
            "total_files": total or 0,
            "processed_files": processed,
            "unprocessed_files": (total or 0) - processed,
            "wanted_files": wanted or 0,
            "already_had_files": already_had or 0,
            "error_files": errors or 0,
            "last_scanned": last_scanned,
        }
