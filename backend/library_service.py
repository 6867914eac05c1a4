"""Library browsing and per-entry flag changes."""

import logging
from typing import Optional

from db.repositories.subtitles import SubtitleEntryRepository
from error_handler import NotFoundError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 50


class LibraryService:
    """Read and flag subtitle entries."""

    def __init__(self, repository: Optional[SubtitleEntryRepository] = None):
        self.repo = repository or SubtitleEntryRepository()

    def get_entry(self, entry_id: int) -> dict:
        """Get one entry.

        Raises:
            NotFoundError: If no entry has this id.
        """
        entry = self.repo.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"SubtitleEntry with id {entry_id} not found",
                                context={"entry_id": entry_id})
        return entry

    def set_wanted_status(self, entry_id: int, wanted: bool) -> dict:
        entry = self.get_entry(entry_id)
        entry["is_wanted"] = bool(wanted)
        logger.info("Entry %d (%s): is_wanted=%s", entry_id, entry["file_name"], entry["is_wanted"])
        return self.repo.update(entry)

    def set_force_process_status(self, entry_id: int, force: bool) -> dict:
        entry = self.get_entry(entry_id)
        entry["force_process"] = bool(force)
        logger.info("Entry %d (%s): force_process=%s", entry_id, entry["file_name"], entry["force_process"])
        return self.repo.update(entry)

    def get_entries(self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE,
                    is_processed: Optional[bool] = None,
                    is_wanted: Optional[bool] = None,
                    already_had: Optional[bool] = None,
                    search: Optional[str] = None) -> dict:
        """Paged entry listing; out-of-range paging values fall back to defaults."""
        if page < 1:
            page = 1
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            page_size = DEFAULT_PAGE_SIZE
        return self.repo.get_paged(page, page_size, is_processed, is_wanted,
                                   already_had, search)

    def get_library_stats(self) -> dict:
        return self.repo.get_library_stats()
