"""Library reconciler - merges a filesystem scan into subtitle_entries.

Entries whose file disappeared are deleted; new files get an entry (wanted
when their series or season is auto-watched); existing entries get their
already_had flag recomputed. When a previously present target subtitle is
gone, the entry is reset so it becomes eligible again.
"""

import logging
import os
from typing import Optional

from db.repositories.base import utcnow
from db.repositories.subtitles import SubtitleEntryRepository
from library_models import ScanResult, VideoFile
from watch_service import WatchService

logger = logging.getLogger(__name__)


def target_subtitle_path(video_path: str, language: str) -> str:
    """Path of the translated subtitle for a video: <dir>/<base>.<lang>.srt."""
    base = os.path.splitext(os.path.basename(video_path))[0]
    return os.path.join(os.path.dirname(video_path), f"{base}.{language}.srt")


class LibraryReconciler:
    """Applies a list of VideoFile to the subtitle entry table."""

    def __init__(self, repository: Optional[SubtitleEntryRepository] = None,
                 watch_service: Optional[WatchService] = None):
        self.repo = repository or SubtitleEntryRepository()
        self.watch = watch_service or WatchService(subtitle_repository=self.repo)

    def remove_missing_entries(self, video_files: list[VideoFile], result: ScanResult):
        """Delete entries whose path is not among video_files (case-insensitive)."""
        logger.info("Removing stale entries")
        try:
            existing = self.repo.get_all()
            if not existing:
                return

            present = {v.file_path.lower() for v in video_files}
            stale_ids = [e["id"] for e in existing if e["file_path"].lower() not in present]
            if not stale_ids:
                return

            removed = self.repo.delete_by_ids(stale_ids)
            result.removed_files += removed
            logger.info("Removed %d stale entries", removed)

            if removed < len(stale_ids):
                logger.warning("Some database entries could not be removed during cleanup.")
                result.errors.append("Some database entries could not be removed during cleanup.")
        except Exception as exc:
            self.repo.session.rollback()
            logger.error("Failed to remove stale entries: %s", exc, exc_info=True)
            result.errors.append(f"Failed to remove stale entries: {exc}")

    def analyze_video_files(self, video_files: list[VideoFile], preferred_lang: str,
                            result: ScanResult):
        """Insert new entries and refresh existing ones."""
        logger.info("Analyzing %d video files", len(video_files))
        for video in video_files:
            try:
                self._analyze_one(video, preferred_lang, result)
            except Exception as exc:
                self.repo.session.rollback()
                logger.error("Error processing %s: %s", video.file_name, exc)
                result.errors.append(f"Error processing {video.file_name}: {exc}")
                result.error_files += 1

    def _analyze_one(self, video: VideoFile, preferred_lang: str, result: ScanResult):
        already_had = os.path.exists(target_subtitle_path(video.file_path, preferred_lang))
        entry = self.repo.get_by_file_path(video.file_path)

        if entry is None:
            wanted = self.watch.is_watched(video.series, video.season)
            self.repo.add({
                "file_path": video.file_path,
                "file_name": video.file_name,
                "series": video.series,
                "season": video.season,
                "is_processed": False,
                "is_wanted": wanted,
                "force_process": False,
                "already_had": already_had,
                "last_scanned": utcnow(),
            })
            result.new_files += 1
            logger.debug("New entry %s (wanted=%s, already_had=%s)",
                         video.file_name, wanted, already_had)
            return

        changed = entry["already_had"] != already_had
        if entry["already_had"] and not already_had:
            # Target subtitle disappeared: make the entry eligible again
            entry["is_processed"] = False
            entry["error_message"] = None
            logger.info("Subtitle for %s disappeared, resetting entry", video.file_name)

        entry["already_had"] = already_had
        entry["last_scanned"] = utcnow()
        self.repo.update(entry)
        if changed:
            result.updated_files += 1
