"""Filesystem scanner - finds video files under the media root.

Directory layout is assumed to be .../<Series>/<Season>/<Episode>.<ext>;
any category folders above the series are ignored. Shallower layouts fall
back to the first folder (or "Unknown") for series and season.
"""

import logging
import os
import time
from typing import Optional

from config import get_settings
from error_handler import ConfigurationError, MediaRootNotFoundError
from events import emit_event
from library_models import ScanResult, VideoFile
from library_reconciler import LibraryReconciler
from settings_service import SettingsService

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({".mkv", ".mp4", ".avi", ".mov", ".m4v", ".webm", ".flv"})

UNKNOWN = "Unknown"


def is_video_file(path: str) -> bool:
    """Check the extension against VIDEO_EXTENSIONS (case-insensitive)."""
    return os.path.splitext(path)[1].lower() in VIDEO_EXTENSIONS


def classify_path(root: str, file_path: str) -> tuple[str, str]:
    """Derive (series, season) from the path of a file relative to root."""
    relative = os.path.relpath(file_path, root)
    parts = [p for p in relative.replace("\\", "/").split("/") if p]

    if len(parts) < 3:
        if len(parts) >= 2:
            return parts[0], parts[-2]
        return UNKNOWN, UNKNOWN

    return parts[-3], parts[-2]


def scan_filesystem(root: str) -> list[VideoFile]:
    """Recursively collect video files under root.

    Raises:
        MediaRootNotFoundError: If root is not an existing directory.
    """
    if not os.path.isdir(root):
        raise MediaRootNotFoundError(root)

    logger.info("Scanning media files under %s", root)
    video_files = []
    for dirpath, _dirs, files in os.walk(root):
        for filename in sorted(files):
            full_path = os.path.join(dirpath, filename)
            if not is_video_file(full_path):
                continue
            try:
                series, season = classify_path(root, full_path)
            except ValueError as exc:
                logger.error("Could not process file %s: %s", full_path, exc)
                continue
            video_files.append(VideoFile(
                file_path=full_path,
                file_name=filename,
                series=series,
                season=season,
            ))

    logger.info("Found %d video files", len(video_files))
    return video_files


class MediaScanner:
    """Runs one library scan: filesystem walk followed by reconciliation."""

    def __init__(self, media_root: Optional[str] = None,
                 settings_service: Optional[SettingsService] = None,
                 reconciler: Optional[LibraryReconciler] = None):
        self.media_root = media_root or get_settings().media_root_path
        self.settings = settings_service or SettingsService()
        self.reconciler = reconciler or LibraryReconciler()

    def scan_library(self) -> ScanResult:
        """Scan the media root and reconcile the library.

        Never raises: top-level failures are logged and reported in
        result.errors as "Critical error during scan: <msg>".
        """
        logger.info("Starting media scan")
        start = time.monotonic()
        result = ScanResult()
        emit_event("scan_started", {"media_root": self.media_root})

        try:
            preferred_lang = (self.settings.get_setting("PreferredSubsLang") or "").strip()
            if not preferred_lang:
                raise ConfigurationError("PreferredSubsLang setting not found")

            emit_event("scan_progress", {"progress": "Scanning filesystem..."})
            video_files = scan_filesystem(self.media_root)

            emit_event("scan_progress", {
                "progress": "Removing stale entries...",
                "total_files": len(video_files),
            })
            self.reconciler.remove_missing_entries(video_files, result)

            emit_event("scan_progress", {
                "progress": f"Analyzing {len(video_files)} video files...",
                "total_files": len(video_files),
            })
            self.reconciler.analyze_video_files(video_files, preferred_lang, result)
        except Exception as exc:
            logger.error("Critical error during scan: %s", exc, exc_info=True)
            result.errors.append(f"Critical error during scan: {exc}")

        result.duration = time.monotonic() - start
        logger.info(
            "Media scan complete: %d new, %d updated, %d removed, %d errors (%.1fs)",
            result.new_files, result.updated_files, result.removed_files,
            result.error_files, result.duration,
        )
        emit_event("scan_complete", result.to_dict())
        return result
