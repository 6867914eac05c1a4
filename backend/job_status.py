"""In-memory status of the scan and translation jobs.

One slot per job kind, guarded by a lock. try_start() is the single-flight
gate: a second start while the first is running raises
JobAlreadyRunningError. Progress arrives through the blinker signals the
store subscribes to (see connect_signals); callers poll snapshot().
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from db.repositories.base import utcnow
from error_handler import JobAlreadyRunningError, error_to_dict

logger = logging.getLogger(__name__)

JOB_SCAN = "scan"
JOB_TRANSLATION = "translation"
JOB_KINDS = (JOB_SCAN, JOB_TRANSLATION)


@dataclass
class JobStatus:
    kind: str
    is_running: bool = False
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    progress: str = ""
    result: Optional[dict] = None
    error: Optional[str] = None
    error_record: Optional[dict] = None
    total_files: int = 0
    processed_files: int = 0
    current_file_name: Optional[str] = None
    current_step: Optional[str] = None
    extra: dict = field(default_factory=dict)


def _idle_status(kind: str) -> JobStatus:
    return JobStatus(kind=kind, progress=f"No {kind} running")


class JobStatusStore:
    """Thread-safe holder of the latest status per job kind."""

    def __init__(self):
        self._lock = threading.Lock()
        self._statuses = {kind: _idle_status(kind) for kind in JOB_KINDS}
        self._connected = False

    def _check_kind(self, kind: str):
        if kind not in self._statuses:
            raise ValueError(f"Unknown job kind: {kind}")

    def try_start(self, kind: str) -> dict:
        """Mark `kind` as running.

        Raises:
            JobAlreadyRunningError: If a job of this kind is in progress.
        """
        self._check_kind(kind)
        with self._lock:
            if self._statuses[kind].is_running:
                raise JobAlreadyRunningError(kind)
            status = JobStatus(
                kind=kind,
                is_running=True,
                started_at=utcnow(),
                progress=f"Starting {kind}...",
            )
            self._statuses[kind] = status
            logger.info("%s job started", kind.capitalize())
            return asdict(status)

    def is_running(self, kind: str) -> bool:
        self._check_kind(kind)
        with self._lock:
            return self._statuses[kind].is_running

    def update_progress(self, kind: str, **fields):
        """Apply progress fields to a running job (ignored when idle)."""
        self._check_kind(kind)
        with self._lock:
            status = self._statuses[kind]
            if not status.is_running:
                return
            for name, value in fields.items():
                if hasattr(status, name) and name not in ("kind", "is_running", "started_at"):
                    setattr(status, name, value)

    def complete(self, kind: str, result: dict):
        """Mark the job finished with its result dict."""
        self._check_kind(kind)
        with self._lock:
            previous = self._statuses[kind]
            status = JobStatus(
                kind=kind,
                started_at=previous.started_at,
                completed_at=utcnow(),
                progress="Completed",
                result=result,
                total_files=previous.total_files,
                processed_files=previous.total_files,
            )
            if kind == JOB_TRANSLATION:
                status.current_step = "Completed"
            self._statuses[kind] = status
        logger.info("%s job completed", kind.capitalize())

    def fail(self, kind: str, error: Exception):
        """Mark the job finished after an unhandled exception."""
        self._check_kind(kind)
        message = str(error)
        with self._lock:
            previous = self._statuses[kind]
            self._statuses[kind] = JobStatus(
                kind=kind,
                started_at=previous.started_at or utcnow(),
                completed_at=utcnow(),
                progress=f"Failed: {message}",
                error=message,
                error_record=error_to_dict(error),
                result={"errors": [f"Critical error during {kind}: {message}"]},
            )
        logger.error("%s job failed: %s", kind.capitalize(), message)

    def snapshot(self, kind: str) -> dict:
        """Return a copy of the current status for `kind`."""
        self._check_kind(kind)
        with self._lock:
            return asdict(self._statuses[kind])

    def reset(self):
        """Return every slot to idle (tests and app restarts)."""
        with self._lock:
            self._statuses = {kind: _idle_status(kind) for kind in JOB_KINDS}

    # ---- Signal subscribers --------------------------------------------------

    def _on_translation_progress(self, sender, data=None, **kwargs):
        data = data or {}
        self.update_progress(
            JOB_TRANSLATION,
            total_files=data.get("total_files", 0),
            processed_files=data.get("processed_files", 0),
            current_file_name=data.get("current_file_name"),
            current_step=data.get("current_step"),
            progress=data.get("progress", ""),
        )

    def _on_scan_progress(self, sender, data=None, **kwargs):
        data = data or {}
        self.update_progress(JOB_SCAN, **data)

    def connect_signals(self):
        """Subscribe to progress signals (idempotent)."""
        if self._connected:
            return
        from events.catalog import scan_progress, translation_progress

        translation_progress.connect(self._on_translation_progress, weak=False)
        scan_progress.connect(self._on_scan_progress, weak=False)
        self._connected = True


# ---- Singleton -----------------------------------------------------------------

_store: Optional[JobStatusStore] = None
_store_lock = threading.Lock()


def get_job_status_store() -> JobStatusStore:
    """Get or create the singleton JobStatusStore."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = JobStatusStore()
    return _store
