"""Runs scan and translation jobs, on demand or from interval timers.

Every run goes through the job status store, so at most one job of each
kind is active in the process. Background runs execute in a daemon thread
inside an application context.
"""

import logging
import threading
from typing import Callable, Optional

from config import get_settings
from error_handler import JobAlreadyRunningError
from job_status import JOB_SCAN, JOB_TRANSLATION, JobStatusStore, get_job_status_store
from library_models import ScanResult, TranslationResult
from media_scanner import MediaScanner
from settings_service import SettingsService
from subtitle_translation import SubtitleTranslationService

logger = logging.getLogger(__name__)

# job kind -> setting that enables its scheduled runs
_AUTO_SETTINGS = {
    JOB_SCAN: "AutoLibraryScan",
    JOB_TRANSLATION: "AutoTranslate",
}


class JobRunner:
    """Single-flight executor for library scans and translation batches."""

    def __init__(self, app, store: Optional[JobStatusStore] = None,
                 scanner_factory: Callable[[], MediaScanner] = MediaScanner,
                 translator_factory: Callable[[], SubtitleTranslationService] = SubtitleTranslationService):
        self.app = app
        self.store = store or get_job_status_store()
        self.scanner_factory = scanner_factory
        self.translator_factory = translator_factory
        self._timers: dict[str, threading.Timer] = {}
        self._stopped = False

    # ---- Synchronous runs ------------------------------------------------------

    def _execute_scan(self) -> ScanResult:
        try:
            with self.app.app_context():
                result = self.scanner_factory().scan_library()
        except Exception as e:
            self.store.fail(JOB_SCAN, e)
            raise
        self.store.complete(JOB_SCAN, result.to_dict())
        return result

    def _execute_translation(self, batch_size: int) -> TranslationResult:
        try:
            with self.app.app_context():
                result = self.translator_factory().translate_next_batch(batch_size)
        except Exception as e:
            self.store.fail(JOB_TRANSLATION, e)
            raise
        self.store.complete(JOB_TRANSLATION, result.to_dict())
        return result

    def run_scan(self) -> ScanResult:
        """Run a library scan in the calling thread.

        Raises:
            JobAlreadyRunningError: If a scan is already running.
        """
        self.store.try_start(JOB_SCAN)
        return self._execute_scan()

    def run_translation(self, batch_size: Optional[int] = None) -> TranslationResult:
        """Run one translation batch in the calling thread.

        Raises:
            JobAlreadyRunningError: If a translation batch is already running.
        """
        batch_size = batch_size or get_settings().translation_batch_size
        self.store.try_start(JOB_TRANSLATION)
        return self._execute_translation(batch_size)

    # ---- Background runs -------------------------------------------------------

    def _spawn(self, target, *args) -> threading.Thread:
        def _run():
            try:
                target(*args)
            except Exception as e:
                logger.error("Background job failed: %s", e, exc_info=True)

        thread = threading.Thread(target=_run, daemon=True)
        thread.start()
        return thread

    def start_scan(self) -> threading.Thread:
        """Start a scan in a background thread (status is set before returning)."""
        self.store.try_start(JOB_SCAN)
        return self._spawn(self._execute_scan)

    def start_translation(self, batch_size: Optional[int] = None) -> threading.Thread:
        """Start a translation batch in a background thread."""
        batch_size = batch_size or get_settings().translation_batch_size
        self.store.try_start(JOB_TRANSLATION)
        return self._spawn(self._execute_translation, batch_size)

    # ---- Scheduler -------------------------------------------------------------

    def start_scheduler(self):
        """Start interval timers for scans and translations (0 = disabled)."""
        self._stopped = False
        settings = get_settings()
        intervals = {
            JOB_SCAN: settings.scan_interval_minutes,
            JOB_TRANSLATION: settings.translate_interval_minutes,
        }
        for kind, minutes in intervals.items():
            if minutes > 0:
                self._schedule_next(kind, minutes)
                logger.info("%s scheduler started (every %dmin, gated by %s)",
                            kind.capitalize(), minutes, _AUTO_SETTINGS[kind])
            else:
                logger.info("%s scheduler disabled (interval=0)", kind.capitalize())

    def stop_scheduler(self):
        """Cancel all scheduled timers."""
        self._stopped = True
        for timer in self._timers.values():
            timer.cancel()
        self._timers.clear()
        logger.info("Schedulers stopped")

    def _schedule_next(self, kind: str, minutes: int):
        if self._stopped:
            return
        timer = threading.Timer(minutes * 60, self._scheduled_run, args=(kind, minutes))
        timer.daemon = True
        self._timers[kind] = timer
        timer.start()

    def _auto_enabled(self, kind: str) -> bool:
        with self.app.app_context():
            return SettingsService().get_bool_setting(_AUTO_SETTINGS[kind])

    def _scheduled_run(self, kind: str, minutes: int):
        """Execute one scheduled run (if enabled) and reschedule."""
        try:
            if not self._auto_enabled(kind):
                logger.debug("Scheduled %s skipped: %s is off", kind, _AUTO_SETTINGS[kind])
            elif kind == JOB_SCAN:
                logger.info("Scheduled scan starting")
                self.run_scan()
            else:
                logger.info("Scheduled translation starting")
                self.run_translation()
        except JobAlreadyRunningError:
            logger.info("Scheduled %s skipped: already running", kind)
        except Exception as e:
            logger.error("Scheduled %s failed: %s", kind, e, exc_info=True)
        finally:
            self._schedule_next(kind, minutes)


# ---- Singleton -----------------------------------------------------------------

_runner: Optional[JobRunner] = None


def init_job_runner(app) -> JobRunner:
    """Create the process-wide runner bound to `app`."""
    global _runner
    if _runner is not None:
        _runner.stop_scheduler()
    _runner = JobRunner(app)
    return _runner


def get_job_runner() -> JobRunner:
    """Return the runner created by init_job_runner().

    Raises:
        RuntimeError: If the application has not been created yet.
    """
    if _runner is None:
        raise RuntimeError("Job runner not initialized; call create_app() first")
    return _runner
