"""Translation orchestrator - translates the next batch of eligible entries.

Entries are processed one at a time. A failure on one entry is recorded on
that entry (error_message set, is_processed left false so it is retried by
a later batch) and the batch continues. Files without any usable subtitle
stream are marked processed with a skip message since retrying cannot help.

Progress is published before every pipeline step, both to the optional
callback and as a translation_progress event.
"""

import logging
import os
import re
import time
from typing import Callable, Optional

from api_usage import ApiUsageService
from ass_utils import is_ass_codec
from config import get_settings
from db.repositories.base import utcnow
from db.repositories.subtitles import SubtitleEntryRepository
from error_handler import RateLimitExceededError
from events import emit_event
from library_models import TranslationProgressUpdate, TranslationResult, TranslationStep
from library_reconciler import target_subtitle_path
from settings_service import SettingsService, TranslationSettings
from subtitle_extractor import SubtitleExtractor, extracted_subtitle_path, validate_subtitle_size
from translation import get_translation_client
from translation.base import TranslationClient

logger = logging.getLogger(__name__)

NO_SUBTITLES_MESSAGE = "No suitable embedded subtitles found - skipped"

ProgressCallback = Callable[[TranslationProgressUpdate], None]

# ```srt ... ``` wrapper some models put around the whole answer
_CODE_FENCE_RE = re.compile(r"^\s*```[\w-]*[ \t]*\r?\n(.*?)\r?\n?```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a Markdown code fence wrapping the whole text, if present."""
    match = _CODE_FENCE_RE.match(text)
    if match:
        text = match.group(1)
    return text.strip() + "\n"


class SubtitleTranslationService:
    """Runs translation batches over eligible subtitle entries."""

    def __init__(self,
                 repository: Optional[SubtitleEntryRepository] = None,
                 settings_service: Optional[SettingsService] = None,
                 usage_service: Optional[ApiUsageService] = None,
                 extractor: Optional[SubtitleExtractor] = None,
                 client: Optional[TranslationClient] = None,
                 work_dir: Optional[str] = None):
        self.repo = repository or SubtitleEntryRepository()
        self.settings = settings_service or SettingsService()
        self.usage = usage_service or ApiUsageService(settings_service=self.settings)
        self.extractor = extractor or SubtitleExtractor()
        self.client = client or get_translation_client()
        self.work_dir = work_dir or get_settings().work_dir

    # ---- Progress ----------------------------------------------------------------

    def _report(self, on_progress: Optional[ProgressCallback], total: int, processed: int,
                file_name: str, step: TranslationStep):
        update = TranslationProgressUpdate(
            total_files=total,
            processed_files=processed,
            current_file_name=file_name,
            current_step=step,
        )
        logger.debug("%s", update.format_progress())
        if on_progress is not None:
            try:
                on_progress(update)
            except Exception as e:
                logger.warning("Progress callback failed: %s", e)
        emit_event("translation_progress", update.to_dict())

    # ---- Batch -------------------------------------------------------------------

    def translate_next_batch(self, batch_size: int = 100,
                             on_progress: Optional[ProgressCallback] = None) -> TranslationResult:
        """Translate up to batch_size eligible entries.

        Never raises: a failure outside per-entry processing is reported as
        "Critical error during translation: <msg>" and ends the batch.
        """
        logger.info("Starting translation")
        start = time.monotonic()
        result = TranslationResult()
        emit_event("translation_started", {"batch_size": batch_size})

        try:
            entries = self.repo.get_unprocessed_wanted(batch_size)
            if not entries:
                logger.info("No unprocessed entries found")
            else:
                logger.info("Found %d unprocessed entries", len(entries))
                settings = self.settings.get_translation_settings()
                limits = (
                    self.settings.get_int_setting("MaxSubtitleBytes"),
                    self.settings.get_int_setting("MaxAssSubtitleBytes"),
                )
                logger.info("Using model %s, target language %s",
                            settings.model, settings.preferred_subs_lang)
                self._run_entries(entries, settings, limits, result, on_progress)
        except Exception as e:
            logger.error("Critical error during translation: %s", e, exc_info=True)
            result.errors.append(f"Critical error during translation: {e}")

        result.duration = time.monotonic() - start
        logger.info(
            "Translation complete: %d translated, %d skipped, %d errors (%.1fs)",
            result.success_count, result.skipped_no_subtitles, result.error_count,
            result.duration,
        )
        emit_event("translation_complete", result.to_dict())
        return result

    def _run_entries(self, entries: list[dict], settings: TranslationSettings,
                     limits: tuple[int, int], result: TranslationResult,
                     on_progress: Optional[ProgressCallback]):
        total = len(entries)
        for processed, entry in enumerate(entries):
            file_name = entry["file_name"]

            def report(step, _processed=processed, _name=file_name):
                self._report(on_progress, total, _processed, _name, step)

            try:
                self._process_entry(entry, settings, limits, result, report)
            except Exception as e:
                self._record_failure(entry, e, result)

    def _record_failure(self, entry: dict, error: Exception, result: TranslationResult):
        """Store the error on the entry; it stays unprocessed and eligible."""
        logger.error("Error processing %s: %s", entry["file_name"], error)
        result.errors.append(f"Error processing {entry['file_name']}: {error}")
        result.error_count += 1

        # Half-applied success flags must not survive; only the error is written
        self.repo.session.rollback()
        entry["error_message"] = str(error)
        if not self.repo.set_error_message(entry["id"], str(error)):
            logger.warning("Entry %s vanished before its error could be stored", entry["id"])
        emit_event("entry_failed", {
            "entry_id": entry["id"],
            "file_name": entry["file_name"],
            "error": str(error),
            "code": getattr(error, "code", "INTERNAL_ERROR"),
        })

    # ---- Single entry ------------------------------------------------------------

    def _process_entry(self, entry: dict, settings: TranslationSettings,
                       limits: tuple[int, int], result: TranslationResult,
                       report: Callable[[TranslationStep], None]):
        report(TranslationStep.STARTING)

        report(TranslationStep.CHECKING_RATE_LIMIT)
        if not self.usage.can_make_request(settings.model):
            raise RateLimitExceededError(settings.model)

        report(TranslationStep.FINDING_SUBTITLES)
        stream = self.extractor.find_best_subtitle_stream(entry["file_path"])
        if stream is None:
            logger.warning("No suitable subtitles found for %s, skipping", entry["file_name"])
            self.repo.update(dict(entry, is_processed=True, processed_at=utcnow(),
                                  error_message=NO_SUBTITLES_MESSAGE, force_process=False))
            result.skipped_no_subtitles += 1
            return

        os.makedirs(self.work_dir, exist_ok=True)
        extracted_path = extracted_subtitle_path(self.work_dir, entry["file_name"], stream)
        temp_paths = [extracted_path]

        try:
            report(TranslationStep.EXTRACTING_SUBTITLES)
            self.extractor.extract(entry["file_path"], stream, extracted_path)

            if is_ass_codec(stream.codec_name):
                report(TranslationStep.CLEANING_SUBTITLES)
            translate_path = self.extractor.clean_and_convert(extracted_path, stream.codec_name)
            if translate_path not in temp_paths:
                temp_paths.append(translate_path)

            report(TranslationStep.VALIDATING_SIZE)
            with open(translate_path, encoding="utf-8", errors="replace") as f:
                content = f.read()
            size = validate_subtitle_size(content, stream.codec_name, *limits)
            logger.debug("Subtitle size for %s: %d bytes", entry["file_name"], size)

            report(TranslationStep.TRANSLATING_WITH_GEMINI)
            translated = self.client.translate_subtitles(content, settings)

            report(TranslationStep.SAVING_SUBTITLES)
            output_path = target_subtitle_path(entry["file_path"], settings.preferred_subs_lang)
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(strip_code_fences(translated))
            logger.info("Saved translated subtitles to %s", output_path)

            self.repo.update(dict(entry, is_processed=True, processed_at=utcnow(),
                                  error_message=None, force_process=False))
            result.success_count += 1

            # Subtitle is saved at this point; a usage write failure is only logged
            try:
                self.usage.record_usage(settings.model)
            except Exception as e:
                self.repo.session.rollback()
                logger.error("Could not record API usage for %s: %s", entry["file_name"], e)
            report(TranslationStep.COMPLETED)
            emit_event("entry_translated", {
                "entry_id": entry["id"],
                "file_name": entry["file_name"],
                "language": settings.preferred_subs_lang,
                "model": settings.model,
            })
        finally:
            logger.debug("Removing temporary files")
            for path in temp_paths:
                try:
                    if os.path.exists(path):
                        os.remove(path)
                except OSError as e:
                    logger.warning("Could not remove temporary file %s: %s", path, e)
