"""Tests for subtitle_translation.py: the per-entry translation pipeline.

ffmpeg and the Gemini API are replaced by FakeExtractor and a mocked
TranslationClient; everything else (database, settings, rate limiter,
ASS cleaning, pysubs2 conversion) is real.
"""

import os
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from db.repositories.config import ConfigRepository
from db.repositories.subtitles import SubtitleEntryRepository
from db.repositories.usage import ApiUsageRepository
from error_handler import TranslationBlockedError
from library_models import SubtitleStreamInfo, TranslationStep
from subtitle_translation import NO_SUBTITLES_MESSAGE, SubtitleTranslationService, strip_code_fences
from tests.fixtures.fakes import FakeExtractor
from tests.fixtures.test_data import SAMPLE_ASS


@pytest.fixture
def work_dir(tmp_path):
    return str(tmp_path / "work")


@pytest.fixture
def make_service(configured_settings, fake_extractor, fake_client, work_dir):
    def _make(extractor=None, client=None):
        return SubtitleTranslationService(
            settings_service=configured_settings,
            extractor=extractor or fake_extractor,
            client=client or fake_client,
            work_dir=work_dir,
        )
    return _make


def _usage_count(model="gemini-2.5-pro"):
    return ApiUsageRepository().count_between(model, datetime(2000, 1, 1))


# ─── strip_code_fences ───────────────────────────────────────────────────────


def test_strip_code_fences_removes_wrapper():
    text = "```srt\n1\n00:00:01,000 --> 00:00:02,000\nHi\n```"
    assert strip_code_fences(text) == "1\n00:00:01,000 --> 00:00:02,000\nHi\n"


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("1\nHi\n\n") == "1\nHi\n"


# ─── Success path ────────────────────────────────────────────────────────────


def test_translates_srt_entry(make_service, make_video, add_entry, fake_client):
    video = make_video("Show/S1/e01.mkv")
    entry = add_entry(video)

    result = make_service().translate_next_batch(10)

    assert result.success_count == 1
    assert result.error_count == 0
    assert result.errors == []

    output = os.path.splitext(video)[0] + ".pl.srt"
    with open(output, encoding="utf-8") as f:
        assert "Cześć." in f.read()

    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["is_processed"] is True
    assert stored["processed_at"] is not None
    assert stored["error_message"] is None
    assert _usage_count() == 1

    content, settings = fake_client.translate_subtitles.call_args[0]
    assert "General Kenobi!" in content
    assert settings.api_key == "test-key"
    assert settings.preferred_subs_lang == "pl"


def test_temp_files_are_removed(make_service, make_video, add_entry, fake_extractor, work_dir):
    add_entry(make_video("Show/S1/e01.mkv"))

    make_service().translate_next_batch(10)

    assert fake_extractor.extracted_paths
    assert os.listdir(work_dir) == []


def test_ass_stream_is_cleaned_before_translation(make_service, make_video, add_entry,
                                                  fake_client, work_dir):
    extractor = FakeExtractor(stream=SubtitleStreamInfo(3, "eng", "ass"), content=SAMPLE_ASS)
    add_entry(make_video("Show/S1/e01.mkv"))

    result = make_service(extractor=extractor).translate_next_batch(10)

    assert result.success_count == 1
    content = fake_client.translate_subtitles.call_args[0][0]
    assert "Hello there." in content
    assert "General Kenobi!" in content
    assert "CAFE" not in content
    assert "La la la" not in content
    assert "{\\i1}" not in content
    assert "-->" in content
    assert os.listdir(work_dir) == []


def test_code_fenced_answer_is_saved_without_fences(make_service, make_video, add_entry):
    client = MagicMock()
    client.translate_subtitles.return_value = "```srt\n1\n00:00:01,000 --> 00:00:03,000\nCześć.\n```\n"
    video = make_video("Show/S1/e01.mkv")
    add_entry(video)

    make_service(client=client).translate_next_batch(10)

    with open(os.path.splitext(video)[0] + ".pl.srt", encoding="utf-8") as f:
        saved = f.read()
    assert not saved.startswith("```")
    assert "```" not in saved
    assert saved.startswith("1\n")


def test_progress_steps_in_order(make_service, make_video, add_entry):
    add_entry(make_video("Show/S1/e01.mkv"))
    updates = []

    make_service().translate_next_batch(10, on_progress=updates.append)

    assert [u.current_step for u in updates] == [
        TranslationStep.STARTING,
        TranslationStep.CHECKING_RATE_LIMIT,
        TranslationStep.FINDING_SUBTITLES,
        TranslationStep.EXTRACTING_SUBTITLES,
        TranslationStep.VALIDATING_SIZE,
        TranslationStep.TRANSLATING_WITH_GEMINI,
        TranslationStep.SAVING_SUBTITLES,
        TranslationStep.COMPLETED,
    ]
    assert updates[0].format_progress() == "[1/1] Starting: e01.mkv"
    assert updates[3].format_progress() == "[1/1] Extracting subtitles: e01.mkv"


def test_progress_includes_cleaning_for_ass(make_service, make_video, add_entry):
    extractor = FakeExtractor(stream=SubtitleStreamInfo(3, "eng", "ass"), content=SAMPLE_ASS)
    add_entry(make_video("Show/S1/e01.mkv"))
    updates = []

    make_service(extractor=extractor).translate_next_batch(10, on_progress=updates.append)

    steps = [u.current_step for u in updates]
    assert steps.index(TranslationStep.CLEANING_SUBTITLES) == steps.index(
        TranslationStep.EXTRACTING_SUBTITLES) + 1


def test_progress_counts_across_entries(make_service, make_video, add_entry):
    add_entry(make_video("Show/S1/e01.mkv"))
    add_entry(make_video("Show/S1/e02.mkv"))
    updates = []

    make_service().translate_next_batch(10, on_progress=updates.append)

    starts = [u for u in updates if u.current_step == TranslationStep.STARTING]
    assert [(u.processed_files, u.total_files) for u in starts] == [(0, 2), (1, 2)]
    assert starts[1].format_progress() == "[2/2] Starting: e02.mkv"


def test_failing_progress_callback_does_not_stop_batch(make_service, make_video, add_entry):
    add_entry(make_video("Show/S1/e01.mkv"))

    def broken(update):
        raise RuntimeError("ui gone")

    result = make_service().translate_next_batch(10, on_progress=broken)

    assert result.success_count == 1


# ─── Batch selection ─────────────────────────────────────────────────────────


def test_no_eligible_entries(make_service, fake_client):
    result = make_service().translate_next_batch(10)

    assert (result.success_count, result.skipped_no_subtitles, result.error_count) == (0, 0, 0)
    fake_client.translate_subtitles.assert_not_called()


def test_batch_size_limits_entries(make_service, make_video, add_entry):
    for i in range(3):
        add_entry(make_video(f"Show/S1/e0{i}.mkv"))

    result = make_service().translate_next_batch(2)

    assert result.success_count == 2
    assert len(SubtitleEntryRepository().get_unprocessed_wanted(10)) == 1


def test_unwanted_and_already_had_entries_are_ignored(make_service, make_video, add_entry,
                                                      fake_client):
    add_entry(make_video("Show/S1/e01.mkv"), is_wanted=False)
    add_entry(make_video("Show/S1/e02.mkv"), already_had=True)

    result = make_service().translate_next_batch(10)

    assert result.success_count == 0
    fake_client.translate_subtitles.assert_not_called()


def test_force_process_overrides_flags_and_is_cleared(make_service, make_video, add_entry):
    entry = add_entry(make_video("Show/S1/e01.mkv"), is_processed=True, already_had=True,
                      is_wanted=False, force_process=True)

    result = make_service().translate_next_batch(10)

    assert result.success_count == 1
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["force_process"] is False
    assert stored["is_processed"] is True
    assert SubtitleEntryRepository().get_unprocessed_wanted(10) == []


# ─── Skips and failures ──────────────────────────────────────────────────────


def test_no_subtitle_stream_marks_entry_processed(make_service, make_video, add_entry, fake_client):
    entry = add_entry(make_video("Show/S1/e01.mkv"), force_process=True)

    result = make_service(extractor=FakeExtractor(stream=None)).translate_next_batch(10)

    assert result.skipped_no_subtitles == 1
    assert result.success_count == 0
    assert result.error_count == 0
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["is_processed"] is True
    assert stored["force_process"] is False
    assert stored["error_message"] == NO_SUBTITLES_MESSAGE
    fake_client.translate_subtitles.assert_not_called()
    assert _usage_count() == 0


def test_extraction_failure_keeps_entry_eligible(make_service, make_video, add_entry, srt_stream,
                                                 fake_client):
    entry = add_entry(make_video("Show/S1/e01.mkv"))
    extractor = FakeExtractor(stream=srt_stream, fail_extract=True)

    result = make_service(extractor=extractor).translate_next_batch(10)

    assert result.error_count == 1
    assert result.errors == ["Error processing e01.mkv: Failed to extract subtitles from video file"]
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["is_processed"] is False
    assert stored["error_message"] == "Failed to extract subtitles from video file"
    fake_client.translate_subtitles.assert_not_called()

    # Still eligible for the next batch
    assert [e["id"] for e in SubtitleEntryRepository().get_unprocessed_wanted(10)] == [entry["id"]]


def test_oversized_subtitle_is_rejected(make_service, make_video, add_entry, configured_settings,
                                        fake_client, work_dir):
    configured_settings.update_setting("MaxSubtitleBytes", "10")
    entry = add_entry(make_video("Show/S1/e01.mkv"))

    result = make_service().translate_next_batch(10)

    assert result.error_count == 1
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["error_message"].startswith("Subtitle file too large after cleaning:")
    assert "(max: 10 bytes)" in stored["error_message"]
    assert stored["is_processed"] is False
    fake_client.translate_subtitles.assert_not_called()
    assert os.listdir(work_dir) == []


def test_rate_limit_stops_before_extraction(make_service, make_video, add_entry,
                                            configured_settings, fake_extractor):
    configured_settings.update_setting("RateLimitPerMinute", "0")
    entry = add_entry(make_video("Show/S1/e01.mkv"))

    result = make_service().translate_next_batch(10)

    assert result.error_count == 1
    assert result.errors == ["Error processing e01.mkv: API rate limit exceeded"]
    assert fake_extractor.calls == []
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["error_message"] == "API rate limit exceeded"
    assert stored["is_processed"] is False


def test_daily_limit_counts_recorded_usage(make_service, make_video, add_entry, configured_settings):
    configured_settings.update_setting("RateLimitPerDay", "1")
    add_entry(make_video("Show/S1/e01.mkv"))
    add_entry(make_video("Show/S1/e02.mkv"))

    result = make_service().translate_next_batch(10)

    assert result.success_count == 1
    assert result.error_count == 1
    assert result.errors == ["Error processing e02.mkv: API rate limit exceeded"]
    assert _usage_count() == 1


def test_blocked_translation_is_recorded(make_service, make_video, add_entry, work_dir):
    client = MagicMock()
    client.translate_subtitles.side_effect = TranslationBlockedError(
        "Gemini has blocked the translation: response blocked (SAFETY)")
    video = make_video("Show/S1/e01.mkv")
    entry = add_entry(video)

    result = make_service(client=client).translate_next_batch(10)

    assert result.error_count == 1
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["error_message"] == "Gemini has blocked the translation: response blocked (SAFETY)"
    assert stored["is_processed"] is False
    assert not os.path.exists(os.path.splitext(video)[0] + ".pl.srt")
    assert os.listdir(work_dir) == []
    assert _usage_count() == 0

    # The next batch retries the same entry
    client.translate_subtitles.side_effect = None
    client.translate_subtitles.return_value = "1\n00:00:01,000 --> 00:00:03,000\nCześć.\n"
    retry = make_service(client=client).translate_next_batch(10)
    assert retry.success_count == 1
    assert SubtitleEntryRepository().get_by_id(entry["id"])["error_message"] is None


def test_failure_does_not_stop_batch(make_service, make_video, add_entry):
    client = MagicMock()
    client.translate_subtitles.side_effect = [
        RuntimeError("connection reset"),
        "1\n00:00:01,000 --> 00:00:03,000\nCześć.\n",
    ]
    add_entry(make_video("Show/S1/e01.mkv"))
    add_entry(make_video("Show/S1/e02.mkv"))

    result = make_service(client=client).translate_next_batch(10)

    assert result.error_count == 1
    assert result.success_count == 1
    assert result.errors == ["Error processing e01.mkv: connection reset"]


def test_failure_emits_entry_failed_event(make_service, make_video, add_entry, srt_stream):
    from events.catalog import entry_failed

    add_entry(make_video("Show/S1/e01.mkv"))
    received = []

    def on_failed(sender, data=None, **kwargs):
        received.append(data)

    entry_failed.connect(on_failed)
    try:
        make_service(extractor=FakeExtractor(stream=srt_stream, fail_extract=True)).translate_next_batch(10)
    finally:
        entry_failed.disconnect(on_failed)

    assert len(received) == 1
    assert received[0]["file_name"] == "e01.mkv"
    assert received[0]["code"] == "TRANS_003"


def test_malformed_setting_is_a_critical_error(make_service, make_video, add_entry, fake_client):
    ConfigRepository().save_config_entry("Temperature", "hot")
    add_entry(make_video("Show/S1/e01.mkv"))

    result = make_service().translate_next_batch(10)

    assert result.success_count == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Critical error during translation: Setting 'Temperature'")
    fake_client.translate_subtitles.assert_not_called()


def test_repository_failure_is_a_critical_error(configured_settings, fake_extractor, fake_client,
                                                work_dir):
    repo = MagicMock()
    repo.get_unprocessed_wanted.side_effect = RuntimeError("database is locked")
    service = SubtitleTranslationService(repository=repo, settings_service=configured_settings,
                                         extractor=fake_extractor, client=fake_client,
                                         work_dir=work_dir)

    result = service.translate_next_batch(10)

    assert result.errors == ["Critical error during translation: database is locked"]
    assert result.duration >= 0


def test_usage_write_failure_keeps_translation(configured_settings, fake_extractor, fake_client,
                                               make_video, add_entry, work_dir):
    usage = MagicMock()
    usage.can_make_request.return_value = True
    usage.record_usage.side_effect = RuntimeError("database is locked")
    video = make_video("Show/S1/e01.mkv")
    entry = add_entry(video)
    service = SubtitleTranslationService(settings_service=configured_settings, usage_service=usage,
                                         extractor=fake_extractor, client=fake_client,
                                         work_dir=work_dir)

    result = service.translate_next_batch(10)

    assert result.success_count == 1
    assert result.error_count == 0
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["is_processed"] is True
    assert stored["error_message"] is None
    assert os.path.exists(os.path.splitext(video)[0] + ".pl.srt")


class _FailingSuccessWriteRepository(SubtitleEntryRepository):
    """Raises when the processed flag is about to be persisted."""

    def update(self, entry):
        if entry.get("is_processed"):
            raise RuntimeError("disk I/O error")
        return super().update(entry)


def test_failed_success_write_leaves_entry_unprocessed(configured_settings, fake_extractor,
                                                       fake_client, make_video, add_entry,
                                                       work_dir):
    entry = add_entry(make_video("Show/S1/e01.mkv"), force_process=True)
    service = SubtitleTranslationService(repository=_FailingSuccessWriteRepository(),
                                         settings_service=configured_settings,
                                         extractor=fake_extractor, client=fake_client,
                                         work_dir=work_dir)

    result = service.translate_next_batch(10)

    assert result.success_count == 0
    assert result.error_count == 1
    stored = SubtitleEntryRepository().get_by_id(entry["id"])
    assert stored["is_processed"] is False
    assert stored["processed_at"] is None
    assert stored["force_process"] is True
    assert stored["error_message"] == "disk I/O error"
    assert [e["id"] for e in SubtitleEntryRepository().get_unprocessed_wanted(10)] == [entry["id"]]
