"""Shared pytest fixtures for all tests."""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config import reload_settings
from library_models import SubtitleStreamInfo
from tests.fixtures.fakes import FakeExtractor
from tests.fixtures.test_data import TRANSLATED_SRT

@pytest.fixture
def app(tmp_path, monkeypatch):
    """Flask app bound to a temporary SQLite database, inside an app context."""
    media_root = tmp_path / "media"
    media_root.mkdir()
    monkeypatch.setenv("TRANSLARR_DB_PATH", str(tmp_path / "translarr.db"))
    monkeypatch.setenv("TRANSLARR_DATABASE_URL", "")
    monkeypatch.setenv("TRANSLARR_MEDIA_ROOT_PATH", str(media_root))
    monkeypatch.setenv("TRANSLARR_WORK_DIR", str(tmp_path / "work"))
    monkeypatch.setenv("TRANSLARR_LOG_LEVEL", "ERROR")
    monkeypatch.setenv("TRANSLARR_SCAN_INTERVAL_MINUTES", "0")
    monkeypatch.setenv("TRANSLARR_TRANSLATE_INTERVAL_MINUTES", "0")
    reload_settings()

    from app import create_app
    from extensions import db as sa_db
    from job_status import get_job_status_store
    from translation import reset_clients

    get_job_status_store().reset()
    reset_clients()

    application = create_app(testing=True)
    with application.app_context():
        yield application
        sa_db.session.remove()
        sa_db.engine.dispose()

    get_job_status_store().reset()
    reload_settings()


@pytest.fixture
def media_root(app):
    """The media root directory configured for the test app."""
    from config import get_settings
    return Path(get_settings().media_root_path)


@pytest.fixture
def make_video(media_root):
    """Factory fixture: create an (empty) video file under the media root."""
    def _create(relative_path: str) -> str:
        path = media_root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x1aE\xdf\xa3")
        return str(path)

    return _create


@pytest.fixture
def add_entry(app):
    """Factory fixture: insert a subtitle entry directly through the repository."""
    from db.repositories.subtitles import SubtitleEntryRepository

    def _add(file_path: str, **overrides) -> dict:
        entry = {
            "file_path": file_path,
            "file_name": os.path.basename(file_path),
            "series": "Show",
            "season": "Season 1",
            "is_processed": False,
            "is_wanted": True,
            "force_process": False,
            "already_had": False,
        }
        entry.update(overrides)
        return SubtitleEntryRepository().add(entry)

    return _add


@pytest.fixture
def srt_stream():
    return SubtitleStreamInfo(stream_index=2, language="eng", codec_name="subrip")


@pytest.fixture
def fake_extractor(srt_stream):
    return FakeExtractor(stream=srt_stream)


@pytest.fixture
def fake_client():
    """Translation client mock returning a fixed Polish SRT."""
    from translation.base import TranslationClient

    client = MagicMock(spec=TranslationClient)
    client.translate_subtitles.return_value = TRANSLATED_SRT
    return client


@pytest.fixture
def configured_settings(app):
    """Settings store with an API key and generous rate limits."""
    from settings_service import SettingsService

    service = SettingsService()
    service.update_setting("GeminiApiKey", "test-key")
    service.update_setting("RateLimitPerMinute", "100")
    service.update_setting("RateLimitPerDay", "1000")
    return service
