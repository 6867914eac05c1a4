"""Tests for the translarr command line (app.py cli group)."""

from unittest.mock import MagicMock, patch

import pytest

from app import cli
from db.repositories.subtitles import SubtitleEntryRepository


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_scan_command(runner, make_video):
    make_video("Show/S1/e01.mkv")
    make_video("Show/S1/e02.mkv")

    result = runner.invoke(cli, ["scan"])

    assert result.exit_code == 0, result.output
    assert "New: 2" in result.output
    assert "Removed: 0" in result.output
    assert len(SubtitleEntryRepository().get_all()) == 2


def test_translate_command_with_empty_library(runner):
    result = runner.invoke(cli, ["translate", "--batch-size", "5"])

    assert result.exit_code == 0, result.output
    assert "Translated: 0" in result.output


def test_translate_command_rejects_zero_batch(runner):
    result = runner.invoke(cli, ["translate", "--batch-size", "0"])
    assert result.exit_code != 0


def test_watch_command(runner, add_entry):
    add_entry("/media/Show/S1/e01.mkv", series="Show", season="S1", is_wanted=False)

    result = runner.invoke(cli, ["watch", "Show"])

    assert result.exit_code == 0, result.output
    assert "Auto-watch enabled for Show; 1 entries marked wanted" in result.output


def test_watch_command_conflict(runner):
    runner.invoke(cli, ["watch", "Show", "--season", "S1"])

    result = runner.invoke(cli, ["watch", "Show", "--season", "S1"])

    assert result.exit_code == 1
    assert "already exists" in result.output
    assert "DB_409" in result.output


def test_watch_disable_missing(runner):
    result = runner.invoke(cli, ["watch", "Show", "--disable"])

    assert result.exit_code == 1
    assert "Watch configuration not found for series 'Show'" in result.output


def test_series_command(runner, add_entry):
    add_entry("/media/Show/S1/e01.mkv", series="Show", season="S1")
    runner.invoke(cli, ["watch", "Show"])

    result = runner.invoke(cli, ["series"])

    assert result.exit_code == 0, result.output
    assert "* Show  files=1 wanted=1 processed=0" in result.output
    assert "S1" in result.output


def test_series_command_empty(runner):
    result = runner.invoke(cli, ["series"])
    assert "Library is empty" in result.output


def test_settings_list_masks_api_key(runner):
    runner.invoke(cli, ["settings", "set", "GeminiApiKey", "super-secret"])

    result = runner.invoke(cli, ["settings", "list"])

    assert result.exit_code == 0, result.output
    assert "GeminiApiKey = ********" in result.output
    assert "super-secret" not in result.output
    assert "PreferredSubsLang = pl" in result.output


def test_settings_set(runner):
    from settings_service import SettingsService

    result = runner.invoke(cli, ["settings", "set", "RateLimitPerMinute", "9"])

    assert result.exit_code == 0, result.output
    assert SettingsService().get_int_setting("RateLimitPerMinute") == 9


@pytest.mark.parametrize("key, value, code", [
    ("NoSuchKey", "1", "DB_404"),
    ("RateLimitPerDay", "lots", "VAL_001"),
])
def test_settings_set_errors(runner, key, value, code):
    result = runner.invoke(cli, ["settings", "set", key, value])

    assert result.exit_code == 1
    assert code in result.output


def test_stats_command(runner, add_entry):
    add_entry("/media/Show/S1/e01.mkv", is_processed=True)

    result = runner.invoke(cli, ["stats"])

    assert result.exit_code == 0, result.output
    assert "total_files: 1" in result.output
    assert "processed_files: 1" in result.output
    assert "api_requests_today (gemini-2.5-pro): 0/100" in result.output


def test_entry_commands(runner, add_entry):
    entry = add_entry("/media/Show/S1/e01.mkv", is_wanted=False)

    result = runner.invoke(cli, ["entry", "wanted", str(entry["id"]), "on"])
    assert result.exit_code == 0, result.output
    assert "e01.mkv: is_wanted=True" in result.output

    result = runner.invoke(cli, ["entry", "force", str(entry["id"]), "ON"])
    assert result.exit_code == 0, result.output
    assert "e01.mkv: force_process=True" in result.output


def test_entry_command_missing_id(runner):
    result = runner.invoke(cli, ["entry", "wanted", "999", "on"])

    assert result.exit_code == 1
    assert "SubtitleEntry with id 999 not found" in result.output


def test_daemon_requires_interval(runner):
    result = runner.invoke(cli, ["daemon"])

    assert result.exit_code == 1
    assert "No scheduler interval configured" in result.output


def test_entries_command_lists_and_filters(runner, add_entry):
    add_entry("/media/Alpha/S1/e01.mkv", series="Alpha", season="S1", is_processed=True)
    add_entry("/media/Beta/S1/e01.mkv", series="Beta", season="S1",
              error_message="API rate limit exceeded")
    add_entry("/media/Beta/S1/e02.mkv", series="Beta", season="S1", is_wanted=False)

    result = runner.invoke(cli, ["entries"])
    assert result.exit_code == 0, result.output
    assert "Page 1/1 (3 entries)" in result.output
    assert "Alpha / S1 / e01.mkv  processed=True wanted=True" in result.output
    assert "! API rate limit exceeded" in result.output

    result = runner.invoke(cli, ["entries", "--unprocessed", "--wanted"])
    assert "(1 entries)" in result.output
    assert "Beta / S1 / e01.mkv" in result.output

    result = runner.invoke(cli, ["entries", "--search", "alpha"])
    assert "(1 entries)" in result.output


def test_entries_command_paging(runner, add_entry):
    for n in range(3):
        add_entry(f"/media/Show/S1/e0{n}.mkv", season="S1")

    result = runner.invoke(cli, ["entries", "--page", "2", "--page-size", "2"])

    assert result.exit_code == 0, result.output
    assert "Page 2/2 (3 entries)" in result.output
    assert "e02.mkv" in result.output
    assert "e00.mkv" not in result.output


def test_settings_test_api_success(runner):
    client = MagicMock()
    client.translate_subtitles.return_value = "Your connection is working!\n"

    with patch("translation.get_translation_client", return_value=client):
        result = runner.invoke(cli, ["settings", "test-api"])

    assert result.exit_code == 0, result.output
    assert "API connection successful" in result.output
    assert "Your connection is working!" in result.output
    settings = client.translate_subtitles.call_args.args[1]
    assert settings.model == "gemini-2.5-pro"


def test_settings_test_api_without_key(runner):
    result = runner.invoke(cli, ["settings", "test-api"])

    assert result.exit_code == 1
    assert "API connection failed:" in result.output
    assert "GeminiApiKey" in result.output
