"""Application factory and command line interface for Translarr.

Uses the Flask Application Factory pattern: create_app() builds and
configures the application, initializes extensions and the database, wires
the event system, and optionally starts the interval schedulers. The
`translarr` console script is a FlaskGroup over the same factory.
"""

import json
import logging
import os
import threading

import click
from flask import Flask
from flask.cli import FlaskGroup

from error_handler import TranslarrError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_MASKED_SETTINGS = {"GeminiApiKey"}

API_TEST_PROMPT = "Hello, this is a test. Please respond with 'Your connection is working!'."


class StructuredJSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging (ELK, Loki, etc.)."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


def _setup_logging(settings) -> None:
    """Configure the root logger once: level, formatter, optional rotating file."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)

    if getattr(root, "_translarr_configured", False):
        return

    use_json = getattr(settings, "log_format", "text").lower() == "json"
    if use_json:
        formatter: logging.Formatter = StructuredJSONFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    log_file = settings.log_file
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            from logging.handlers import RotatingFileHandler
            fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
            fh.setLevel(log_level)
            fh.setFormatter(formatter)
            root.addHandler(fh)
        except OSError as e:
            logging.getLogger(__name__).warning("Could not set up log file %s: %s", log_file, e)

    root._translarr_configured = True


def create_app(testing=False, with_scheduler=None):
    """Create and configure the Flask application.

    Args:
        testing: If True, mark the app as testing and skip scheduler startup.
        with_scheduler: Start the interval schedulers (defaults to not testing).

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    app.config["TESTING"] = testing

    from config import get_settings
    settings = get_settings()

    _setup_logging(settings)
    logger = logging.getLogger(__name__)

    # ---- Flask-SQLAlchemy initialization ----
    app.config["SQLALCHEMY_DATABASE_URI"] = settings.get_database_url()
    if not settings.database_url or settings.database_url.startswith("sqlite"):
        # SQLite: background job threads share the engine; every pooled
        # connection waits up to 5s on a locked database
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "connect_args": {"check_same_thread": False, "timeout": 5},
        }
        db_dir = os.path.dirname(settings.db_path)
        if not settings.database_url and db_dir:
            os.makedirs(db_dir, exist_ok=True)

    from extensions import db as sa_db
    sa_db.init_app(app)

    with app.app_context():
        from db import init_db
        init_db()

        from events import init_event_system
        init_event_system(app)

    from job_runner import init_job_runner
    runner = init_job_runner(app)

    if with_scheduler is None:
        with_scheduler = not testing
    if with_scheduler:
        runner.start_scheduler()

    from version import __version__
    logger.info("Translarr %s initialized (media root: %s)", __version__, settings.media_root_path)
    return app


# ─── CLI ─────────────────────────────────────────────────────────────────────


def _create_cli_app():
    return create_app(with_scheduler=False)


@click.group(cls=FlaskGroup, create_app=_create_cli_app, add_default_commands=False,
             add_version_option=False)
def cli():
    """Translarr - scan a media library and translate embedded subtitles."""


def _fail(error: TranslarrError):
    raise click.ClickException(f"{error} [{error.code}]")


def _on_off(value: str) -> bool:
    return value.lower() == "on"


@cli.command("scan")
def scan_command():
    """Scan the media root and reconcile the library."""
    from job_runner import get_job_runner
    try:
        result = get_job_runner().run_scan()
    except TranslarrError as e:
        _fail(e)

    click.echo(f"New: {result.new_files}  Updated: {result.updated_files}  "
               f"Removed: {result.removed_files}  Errors: {result.error_files}  "
               f"({result.duration:.1f}s)")
    for message in result.errors:
        click.echo(f"  ! {message}", err=True)


@cli.command("translate")
@click.option("--batch-size", type=click.IntRange(min=1), default=None,
              help="Maximum number of entries to process (default: TRANSLARR_TRANSLATION_BATCH_SIZE).")
def translate_command(batch_size):
    """Translate the next batch of eligible entries."""
    from events.catalog import translation_progress
    from job_runner import get_job_runner

    def _on_progress(sender, data=None, **kwargs):
        click.echo((data or {}).get("progress", ""))

    translation_progress.connect(_on_progress)
    try:
        result = get_job_runner().run_translation(batch_size)
    except TranslarrError as e:
        _fail(e)
    finally:
        translation_progress.disconnect(_on_progress)

    click.echo(f"Translated: {result.success_count}  Skipped: {result.skipped_no_subtitles}  "
               f"Errors: {result.error_count}  ({result.duration:.1f}s)")
    for message in result.errors:
        click.echo(f"  ! {message}", err=True)


@cli.command("watch")
@click.argument("series")
@click.option("--season", default=None, help="Limit the rule to one season folder.")
@click.option("--disable", is_flag=True, help="Remove the rule instead of adding it.")
def watch_command(series, season, disable):
    """Auto-watch a series (or one season) so new files are wanted."""
    from watch_service import WatchService
    try:
        updated = WatchService().set_auto_watch(series, season, not disable)
    except TranslarrError as e:
        _fail(e)

    scope = f"{series} / {season}" if season else series
    if disable:
        click.echo(f"Auto-watch disabled for {scope}")
    else:
        click.echo(f"Auto-watch enabled for {scope}; {updated} entries marked wanted")


@cli.command("series")
def series_command():
    """List series and seasons with file counts and watch status."""
    from watch_service import WatchService
    groups = WatchService().get_series_groups_with_watch_status()
    if not groups:
        click.echo("Library is empty")
        return

    for group in groups:
        mark = "*" if group["is_watched"] else " "
        click.echo(f"{mark} {group['series_name']}  files={group['total_files']} "
                   f"wanted={group['wanted_files']} processed={group['processed_files']}")
        for season in group["seasons"]:
            mark = "*" if season["is_watched"] else " "
            click.echo(f"    {mark} {season['season_name']}  files={season['total_files']} "
                       f"wanted={season['wanted_files']} processed={season['processed_files']}")


@cli.command("entries")
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=50, show_default=True)
@click.option("--processed/--unprocessed", default=None, help="Filter on is_processed.")
@click.option("--wanted/--unwanted", default=None, help="Filter on is_wanted.")
@click.option("--search", default=None, help="Match file, series or season names.")
def entries_command(page, page_size, processed, wanted, search):
    """List library entries, one page at a time."""
    from library_service import LibraryService
    listing = LibraryService().get_entries(page=page, page_size=page_size,
                                           is_processed=processed, is_wanted=wanted,
                                           search=search)
    click.echo(f"Page {listing['page']}/{max(listing['total_pages'], 1)} "
               f"({listing['total_count']} entries)")
    for entry in listing["items"]:
        click.echo(f"{entry['id']:>5}  {entry['series']} / {entry['season']} / {entry['file_name']}  "
                   f"processed={entry['is_processed']} wanted={entry['is_wanted']} "
                   f"already_had={entry['already_had']}")
        if entry["error_message"]:
            click.echo(f"       ! {entry['error_message']}")


@cli.group("settings")
def settings_group():
    """Show or change runtime settings."""


@settings_group.command("list")
def settings_list_command():
    from settings_service import SettingsService
    for key, value in sorted(SettingsService().get_all_settings().items()):
        if key in _MASKED_SETTINGS and value:
            value = "********"
        click.echo(f"{key} = {value}")


@settings_group.command("set")
@click.argument("key")
@click.argument("value")
def settings_set_command(key, value):
    from events import emit_event
    from settings_service import SettingsService
    try:
        SettingsService().update_setting(key, value)
    except TranslarrError as e:
        _fail(e)
    emit_event("config_updated", {"key": key})
    click.echo(f"{key} updated")


@settings_group.command("test-api")
def settings_test_api_command():
    """Send one request to Gemini with the stored settings."""
    from settings_service import SettingsService
    from translation import get_translation_client
    try:
        settings = SettingsService().get_translation_settings()
        response = get_translation_client().translate_subtitles(API_TEST_PROMPT, settings)
    except Exception as e:
        logging.getLogger(__name__).warning("API connection test failed: %s", e)
        raise click.ClickException(f"API connection failed: {e}")
    click.echo("API connection successful")
    click.echo(response.strip())


@cli.command("stats")
def stats_command():
    """Show library counters and today's API usage."""
    from datetime import datetime, timedelta

    from api_usage import ApiUsageService
    from db.repositories.base import utcnow
    from library_service import LibraryService
    from settings_service import SettingsService

    stats = LibraryService().get_library_stats()
    for key in ("total_files", "processed_files", "unprocessed_files", "wanted_files",
                "already_had_files", "error_files", "last_scanned"):
        click.echo(f"{key}: {stats[key]}")

    settings = SettingsService()
    model = settings.get_setting("GeminiModel")
    now = utcnow()
    today = datetime(now.year, now.month, now.day)
    used = ApiUsageService(settings_service=settings).get_usage_stats(
        today, today + timedelta(days=1), model)
    click.echo(f"api_requests_today ({model}): {len(used)}/{settings.get_setting('RateLimitPerDay')}")


@cli.group("entry")
def entry_group():
    """Change flags of a single library entry."""


@entry_group.command("wanted")
@click.argument("entry_id", type=int)
@click.argument("state", type=click.Choice(["on", "off"], case_sensitive=False))
def entry_wanted_command(entry_id, state):
    from library_service import LibraryService
    try:
        entry = LibraryService().set_wanted_status(entry_id, _on_off(state))
    except TranslarrError as e:
        _fail(e)
    click.echo(f"{entry['file_name']}: is_wanted={entry['is_wanted']}")


@entry_group.command("force")
@click.argument("entry_id", type=int)
@click.argument("state", type=click.Choice(["on", "off"], case_sensitive=False))
def entry_force_command(entry_id, state):
    from library_service import LibraryService
    try:
        entry = LibraryService().set_force_process_status(entry_id, _on_off(state))
    except TranslarrError as e:
        _fail(e)
    click.echo(f"{entry['file_name']}: force_process={entry['force_process']}")


@cli.command("daemon")
def daemon_command():
    """Run the interval schedulers until interrupted."""
    from config import get_settings
    from job_runner import get_job_runner

    settings = get_settings()
    if settings.scan_interval_minutes <= 0 and settings.translate_interval_minutes <= 0:
        raise click.ClickException(
            "No scheduler interval configured; set TRANSLARR_SCAN_INTERVAL_MINUTES "
            "and/or TRANSLARR_TRANSLATE_INTERVAL_MINUTES")

    runner = get_job_runner()
    runner.start_scheduler()
    click.echo("Schedulers running, press Ctrl+C to stop")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        pass
    finally:
        runner.stop_scheduler()


if __name__ == "__main__":
    cli()
