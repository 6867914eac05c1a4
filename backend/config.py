"""Centralized configuration using Pydantic Settings.

Process-level settings only (paths, logging, timeouts, scheduler intervals).
Translation parameters that operators change at runtime live in the
app_settings table and are read through settings_service.SettingsService.

All settings can be overridden via environment variables with the TRANSLARR_
prefix, or via a .env file. Example: TRANSLARR_MEDIA_ROOT_PATH=/mnt/media
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Translarr process settings."""

    # General
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"
    log_file: str = ""  # Empty = console only
    media_root_path: str = "/media"
    db_path: str = "/config/translarr.db"
    database_url: str = ""  # Empty = sqlite at db_path

    # Extraction
    work_dir: str = "/tmp/translarr"
    ffprobe_timeout: int = 30
    ffmpeg_timeout: int = 120

    # Translation
    translation_batch_size: int = 100
    gemini_request_timeout: int = 600

    # Scheduler (0 = disabled)
    scan_interval_minutes: int = 0
    translate_interval_minutes: int = 0

    model_config = {
        "env_prefix": "TRANSLARR_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def get_database_url(self) -> str:
        """Return the SQLAlchemy database URL (sqlite at db_path by default)."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.db_path}"


# Singleton settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the singleton Settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings(overrides: dict = None) -> Settings:
    """Force reload settings from environment/file.

    Args:
        overrides: Optional dict of field values applied on top of the
                   env/file settings (unknown keys are ignored).
    """
    global _settings
    base = Settings()

    if overrides:
        known = base.model_dump()
        update = {k: v for k, v in overrides.items() if k in known}
        _settings = base.model_copy(update=update) if update else base
    else:
        _settings = base

    return _settings
