"""Runtime settings store backed by the app_settings table.

Values are stored as strings; typed accessors parse them and raise
ConfigurationError on malformed values. Defaults are seeded by
db.init_db() and never overwrite operator changes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from db.repositories.config import ConfigRepository
from error_handler import ConfigurationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an advanced subtitle translator to polish. Translate the provided "
    "subtitles. Preserve the original formatting, tags, and most importantly, "
    "do not change timestamps."
)

# key -> (default value, description)
DEFAULT_SETTINGS: dict[str, tuple[str, str]] = {
    "GeminiApiKey": ("", "API key for the Gemini translation service"),
    "GeminiModel": ("gemini-2.5-pro", "Gemini model used for translation"),
    "Temperature": ("0.55", "Sampling temperature for translation requests"),
    "SystemPrompt": (DEFAULT_SYSTEM_PROMPT, "System instruction sent with every translation"),
    "PreferredSubsLang": ("pl", "Target subtitle language code"),
    "RateLimitPerMinute": ("5", "Maximum translation requests per minute"),
    "RateLimitPerDay": ("100", "Maximum translation requests per UTC day"),
    "MaxSubtitleBytes": ("204800", "Size ceiling for plain extracted subtitles (bytes)"),
    "MaxAssSubtitleBytes": ("307200", "Size ceiling for cleaned ASS/SSA subtitles (bytes)"),
    "AutoLibraryScan": ("false", "Run library scans on the scheduler interval"),
    "AutoTranslate": ("false", "Run translation batches on the scheduler interval"),
}

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class TranslationSettings:
    """Settings snapshot read once per translation batch."""

    api_key: str
    model: str
    system_prompt: str
    temperature: float
    preferred_subs_lang: str


class SettingsService:
    """Read and update runtime settings."""

    def __init__(self, repository: Optional[ConfigRepository] = None):
        self.repo = repository or ConfigRepository()

    def get_setting(self, key: str) -> Optional[str]:
        """Return the stored value, falling back to the seeded default."""
        value = self.repo.get_config_entry(key)
        if value is None and key in DEFAULT_SETTINGS:
            return DEFAULT_SETTINGS[key][0]
        return value

    def update_setting(self, key: str, value: str) -> None:
        """Update a known setting.

        Raises:
            NotFoundError: If the key is not a known setting.
            ValidationError: If the value cannot be parsed for typed keys.
        """
        if key not in DEFAULT_SETTINGS and self.repo.get_config_entry(key) is None:
            raise NotFoundError(f"Setting '{key}' not found", context={"key": key})

        value = "" if value is None else str(value)
        try:
            self._check_typed_value(key, value)
        except ConfigurationError as exc:
            raise ValidationError(str(exc), context={"key": key}) from exc

        self.repo.save_config_entry(key, value)
        logger.info("Setting %s updated", key)

    def get_all_settings(self) -> dict[str, str]:
        """Return every setting as key -> value (defaults filled in)."""
        result = {key: default for key, (default, _) in DEFAULT_SETTINGS.items()}
        for row in self.repo.get_all_config_entries():
            result[row["key"]] = row["value"]
        return result

    def get_int_setting(self, key: str) -> int:
        raw = self.get_setting(key)
        try:
            return int(str(raw).strip())
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Setting '{key}' must be an integer, got {raw!r}",
                context={"key": key, "value": raw},
            )

    def get_float_setting(self, key: str) -> float:
        raw = self.get_setting(key)
        try:
            return float(str(raw).strip())
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Setting '{key}' must be a number, got {raw!r}",
                context={"key": key, "value": raw},
            )

    def get_bool_setting(self, key: str) -> bool:
        raw = self.get_setting(key)
        normalized = str(raw or "").strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise ConfigurationError(
            f"Setting '{key}' must be a boolean, got {raw!r}",
            context={"key": key, "value": raw},
        )

    def get_translation_settings(self) -> TranslationSettings:
        """Read the translation snapshot.

        Raises:
            ConfigurationError: If a required value is missing or malformed.
        """
        model = (self.get_setting("GeminiModel") or "").strip()
        if not model:
            raise ConfigurationError("GeminiModel is not configured")

        preferred = (self.get_setting("PreferredSubsLang") or "").strip()
        if not preferred:
            raise ConfigurationError("PreferredSubsLang is not configured")

        return TranslationSettings(
            api_key=self.get_setting("GeminiApiKey") or "",
            model=model,
            system_prompt=self.get_setting("SystemPrompt") or "",
            temperature=self.get_float_setting("Temperature"),
            preferred_subs_lang=preferred,
        )

    def _check_typed_value(self, key: str, value: str) -> None:
        default = DEFAULT_SETTINGS.get(key, ("", ""))[0]
        stripped = value.strip()
        if default.lower() in ("true", "false"):
            if stripped.lower() not in _TRUE_VALUES | _FALSE_VALUES:
                raise ConfigurationError(f"Setting '{key}' must be a boolean, got {value!r}")
        elif key in ("RateLimitPerMinute", "RateLimitPerDay", "MaxSubtitleBytes", "MaxAssSubtitleBytes"):
            try:
                if int(stripped) < 0:
                    raise ValueError(stripped)
            except ValueError:
                raise ConfigurationError(
                    f"Setting '{key}' must be a non-negative integer, got {value!r}"
                )
        elif key == "Temperature":
            try:
                float(stripped)
            except ValueError:
                raise ConfigurationError(f"Setting '{key}' must be a number, got {value!r}")
