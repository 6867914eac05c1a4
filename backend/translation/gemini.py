"""Gemini translation client (google-genai SDK).

Sends the whole SRT document as one request with the configured system
prompt and temperature. Safety filters are relaxed because subtitles
routinely contain mature dialogue; a refusal is still reported as
TranslationBlockedError so the entry is retried in a later batch.
"""

import logging
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from config import get_settings
from error_handler import (
    ConfigurationError,
    EmptyTranslationError,
    TranslationBlockedError,
    TranslationError,
)
from settings_service import TranslationSettings
from translation.base import TranslationClient

logger = logging.getLogger(__name__)

# Keep the SDK's own request logging out of our logs
logging.getLogger("google.genai").setLevel(logging.WARNING)

_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
)

_BLOCKED_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


def build_generation_config(settings: TranslationSettings) -> types.GenerateContentConfig:
    """Generation config: system prompt, temperature, permissive safety settings."""
    safety_settings = [
        types.SafetySetting(category=category, threshold="BLOCK_NONE")
        for category in _SAFETY_CATEGORIES
    ]
    return types.GenerateContentConfig(
        system_instruction=settings.system_prompt or None,
        temperature=settings.temperature,
        safety_settings=safety_settings,
    )


def _enum_name(value) -> str:
    if value is None:
        return ""
    return getattr(value, "name", None) or str(value)


def check_blocked(response) -> Optional[str]:
    """Return a reason string if the response was blocked, else None."""
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        return f"prompt blocked ({_enum_name(feedback.block_reason)})"

    for candidate in getattr(response, "candidates", None) or []:
        reason = _enum_name(getattr(candidate, "finish_reason", None))
        if reason in _BLOCKED_FINISH_REASONS:
            return f"response blocked ({reason})"
    return None


class GeminiClient(TranslationClient):
    """Translate subtitle documents with a Gemini model."""

    name = "gemini"
    display_name = "Google Gemini"

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or get_settings().gemini_request_timeout

    def _create_client(self, api_key: str) -> genai.Client:
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=self.timeout * 1000),
        )

    def translate_subtitles(self, content: str, settings: TranslationSettings) -> str:
        if not settings.api_key:
            raise ConfigurationError(
                "GeminiApiKey setting is not configured",
                troubleshooting="Set it with: translarr settings set GeminiApiKey <key>",
            )

        client = self._create_client(settings.api_key)
        logger.info("Sending %d characters to %s", len(content), settings.model)

        try:
            response = client.models.generate_content(
                model=settings.model,
                contents=content,
                config=build_generation_config(settings),
            )
        except genai_errors.APIError as e:
            raise TranslationError(
                f"Gemini API error ({e.code}): {e.message or e}",
                context={"model": settings.model, "status": e.code},
            ) from e

        blocked = check_blocked(response)
        if blocked:
            logger.warning("Gemini %s for %s", blocked, settings.model)
            raise TranslationBlockedError(
                f"Gemini has blocked the translation: {blocked}",
                context={"model": settings.model},
            )

        text = response.text
        if not text or not text.strip():
            raise EmptyTranslationError("Gemini API returned empty response",
                                        context={"model": settings.model})
        return text
