"""Abstract base class for translation clients.

A client translates one whole subtitle document (SRT text) in a single
request. Implementations raise the TranslationError subclasses from
error_handler so the orchestrator can record a retryable failure.
"""

from abc import ABC, abstractmethod

from settings_service import TranslationSettings


class TranslationClient(ABC):
    """Abstract base class for translation clients.

    Class-level attributes:
        name: Unique client identifier (lowercase, e.g. "gemini")
        display_name: Human-readable name for logs and CLI output
    """

    name: str = "unknown"
    display_name: str = "Unknown"

    @abstractmethod
    def translate_subtitles(self, content: str, settings: TranslationSettings) -> str:
        """Translate a subtitle document.

        Args:
            content: SRT text to translate
            settings: Model, prompt, temperature and credentials for this batch

        Returns:
            The translated SRT text (may still be wrapped in a code fence).

        Raises:
            ConfigurationError: Missing credentials
            TranslationBlockedError: The provider refused the content
            EmptyTranslationError: The provider returned no text
            TranslationError: Any other provider failure
        """
        ...
