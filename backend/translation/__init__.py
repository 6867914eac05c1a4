"""Translation package -- translation client registry.

Client classes are registered at import time; get_translation_client()
returns a lazily created singleton instance per client name.
"""

import logging
import threading
from typing import Optional

from translation.base import TranslationClient
from translation.gemini import GeminiClient

logger = logging.getLogger(__name__)

DEFAULT_CLIENT = GeminiClient.name

_client_classes: dict[str, type[TranslationClient]] = {}
_clients: dict[str, TranslationClient] = {}
_clients_lock = threading.Lock()


def register_client(cls: type[TranslationClient]) -> None:
    """Register a client class by its name attribute."""
    _client_classes[cls.name] = cls
    logger.debug("Registered translation client: %s", cls.name)


def get_translation_client(name: Optional[str] = None) -> TranslationClient:
    """Get or create a translation client instance by name.

    Raises:
        ValueError: If no client with this name is registered.
    """
    name = name or DEFAULT_CLIENT
    with _clients_lock:
        if name in _clients:
            return _clients[name]

        cls = _client_classes.get(name)
        if cls is None:
            raise ValueError(f"Unknown translation client: {name}")

        instance = cls()
        _clients[name] = instance
        logger.info("Created translation client instance: %s", name)
        return instance


def reset_clients() -> None:
    """Drop cached client instances (used after settings reloads and in tests)."""
    with _clients_lock:
        _clients.clear()


register_client(GeminiClient)

__all__ = [
    "TranslationClient",
    "GeminiClient",
    "get_translation_client",
    "register_client",
    "reset_clients",
]
