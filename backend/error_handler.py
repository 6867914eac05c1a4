"""Centralized error handling with structured error records.

Custom exception hierarchy with error codes and troubleshooting hints.
Services raise these at the narrowest boundary; the scanner and the
translation orchestrator convert them into human-readable result errors,
and the job status store keeps the structured form built by error_to_dict().
"""

import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


# ─── Exception Hierarchy ─────────────────────────────────────────────────────


class TranslarrError(Exception):
    """Base exception for all Translarr application errors.

    Attributes:
        code: Machine-readable error code (e.g. "TRANS_001")
        retryable: Whether a later batch may succeed for the same entry
        context: Additional context data for debugging
        troubleshooting: Human-readable hint for resolving the issue
    """

    code: str = "TRANSLARR_000"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[dict] = None,
        troubleshooting: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.context = context or {}
        self.troubleshooting = troubleshooting


class ConfigurationError(TranslarrError):
    """Missing or invalid configuration value."""

    code = "CFG_001"


class ValidationError(TranslarrError):
    """Invalid caller input."""

    code = "VAL_001"


class NotFoundError(TranslarrError):
    """Requested record does not exist."""

    code = "DB_404"


class ConflictError(TranslarrError):
    """Record already exists for the given natural key."""

    code = "DB_409"


class JobAlreadyRunningError(TranslarrError):
    """A job of the same kind is already in progress."""

    code = "JOB_001"

    def __init__(self, kind: str, **kwargs: object) -> None:
        super().__init__(
            f"A {kind} job is already running",
            troubleshooting="Wait for the running job to complete and poll its status.",
            context={"kind": kind},
            **kwargs,  # type: ignore[arg-type]
        )
        self.kind = kind


# ─── Scan errors ─────────────────────────────────────────────────────────────


class ScanError(TranslarrError):
    """Library scan errors."""

    code = "SCAN_001"


class MediaRootNotFoundError(ScanError):
    """The media root directory does not exist."""

    code = "SCAN_002"

    def __init__(self, path: str, **kwargs: object) -> None:
        super().__init__(
            f"Media root path does not exist: {path}",
            troubleshooting="Check TRANSLARR_MEDIA_ROOT_PATH and the volume mount.",
            context={"path": path},
            **kwargs,  # type: ignore[arg-type]
        )


# ─── Translation pipeline errors (all retryable per entry) ───────────────────


class TranslationError(TranslarrError):
    """Translation pipeline errors."""

    code = "TRANS_001"
    retryable = True


class RateLimitExceededError(TranslationError):
    """Daily or per-minute request quota exhausted."""

    code = "TRANS_002"

    def __init__(self, model: str = "", **kwargs: object) -> None:
        super().__init__(
            "API rate limit exceeded",
            troubleshooting="Raise RateLimitPerMinute/RateLimitPerDay or wait for the window to pass.",
            context={"model": model},
            **kwargs,  # type: ignore[arg-type]
        )


class SubtitleExtractionError(TranslationError):
    """ffmpeg could not extract or convert the selected subtitle stream."""

    code = "TRANS_003"


class ContentTooLargeError(TranslationError):
    """Subtitle content exceeds the configured byte ceiling."""

    code = "TRANS_004"

    def __init__(self, size: int, limit: int, **kwargs: object) -> None:
        super().__init__(
            f"Subtitle file too large after cleaning: {size} bytes (max: {limit} bytes). "
            "This file cannot be processed with the current API limits.",
            context={"size": size, "limit": limit},
            **kwargs,  # type: ignore[arg-type]
        )
        self.size = size
        self.limit = limit


class TranslationBlockedError(TranslationError):
    """The provider refused the content (safety filter)."""

    code = "TRANS_005"


class EmptyTranslationError(TranslationError):
    """The provider returned no text."""

    code = "TRANS_006"


# ─── Structured error records ────────────────────────────────────────────────


def error_to_dict(error: Exception) -> dict:
    """Build a structured record for an exception (used by job snapshots)."""
    record: dict = {
        "error": str(error),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if isinstance(error, TranslarrError):
        record["code"] = error.code
        record["retryable"] = error.retryable
        if error.context:
            record["context"] = error.context
        if error.troubleshooting:
            record["troubleshooting"] = error.troubleshooting
    else:
        record["code"] = "INTERNAL_ERROR"

    return record
