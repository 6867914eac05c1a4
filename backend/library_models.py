"""Plain data types shared by the scan and translation pipelines."""

import enum
from dataclasses import dataclass, field


@dataclass
class VideoFile:
    """A video file found on disk, classified into series and season."""

    file_path: str
    file_name: str
    series: str
    season: str


@dataclass
class ScanResult:
    """Counters and error messages of one library scan."""

    new_files: int = 0
    updated_files: int = 0
    removed_files: int = 0
    error_files: int = 0
    duration: float = 0.0  # seconds
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "new_files": self.new_files,
            "updated_files": self.updated_files,
            "removed_files": self.removed_files,
            "error_files": self.error_files,
            "duration": round(self.duration, 3),
            "errors": list(self.errors),
        }


@dataclass
class TranslationResult:
    """Counters and error messages of one translation batch."""

    success_count: int = 0
    skipped_no_subtitles: int = 0
    error_count: int = 0
    duration: float = 0.0  # seconds
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success_count": self.success_count,
            "skipped_no_subtitles": self.skipped_no_subtitles,
            "error_count": self.error_count,
            "duration": round(self.duration, 3),
            "errors": list(self.errors),
        }


class TranslationStep(str, enum.Enum):
    """Pipeline step reported in progress updates."""

    STARTING = "Starting"
    CHECKING_RATE_LIMIT = "CheckingRateLimit"
    FINDING_SUBTITLES = "FindingSubtitles"
    EXTRACTING_SUBTITLES = "ExtractingSubtitles"
    CLEANING_SUBTITLES = "CleaningSubtitles"
    VALIDATING_SIZE = "ValidatingSize"
    TRANSLATING_WITH_GEMINI = "TranslatingWithGemini"
    SAVING_SUBTITLES = "SavingSubtitles"
    COMPLETED = "Completed"

    @property
    def label(self) -> str:
        return _STEP_LABELS[self]


_STEP_LABELS = {
    TranslationStep.STARTING: "Starting",
    TranslationStep.CHECKING_RATE_LIMIT: "Checking rate limit",
    TranslationStep.FINDING_SUBTITLES: "Finding subtitles",
    TranslationStep.EXTRACTING_SUBTITLES: "Extracting subtitles",
    TranslationStep.CLEANING_SUBTITLES: "Cleaning subtitles",
    TranslationStep.VALIDATING_SIZE: "Validating size",
    TranslationStep.TRANSLATING_WITH_GEMINI: "Translating with Gemini",
    TranslationStep.SAVING_SUBTITLES: "Saving subtitles",
    TranslationStep.COMPLETED: "Completed",
}


@dataclass(frozen=True)
class TranslationProgressUpdate:
    """Snapshot published before each step of a translation batch."""

    total_files: int
    processed_files: int
    current_file_name: str
    current_step: TranslationStep

    def format_progress(self) -> str:
        """Human-readable progress line, e.g. '[3/10] Extracting subtitles: ep3.mkv'."""
        return (f"[{self.processed_files + 1}/{self.total_files}] "
                f"{self.current_step.label}: {self.current_file_name}")

    def to_dict(self) -> dict:
        return {
            "total_files": self.total_files,
            "processed_files": self.processed_files,
            "current_file_name": self.current_file_name,
            "current_step": self.current_step.value,
            "progress": self.format_progress(),
        }


@dataclass(frozen=True)
class SubtitleStreamInfo:
    """Subtitle stream chosen for extraction."""

    stream_index: int
    language: str
    codec_name: str
    is_sdh: bool = False
