"""Embedded subtitle discovery and extraction via ffprobe/ffmpeg.

Stream selection prefers English, non-SDH, dialogue tracks; signs/songs
tracks are only used when nothing else exists. Extracted ASS/SSA files are
cleaned (ass_utils) and converted to SRT with pysubs2 before translation.
"""

import json
import logging
import os
import re
import subprocess
from typing import Optional

import pysubs2
from pysubs2.exceptions import Pysubs2Error

from ass_utils import clean_ass_file, is_ass_codec
from config import get_settings
from error_handler import ContentTooLargeError, SubtitleExtractionError
from library_models import SubtitleStreamInfo

logger = logging.getLogger(__name__)

ENGLISH_CODES = ("eng", "en")
SDH_KEYWORDS = ("sdh", "hearing impaired", "descriptive", "cc", "closed caption")
# Whole words only; "cc" must not hit "Accurate"
_SDH_RE = re.compile(r"\b(?:%s)s?\b" % "|".join(map(re.escape, SDH_KEYWORDS)), re.IGNORECASE)
DIALOG_TAG = "dialog"
NON_DIALOG_TAGS = ("s&s", "honorifics", "signs", "songs")
UNDEFINED_LANGUAGE = "und"

DEFAULT_MAX_SUBTITLE_BYTES = 204800
DEFAULT_MAX_ASS_SUBTITLE_BYTES = 307200


# ─── Probing ─────────────────────────────────────────────────────────────────


def run_ffprobe(file_path: str, timeout: Optional[int] = None) -> dict:
    """Run ffprobe and return its parsed JSON ({"streams": [...]}).

    Raises:
        SubtitleExtractionError: If ffprobe fails, times out, or returns invalid JSON
    """
    timeout = timeout or get_settings().ffprobe_timeout
    cmd = [
        "ffprobe",
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_streams",
        file_path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise SubtitleExtractionError(f"ffprobe timed out after {timeout}s: {file_path}")
    except OSError as e:
        raise SubtitleExtractionError(f"ffprobe could not be started: {e}")
    if result.returncode != 0:
        raise SubtitleExtractionError(f"ffprobe failed: {result.stderr.strip()}")
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise SubtitleExtractionError(f"ffprobe returned invalid JSON: {e}")


def list_subtitle_streams(probe_data: dict) -> list[dict]:
    """Return the subtitle streams of ffprobe output, in container order."""
    return [s for s in probe_data.get("streams", []) if s.get("codec_type") == "subtitle"]


# ─── Stream selection ────────────────────────────────────────────────────────


def _tags(stream: dict) -> dict:
    return stream.get("tags") or {}


def _language(stream: dict) -> str:
    return (_tags(stream).get("language") or "").strip()


def _tag_values(stream: dict) -> list[str]:
    return [str(v).lower() for v in _tags(stream).values() if v is not None]


def is_sdh_stream(stream: dict) -> bool:
    """Match SDH keywords against the language and title tags."""
    if (stream.get("disposition") or {}).get("hearing_impaired"):
        return True
    haystacks = (_language(stream), str(_tags(stream).get("title") or ""))
    return any(_SDH_RE.search(h) for h in haystacks)


def _has_tag(stream: dict, needle: str) -> bool:
    return any(needle in value for value in _tag_values(stream))


def select_best_subtitle_stream(streams: list[dict]) -> Optional[SubtitleStreamInfo]:
    """Pick the subtitle stream to translate from a list of ffprobe streams.

    Args:
        streams: ffprobe stream dicts (non-subtitle streams are ignored)

    Returns:
        SubtitleStreamInfo or None if there is no subtitle stream.
    """
    subs = [s for s in streams if s.get("codec_type", "subtitle") == "subtitle"]
    if not subs:
        return None

    english = [s for s in subs if _language(s).lower() in ENGLISH_CODES]
    candidates = english or subs
    non_sdh = [s for s in candidates if not is_sdh_stream(s)]

    dialog = [s for s in non_sdh if _has_tag(s, DIALOG_TAG)]
    if dialog:
        selected = dialog[0]
    else:
        dialog_or_unknown = [
            s for s in non_sdh
            if not any(_has_tag(s, tag) for tag in NON_DIALOG_TAGS)
        ]
        if dialog_or_unknown:
            selected = dialog_or_unknown[0]
        elif non_sdh:
            selected = non_sdh[0]
        elif english:
            selected = english[0]
        else:
            selected = subs[0]

    return SubtitleStreamInfo(
        stream_index=int(selected.get("index", 0)),
        language=_language(selected) or UNDEFINED_LANGUAGE,
        codec_name=(selected.get("codec_name") or "").lower(),
        is_sdh=is_sdh_stream(selected),
    )


def find_best_subtitle_stream(file_path: str,
                              timeout: Optional[int] = None) -> Optional[SubtitleStreamInfo]:
    """Probe a video file and select its best subtitle stream."""
    logger.info("Finding best subtitle stream for %s", file_path)
    streams = list_subtitle_streams(run_ffprobe(file_path, timeout=timeout))
    if not streams:
        logger.warning("No subtitle streams found for %s", file_path)
        return None

    stream = select_best_subtitle_stream(streams)
    logger.info("Selected stream %d (%s, %s%s) for %s", stream.stream_index,
                stream.language, stream.codec_name, ", SDH" if stream.is_sdh else "",
                os.path.basename(file_path))
    return stream


# ─── Extraction and conversion ───────────────────────────────────────────────


def extracted_subtitle_path(work_dir: str, file_name: str, stream: SubtitleStreamInfo) -> str:
    """Temporary extraction target: <work_dir>/<base>.<language>.<codec>."""
    base = os.path.splitext(file_name)[0]
    return os.path.join(work_dir, f"{base}.{stream.language}.{stream.codec_name}")


def extract_subtitle_stream(video_path: str, stream: SubtitleStreamInfo, output_path: str,
                            timeout: Optional[int] = None):
    """Extract one subtitle stream; ASS/SSA stay ASS, everything else becomes SRT.

    Raises:
        SubtitleExtractionError: If ffmpeg fails or produces no file
    """
    fmt = "ass" if is_ass_codec(stream.codec_name) else "srt"
    cmd = [
        "ffmpeg",
        "-y",
        "-v",
        "error",
        "-i",
        video_path,
        "-map",
        f"0:{stream.stream_index}",
        "-c:s",
        fmt,
        "-f",
        fmt,
        output_path,
    ]
    timeout = timeout or get_settings().ffmpeg_timeout
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise SubtitleExtractionError(f"ffmpeg timed out after {timeout}s: {video_path}")
    except OSError as e:
        raise SubtitleExtractionError(f"ffmpeg could not be started: {e}")

    if result.returncode != 0 or not os.path.exists(output_path):
        logger.error("ffmpeg extraction failed for %s: %s", video_path, result.stderr.strip())
        raise SubtitleExtractionError("Failed to extract subtitles from video file",
                                      context={"stderr": result.stderr.strip()[-500:]})
    logger.info("Extracted %s stream %d to %s", stream.codec_name, stream.stream_index, output_path)


def convert_to_srt(input_path: str, output_path: str):
    """Convert a subtitle file (typically cleaned ASS) to SRT with pysubs2.

    Raises:
        SubtitleExtractionError: If the file cannot be parsed or written
    """
    try:
        subs = pysubs2.load(input_path, encoding="utf-8")
        subs.save(output_path, encoding="utf-8", format_="srt")
    except (OSError, ValueError, Pysubs2Error) as e:
        raise SubtitleExtractionError(f"Failed to convert cleaned ASS to SRT: {e}")
    logger.debug("Converted %s to SRT (%d events)", input_path, len(subs))


def validate_subtitle_size(content: str, codec: str,
                           max_bytes: int = DEFAULT_MAX_SUBTITLE_BYTES,
                           max_ass_bytes: int = DEFAULT_MAX_ASS_SUBTITLE_BYTES) -> int:
    """Check the UTF-8 size of subtitle text against the ceiling for its source codec.

    Returns:
        The size in bytes.

    Raises:
        ContentTooLargeError: If the size exceeds the ceiling
    """
    size = len(content.encode("utf-8"))
    limit = max_ass_bytes if is_ass_codec(codec) else max_bytes
    if size > limit:
        raise ContentTooLargeError(size, limit)
    return size


class SubtitleExtractor:
    """Prepares translatable SRT text for one video file.

    Wraps the module functions so the translation orchestrator can be
    given a fake in tests.
    """

    def __init__(self, ffprobe_timeout: Optional[int] = None,
                 ffmpeg_timeout: Optional[int] = None):
        settings = get_settings()
        self.ffprobe_timeout = ffprobe_timeout or settings.ffprobe_timeout
        self.ffmpeg_timeout = ffmpeg_timeout or settings.ffmpeg_timeout

    def find_best_subtitle_stream(self, video_path: str) -> Optional[SubtitleStreamInfo]:
        return find_best_subtitle_stream(video_path, timeout=self.ffprobe_timeout)

    def extract(self, video_path: str, stream: SubtitleStreamInfo, output_path: str):
        extract_subtitle_stream(video_path, stream, output_path, timeout=self.ffmpeg_timeout)

    def clean_and_convert(self, extracted_path: str, codec: str) -> str:
        """Clean ASS/SSA and convert it to SRT; returns the path to translate.

        Non-ASS codecs were already extracted as SRT and are returned as is.
        """
        if not is_ass_codec(codec):
            return extracted_path

        logger.info("Detected ASS/SSA subtitle format, cleaning file before conversion")
        clean_ass_file(extracted_path)
        srt_path = os.path.splitext(extracted_path)[0] + ".srt"
        convert_to_srt(extracted_path, srt_path)
        return srt_path
