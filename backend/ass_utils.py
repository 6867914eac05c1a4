"""ASS/SSA cleaning: reduce an extracted subtitle file to translatable dialogue.

Styling sections and embedded attachments are dropped, override tags are
stripped, and events that are not spoken dialogue (signs, songs, karaoke,
credits, effects) are removed. The result stays a valid ASS file that
pysubs2 can convert to SRT.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

ASS_CODECS = frozenset({"ass", "ssa"})

# Sections removed wholesale (compared case-insensitively)
DROPPED_SECTIONS = frozenset({
    "[v4+ styles]",
    "[v4 styles]",
    "[fonts]",
    "[graphics]",
    "[aegisub project garbage]",
    "[aegisub extradata]",
})

# ASS override tag pattern - matches {...} blocks
OVERRIDE_TAG_RE = re.compile(r"\{[^}]*\}")

# Style or Effect values marking non-dialogue events
NON_DIALOGUE_RE = re.compile(
    r"(?<![a-z])(?:credit|karaoke|lyric|sign|song)s?(?![a-z])"
    r"|(?<![a-z])fx(?![a-z])|^(?:op|ed)(?![a-z])",
    re.IGNORECASE,
)

# Hard/soft line breaks and hard spaces inside event text
_ASS_ESCAPES_RE = re.compile(r"\\[Nnh]")

SECTION_RE = re.compile(r"^\s*\[[^\]]+\]\s*$")

DEFAULT_EVENT_FORMAT = [
    "layer", "start", "end", "style", "name",
    "marginl", "marginr", "marginv", "effect", "text",
]


def is_ass_codec(codec: str) -> bool:
    return (codec or "").lower() in ASS_CODECS


def strip_override_tags(text: str) -> str:
    """Remove all {...} override blocks from event text."""
    return OVERRIDE_TAG_RE.sub("", text)


def has_alphabetic_text(text: str) -> bool:
    """True if the text (without tags and ASS escapes) contains a letter."""
    plain = _ASS_ESCAPES_RE.sub(" ", strip_override_tags(text))
    return any(ch.isalpha() for ch in plain)


def is_non_dialogue(style: str, effect: str) -> bool:
    return bool(NON_DIALOGUE_RE.search(style.strip()) or NON_DIALOGUE_RE.search(effect.strip()))


def _parse_format(line: str) -> list[str]:
    _, _, fields = line.partition(":")
    return [f.strip().lower() for f in fields.split(",")]


def _clean_dialogue(line: str, fmt: list[str]) -> Optional[str]:
    """Return the cleaned Dialogue line, or None when it should be dropped."""
    prefix, _, body = line.partition(":")
    values = body.lstrip().split(",", len(fmt) - 1)
    if len(values) < len(fmt) or "text" not in fmt:
        # Malformed event, keep it untouched
        return line

    fields = dict(zip(fmt, values))
    style = fields.get("style", "")
    effect = fields.get("effect", "")
    text = fields.get("text", "")

    if is_non_dialogue(style, effect):
        return None
    if not has_alphabetic_text(text):
        return None

    values[fmt.index("text")] = strip_override_tags(text)
    return f"{prefix}: {','.join(values)}"


def clean_ass_text(content: str) -> tuple[str, dict]:
    """Clean ASS/SSA content.

    Returns:
        tuple: (cleaned content, stats dict with kept/removed event counts)
    """
    stats = {"kept": 0, "removed": 0, "comments": 0, "sections_dropped": 0}
    out_lines = []
    section = ""
    skipping = False
    event_format = list(DEFAULT_EVENT_FORMAT)

    for line in content.splitlines():
        if SECTION_RE.match(line):
            section = line.strip().lower()
            skipping = section in DROPPED_SECTIONS
            if skipping:
                stats["sections_dropped"] += 1
                continue
            out_lines.append(line)
            continue

        if skipping:
            continue

        if section != "[events]":
            out_lines.append(line)
            continue

        stripped = line.lstrip()
        lowered = stripped.lower()
        if lowered.startswith("format:"):
            event_format = _parse_format(stripped)
            out_lines.append(line)
        elif lowered.startswith("comment:"):
            stats["comments"] += 1
        elif lowered.startswith("dialogue:"):
            cleaned = _clean_dialogue(stripped, event_format)
            if cleaned is None:
                stats["removed"] += 1
            else:
                stats["kept"] += 1
                out_lines.append(cleaned)
        else:
            out_lines.append(line)

    return "\n".join(out_lines) + "\n", stats


def clean_ass_file(path: str) -> dict:
    """Clean an ASS/SSA file in place. Returns the cleaning stats."""
    with open(path, encoding="utf-8-sig", errors="replace") as f:
        content = f.read()

    cleaned, stats = clean_ass_text(content)

    with open(path, "w", encoding="utf-8") as f:
        f.write(cleaned)

    logger.info(
        "Cleaned %s: kept %d events, removed %d (+%d comments), dropped %d sections",
        path, stats["kept"], stats["removed"], stats["comments"], stats["sections_dropped"],
    )
    return stats
