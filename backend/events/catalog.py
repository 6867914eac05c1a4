"""Event catalog: discoverable registry of all Translarr internal events.

Defines blinker signals in a Namespace and an EVENT_CATALOG dict mapping
event names to metadata (label, description, payload keys). This is the
single source of truth for what events exist in the system.
"""

from blinker import Namespace

# All Translarr signals live in this namespace
translarr_signals = Namespace()

# Catalog version for future payload schema evolution
CATALOG_VERSION = 1

# ---- Signal definitions --------------------------------------------------------

scan_started = translarr_signals.signal("scan_started")
scan_progress = translarr_signals.signal("scan_progress")
scan_complete = translarr_signals.signal("scan_complete")
translation_started = translarr_signals.signal("translation_started")
translation_progress = translarr_signals.signal("translation_progress")
translation_complete = translarr_signals.signal("translation_complete")
entry_translated = translarr_signals.signal("entry_translated")
entry_failed = translarr_signals.signal("entry_failed")
config_updated = translarr_signals.signal("config_updated")

# ---- Catalog dict (machine-readable metadata) ----------------------------------

EVENT_CATALOG: dict[str, dict] = {
    "scan_started": {
        "signal": scan_started,
        "label": "Scan Started",
        "description": "A library scan began.",
        "payload_keys": ["media_root"],
    },
    "scan_progress": {
        "signal": scan_progress,
        "label": "Scan Progress",
        "description": "A library scan moved to its next phase.",
        "payload_keys": ["progress"],
    },
    "scan_complete": {
        "signal": scan_complete,
        "label": "Scan Complete",
        "description": "A library scan finished (possibly with errors).",
        "payload_keys": [
            "new_files",
            "updated_files",
            "removed_files",
            "error_files",
            "duration",
            "errors",
        ],
    },
    "translation_started": {
        "signal": translation_started,
        "label": "Translation Started",
        "description": "A translation batch began.",
        "payload_keys": ["batch_size"],
    },
    "translation_progress": {
        "signal": translation_progress,
        "label": "Translation Progress",
        "description": "The translation batch is about to run the next pipeline step.",
        "payload_keys": [
            "total_files",
            "processed_files",
            "current_file_name",
            "current_step",
            "progress",
        ],
    },
    "translation_complete": {
        "signal": translation_complete,
        "label": "Translation Complete",
        "description": "A translation batch finished (possibly with errors).",
        "payload_keys": [
            "success_count",
            "skipped_no_subtitles",
            "error_count",
            "duration",
            "errors",
        ],
    },
    "entry_translated": {
        "signal": entry_translated,
        "label": "Entry Translated",
        "description": "A translated subtitle file was written for one entry.",
        "payload_keys": ["entry_id", "file_name", "language", "model"],
    },
    "entry_failed": {
        "signal": entry_failed,
        "label": "Entry Failed",
        "description": "Processing one entry failed; it stays eligible for the next batch.",
        "payload_keys": ["entry_id", "file_name", "error", "code"],
    },
    "config_updated": {
        "signal": config_updated,
        "label": "Config Updated",
        "description": "A runtime setting was changed.",
        "payload_keys": ["key"],
    },
}
