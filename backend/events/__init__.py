"""In-process event bus built on the blinker signals in events.catalog.

Services publish with emit_event(); the job status store and a debug
logger subscribe once, in init_event_system().
"""

import logging

from flask import current_app, has_app_context

from events.catalog import CATALOG_VERSION, EVENT_CATALOG

logger = logging.getLogger(__name__)

_initialized = False


def _debug_subscriber(event_name: str):
    def _log(sender, data=None, **kwargs):
        keys = len(data) if isinstance(data, dict) else 0
        logger.debug("Event %s (%d keys)", event_name, keys)
    return _log


def init_event_system(app):
    """Attach subscribers to every catalog signal.

    Signals are module-level, so a second call (another app instance in
    the same process) is a no-op.
    """
    global _initialized
    if _initialized:
        return

    from job_status import get_job_status_store

    for name, entry in EVENT_CATALOG.items():
        entry["signal"].connect(_debug_subscriber(name), weak=False)
    get_job_status_store().connect_signals()
    _initialized = True

    logger.info("Event system ready: %d events (catalog v%d)",
                len(EVENT_CATALOG), CATALOG_VERSION)


def emit_event(event_name: str, data: dict = None):
    """Send ``data`` on the signal registered for ``event_name``.

    Unknown names are logged and dropped. The sender is the current
    Flask app when called inside an app context, otherwise None.
    """
    entry = EVENT_CATALOG.get(event_name)
    if entry is None:
        logger.warning("emit_event called with unknown event: %s", event_name)
        return

    sender = current_app._get_current_object() if has_app_context() else None
    entry["signal"].send(sender, data=data or {})
