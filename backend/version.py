"""Translarr version, read from the VERSION file next to this module.

An unreadable or empty file yields "0.0.0-dev".
"""

from pathlib import Path

__version__ = "0.0.0-dev"

try:
    __version__ = (Path(__file__).with_name("VERSION").read_text(encoding="utf-8").strip()
                   or __version__)
except OSError:
    pass
