"""spybridge: browser-automation extraction and customer resolution for the SPY system."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("spybridge")
except Exception:
    __version__ = "0.0.0"
