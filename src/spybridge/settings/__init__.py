"""Layered configuration (TOML files + environment variables)."""

from __future__ import annotations

from spybridge.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
