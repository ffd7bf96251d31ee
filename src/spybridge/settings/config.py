"""Configuration loader for spybridge using Pydantic settings.

Config precedence (highest wins):
  1. CLI flags (where applicable)
  2. Environment variables (SPYBRIDGE_* with __ for nesting, then SPY_USER,
     SPY_PASS and SYSTEM_URL)
  3. settings.local.toml
  4. settings.<env>.toml
  5. settings.default.toml
"""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

_THIS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = Path(os.getenv("SPYBRIDGE_PROJECT_ROOT", _THIS_DIR.parents[2]))
CONFIG_DIR = PROJECT_ROOT / "config"

ENV_VAR_NAME = "SPYBRIDGE_ENV"
DEFAULT_ENV = "local"


def _resolve_env() -> str:
    return (os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()


def _load_toml(path: Path) -> dict[str, Any]:
    if path.is_file():
        with open(path, "rb") as f:
            return tomllib.load(f)
    return {}


# Unprefixed variables shared with the other SPY tooling.
LEGACY_ENV_VARS = {
    "SYSTEM_URL": ("system", "login_url"),
    "SPY_USER": ("credentials", "username"),
    "SPY_PASS": ("credentials", "password"),
}


def _legacy_env() -> dict[str, Any]:
    found: dict[str, Any] = {}
    for var, (section, key) in LEGACY_ENV_VARS.items():
        value = os.getenv(var)
        if value:
            found.setdefault(section, {})[key] = value
    return found


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SystemSettings(BaseSettings):
    """Where the SPY web application lives."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_SYSTEM__", populate_by_name=True)

    base_url: str = "https://2-biz.spysystem.dk"
    login_url: str = Field(
        default="http://localhost:3001/login",
        validation_alias=AliasChoices("SYSTEM_URL", "SPYBRIDGE_SYSTEM__LOGIN_URL"),
    )
    customer_list_path: str = "/?controller=Admin%5CCustomer%5CIndex&action=ActiveList"
    style_search_path: str = "/?controller=Style%5CIndex&action=List"


class CredentialSettings(BaseSettings):
    """SPY login. Also read from the legacy ``SPY_USER`` / ``SPY_PASS`` variables."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_CREDENTIALS__", populate_by_name=True)

    username: str = Field(
        default="",
        validation_alias=AliasChoices("SPY_USER", "SPYBRIDGE_CREDENTIALS__USERNAME"),
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("SPY_PASS", "SPYBRIDGE_CREDENTIALS__PASSWORD"),
    )


class BrowserSettings(BaseSettings):
    """Playwright browser settings."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_BROWSER__")

    headless: bool = True
    timeout_ms: int = 30_000
    step_timeout_ms: int = 10_000
    login_timeout_ms: int = 10_000
    customer_sync_login_timeout_ms: int = 15_000
    poll_interval_ms: int = 250
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1280
    viewport_height: int = 720
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
        ]
    )


class SyncSettings(BaseSettings):
    """Customer sync behaviour."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_SYNC__")

    max_pages: int = 50
    show_all_min_rows: int = 10
    show_all_timeout_ms: int = 5_000
    table_timeout_ms: int = 15_000
    settle_ms: int = 2_000


class LookupSettings(BaseSettings):
    """Customer similarity search tuning."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_LOOKUP__")

    min_score: float = 0.3
    max_results: int = 10
    stale_after_hours: float = 24.0


class StorageSettings(BaseSettings):
    """Customer directory persistence."""

    model_config = SettingsConfigDict(env_prefix="SPYBRIDGE_STORAGE__")

    backend: str = "json"  # json | sql
    data_dir: str = "data"
    sqlite_path: str = "data/spybridge.db"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root spybridge settings with nested sections."""

    model_config = SettingsConfigDict(
        env_prefix="SPYBRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: str = Field(default_factory=_resolve_env)
    project_root: Path = Field(default=PROJECT_ROOT)
    debug: bool = False

    system: SystemSettings = Field(default_factory=SystemSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    lookup: LookupSettings = Field(default_factory=LookupSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @model_validator(mode="before")
    @classmethod
    def _merge_toml_files(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Layer TOML config files before env var overrides."""
        defaults = _load_toml(CONFIG_DIR / "settings.default.toml")
        env_name = (values.get("env") or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV).strip()
        env_overrides = _load_toml(CONFIG_DIR / f"settings.{env_name}.toml")
        local_overrides = _load_toml(CONFIG_DIR / "settings.local.toml")

        # Merge: defaults < env-specific < local < legacy env < explicit values
        merged: dict[str, Any] = {}
        for layer in (defaults, env_overrides, local_overrides, _legacy_env(), values):
            for key, val in layer.items():
                if isinstance(val, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **val}
                else:
                    merged[key] = val
        return merged

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths against project_root."""
        root = self.project_root
        if not Path(self.storage.data_dir).is_absolute():
            self.storage.data_dir = str(root / self.storage.data_dir)
        if not Path(self.storage.sqlite_path).is_absolute():
            self.storage.sqlite_path = str(root / self.storage.sqlite_path)
        return self

    def system_url(self, path: str) -> str:
        """Join *path* onto the configured SPY base URL."""
        return self.system.base_url.rstrip("/") + "/" + path.lstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton settings instance (cached)."""
    return Settings()
