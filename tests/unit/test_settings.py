"""Unit tests for spybridge settings.

Covers default loading, env var overrides, the dev profile, the legacy
SPY_USER / SPY_PASS credential variables and path resolution.
"""

from __future__ import annotations

import os


class TestSettings:
    """Core settings loading and override mechanics."""

    def test_default_settings_load(self):
        from spybridge.settings import get_settings

        s = get_settings()
        assert s.env == "local"
        assert s.storage.backend == "json"
        assert s.sync.max_pages == 50
        assert s.lookup.min_score == 0.3

    def test_get_settings_is_cached(self):
        from spybridge.settings import get_settings

        assert get_settings() is get_settings()

    def test_nested_env_var_override_double_underscore(self, monkeypatch):
        monkeypatch.setenv("SPYBRIDGE_SYNC__MAX_PAGES", "5")
        from spybridge.settings.config import Settings

        assert Settings().sync.max_pages == 5

    def test_dev_profile(self, monkeypatch):
        """SPYBRIDGE_ENV=dev should load settings.dev.toml."""
        monkeypatch.setenv("SPYBRIDGE_ENV", "dev")
        from spybridge.settings.config import Settings

        s = Settings()
        assert s.env == "dev"
        assert s.browser.headless is False
        assert s.storage.backend == "sql"
        assert s.browser.timeout_ms == 30000

    def test_legacy_credential_variables(self, monkeypatch):
        monkeypatch.setenv("SPY_USER", "agent")
        monkeypatch.setenv("SPY_PASS", "hunter2")
        from spybridge.settings.config import Settings

        s = Settings()
        assert s.credentials.username == "agent"
        assert s.credentials.password.get_secret_value() == "hunter2"
        assert "hunter2" not in repr(s)

    def test_login_url_from_system_url(self, monkeypatch):
        monkeypatch.setenv("SYSTEM_URL", "https://spy.example/login")
        from spybridge.settings.config import Settings

        assert Settings().system.login_url == "https://spy.example/login"

    def test_paths_resolved_relative_to_project_root(self):
        from spybridge.settings.config import Settings

        s = Settings()
        assert os.path.isabs(s.storage.data_dir)
        assert os.path.isabs(s.storage.sqlite_path)

    def test_system_url_joins_paths(self, settings):
        assert settings.system_url("/?controller=X") == "https://2-biz.spysystem.dk/?controller=X"
        assert settings.system_url("plain") == "https://2-biz.spysystem.dk/plain"
