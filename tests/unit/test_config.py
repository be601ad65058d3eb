"""Unit tests for configuration defaults and environment overrides."""

from __future__ import annotations

import platformdirs
import pytest
from pydantic import ValidationError

from prerender_proxy.config import (
    _DEFAULT_DATA_DIR,
    _DEFAULT_DB_PATH,
    BackendServiceSettings,
    BackendSettings,
    Settings,
    SitemapSettings,
)


class TestPlatformDefaults:
    """Verify config defaults use platformdirs instead of hardcoded Unix paths."""

    def test_default_data_dir_matches_platformdirs(self) -> None:
        expected = platformdirs.user_data_dir("prerender-proxy")
        assert expected == _DEFAULT_DATA_DIR

    def test_default_db_path_under_data_dir(self) -> None:
        assert _DEFAULT_DB_PATH.startswith(_DEFAULT_DATA_DIR)
        assert _DEFAULT_DB_PATH.endswith("prerender.db")

    def test_backend_service_uses_platform_default(self) -> None:
        assert BackendServiceSettings().db_path == _DEFAULT_DB_PATH


class TestBackendSettings:
    def test_unconfigured_by_default(self) -> None:
        settings = BackendSettings()
        assert settings.url is None
        assert not settings.configured

    def test_url_without_token_is_unconfigured(self) -> None:
        assert not BackendSettings(url="https://backend.test").configured

    def test_token_without_url_is_unconfigured(self) -> None:
        assert not BackendSettings(auth_token="t").configured

    def test_url_and_token_configured(self) -> None:
        assert BackendSettings(url="https://backend.test", auth_token="t").configured

    def test_trailing_slash_stripped(self) -> None:
        assert BackendSettings(url="https://backend.test/").url == "https://backend.test"


class TestSitemapSettings:
    def test_default_categories(self) -> None:
        assert SitemapSettings().categories == ["markets", "pillars"]

    @pytest.mark.parametrize("category", ["Markets", "a/b", "", "-x", "with space"])
    def test_invalid_category_rejected(self, category: str) -> None:
        with pytest.raises(ValidationError):
            SitemapSettings(categories=[category])


class TestEnvironmentOverrides:
    def test_nested_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRERENDER_PROXY__BACKEND__URL", "https://env-backend.test/")
        monkeypatch.setenv("PRERENDER_PROXY__BACKEND__AUTH_TOKEN", "env-token")
        monkeypatch.setenv("PRERENDER_PROXY__SERVER__PORT", "9090")
        monkeypatch.setenv("PRERENDER_PROXY__SCRIPTS__INJECTION_ENABLED", "false")

        settings = Settings()

        assert settings.backend.url == "https://env-backend.test"
        assert settings.backend.configured
        assert settings.server.port == 9090
        assert settings.scripts.injection_enabled is False

    def test_constructor_args_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRERENDER_PROXY__SERVER__PORT", "9090")
        settings = Settings(server={"port": 7070})
        assert settings.server.port == 7070
