"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables   (PRERENDER_PROXY__BACKEND__URL=https://...)
  2. prerender-proxy.yaml    (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. Without a backend URL and token the proxy still
starts and simply forwards every request to the origin.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("prerender-proxy")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "prerender.db")

_CATEGORY_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


def _find_config_file() -> str | None:
    """Return the path of the first prerender-proxy.yaml found, or None."""
    candidates = [
        Path("prerender-proxy.yaml"),
        Path(platformdirs.user_config_dir("prerender-proxy")) / "prerender-proxy.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class BackendSettings(BaseModel):
    """Cache backend the gateway talks to."""

    url: str | None = None
    auth_token: str | None = None
    timeout_seconds: float = 3.0
    record_hits: bool = True

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.rstrip("/") or None

    @property
    def configured(self) -> bool:
        return bool(self.url) and bool(self.auth_token)


class OriginSettings(BaseModel):
    """The SPA origin that humans (and bots on a cache miss) are forwarded to."""

    url: str = "http://127.0.0.1:5173"
    timeout_seconds: float = 30.0


class ScriptSettings(BaseModel):
    injection_enabled: bool = True
    ttl_seconds: int = 300


class BotSettings(BaseModel):
    # None means the bundled list shipped with the package
    agents_file: str | None = None


class SitemapSettings(BaseModel):
    categories: list[str] = ["markets", "pillars"]

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, v: list[str]) -> list[str]:
        for category in v:
            if not _CATEGORY_RE.match(category):
                raise ValueError(f"Invalid sitemap category: {category!r}")
        return v


class BackendServiceSettings(BaseModel):
    """Settings for the reference backend (``prerender-proxy-backend``)."""

    host: str = "0.0.0.0"
    port: int = 8081
    db_path: str = _DEFAULT_DB_PATH
    site_url: str = "https://example.com"
    auth_enabled: bool = True
    auth_token: str = ""


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: PRERENDER_PROXY__SERVER__PORT=9090
        env_prefix="PRERENDER_PROXY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    backend: BackendSettings = BackendSettings()
    origin: OriginSettings = OriginSettings()
    scripts: ScriptSettings = ScriptSettings()
    bots: BotSettings = BotSettings()
    sitemaps: SitemapSettings = SitemapSettings()
    backend_service: BackendServiceSettings = BackendServiceSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
