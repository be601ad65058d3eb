"""Shared test fixtures for the prerender_proxy test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from prerender_proxy.backend.store import PageStore
from prerender_proxy.bots import BotClassifier, load_bundled_bot_agents
from prerender_proxy.config import BackendSettings, Settings
from prerender_proxy.routes import RouteClassifier

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

BACKEND_URL = "https://backend.test"
ORIGIN_URL = "https://origin.test"
AUTH_TOKEN = "test-token"


@pytest.fixture()
def backend_settings() -> BackendSettings:
    return BackendSettings(url=BACKEND_URL, auth_token=AUTH_TOKEN, timeout_seconds=1.0)


@pytest.fixture()
def settings(backend_settings: BackendSettings) -> Settings:
    return Settings(
        backend=backend_settings.model_dump(),
        origin={"url": ORIGIN_URL},
    )


@pytest.fixture()
def bots() -> BotClassifier:
    """Classifier over the bundled agent list."""
    return BotClassifier.from_agent_list(load_bundled_bot_agents())


@pytest.fixture()
def routes() -> RouteClassifier:
    return RouteClassifier(["markets", "pillars"])


@pytest.fixture()
async def store() -> AsyncGenerator[PageStore, None]:
    """PageStore over an in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        page_store = PageStore(db)
        await page_store.init_db()
        yield page_store
