"""Bot classification by User-Agent substring.

The agent list is data, not code: a versioned JSON document bundled with the
package (``data/bot_agents.json``) that can be replaced at deploy time via
``bots.agents_file`` without touching the dispatcher.
"""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from prerender_proxy.models.bots import BotAgentList

if TYPE_CHECKING:
    from collections.abc import Iterable

    from prerender_proxy.config import Settings

log = structlog.get_logger()

_BUNDLED_AGENTS = "bot_agents.json"


def load_bundled_bot_agents() -> BotAgentList:
    """Load the bot agent list shipped with the package."""
    raw = resources.files("prerender_proxy.data").joinpath(_BUNDLED_AGENTS).read_text("utf-8")
    return BotAgentList(**json.loads(raw))


def load_bot_agents(path: Path | None = None) -> BotAgentList:
    """Load a bot agent list from ``path``, falling back to the bundled list.

    An unreadable or invalid custom file is logged and ignored rather than
    failing startup.
    """
    if path is None:
        return load_bundled_bot_agents()

    try:
        agent_list = BotAgentList(**json.loads(path.read_text(encoding="utf-8")))
    except Exception:
        log.warning("bot_agents_invalid", path=str(path), exc_info=True)
        return load_bundled_bot_agents()

    log.info(
        "bot_agents_loaded",
        source="file",
        path=str(path),
        version=agent_list.version,
        agents=len(agent_list.agents),
    )
    return agent_list


class BotClassifier:
    """Case-insensitive substring matcher over a fixed agent list."""

    def __init__(self, agents: Iterable[str], *, version: str = "custom") -> None:
        self.version = version
        self.agents: tuple[str, ...] = tuple(
            dict.fromkeys(a.strip().lower() for a in agents if a and a.strip())
        )

    @classmethod
    def from_agent_list(cls, agent_list: BotAgentList) -> BotClassifier:
        return cls(agent_list.agents, version=agent_list.version)

    @classmethod
    def from_settings(cls, settings: Settings) -> BotClassifier:
        path = Path(settings.bots.agents_file).expanduser() if settings.bots.agents_file else None
        return cls.from_agent_list(load_bot_agents(path))

    def is_bot(self, user_agent: str | None) -> bool:
        """Return True if the User-Agent contains any known agent substring.

        A missing or empty User-Agent is treated as human.
        """
        if not user_agent:
            return False
        lowered = user_agent.lower()
        return any(agent in lowered for agent in self.agents)

    def __len__(self) -> int:
        return len(self.agents)
