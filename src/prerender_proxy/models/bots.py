from __future__ import annotations

from pydantic import BaseModel, field_validator


class BotAgentList(BaseModel):
    """Versioned list of User-Agent substrings that identify automated clients."""

    version: str
    agents: list[str]

    @field_validator("agents")
    @classmethod
    def normalise_agents(cls, v: list[str]) -> list[str]:
        # Lowercase, drop blanks, keep first occurrence order
        seen: set[str] = set()
        agents: list[str] = []
        for agent in v:
            lowered = agent.strip().lower()
            if lowered and lowered not in seen:
                seen.add(lowered)
                agents.append(lowered)
        if not agents:
            raise ValueError("Bot agent list must contain at least one entry")
        return agents
