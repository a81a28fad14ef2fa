"""AI Agents package."""

from tanoprego.agents.ai_agents import (
    SmartAddAgent,
    SmartAddError,
    SmartAddNotConfiguredError,
    SmartAddParseError,
)

__all__ = [
    "SmartAddAgent",
    "SmartAddError",
    "SmartAddNotConfiguredError",
    "SmartAddParseError",
]
