"""Coding-agent CLI dialects.

Provides the registry of supported agents and lookup by name.
"""

from .base import AgentCommand, AgentDialect
from .claude import ClaudeDialect
from .codex import CodexDialect
from .cursor_agent import CursorAgentDialect
from .gemini import GeminiDialect

AGENTS: dict[str, type[AgentDialect]] = {
    ClaudeDialect.NAME: ClaudeDialect,
    CodexDialect.NAME: CodexDialect,
    GeminiDialect.NAME: GeminiDialect,
    CursorAgentDialect.NAME: CursorAgentDialect,
}

SUPPORTED_AGENTS: tuple[str, ...] = tuple(AGENTS)


def get_agent(name: str) -> AgentDialect:
    """Return the dialect registered under name (case-insensitive).

    Raises:
        ValueError: If no dialect has that name

    """
    key = name.strip().lower()
    if key not in AGENTS:
        raise ValueError(f"invalid agent {name!r} (expected {', '.join(SUPPORTED_AGENTS)})")
    return AGENTS[key]()


__all__ = [
    "AGENTS",
    "SUPPORTED_AGENTS",
    "AgentCommand",
    "AgentDialect",
    "ClaudeDialect",
    "CodexDialect",
    "CursorAgentDialect",
    "GeminiDialect",
    "get_agent",
]
