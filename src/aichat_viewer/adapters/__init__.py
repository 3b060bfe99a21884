"""Registry of the supported tools and their adapters."""

from ..errors import ResolutionError
from ..provider import ToolAdapter
from .claude_code import ClaudeCodeAdapter
from .codex import CodexAdapter
from .opencode import OpenCodeAdapter

_ADAPTERS: dict[str, ToolAdapter] = {
    adapter.name: adapter
    for adapter in (ClaudeCodeAdapter(), CodexAdapter(), OpenCodeAdapter())
}


def available_tools() -> list[str]:
    """Return the tool names in registration order."""
    return list(_ADAPTERS)


def get_adapter(tool: str) -> ToolAdapter:
    """Return the adapter for a tool name, or raise ResolutionError."""
    try:
        return _ADAPTERS[tool]
    except KeyError:
        raise ResolutionError(f"Unknown tool: {tool}") from None
