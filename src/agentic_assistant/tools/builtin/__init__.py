"""Built-in tools shipped with the assistant."""

from agentic_assistant.tools.builtin.system_info import SystemInfoTool
from agentic_assistant.tools.registry import ToolRegistry

__all__ = [
    "SystemInfoTool",
    "register_builtin_tools",
]


def register_builtin_tools(registry: ToolRegistry) -> None:
    """
    Register all built-in tools into the given registry.

    Call this during application startup to make built-in tools available.
    """
    registry.register(SystemInfoTool())
