"""Tool interface, registry and built-in tools.

The orchestrator sees every tool through the same interface: a definition
advertised to the model, a declared risk level for the policy engine and an
async ``execute`` dispatched through the registry.
"""

from agentic_assistant.tools.base import FunctionTool, Tool
from agentic_assistant.tools.registry import ToolRegistry
from agentic_assistant.tools.schema import validate_input
from agentic_assistant.tools.builtin import register_builtin_tools

__all__ = [
    "Tool",
    "FunctionTool",
    "ToolRegistry",
    "validate_input",
    "register_builtin_tools",
]
