"""Base class for executable tools.

A tool is anything exposing a definition, a declared risk level and an
async ``execute``. Accessibility automation, browser control, clipboard,
file and speech tools all live outside this package and plug in by
subclassing ``Tool`` (or wrapping a coroutine with ``FunctionTool``).

Design Philosophy:
- The registry and orchestrator only ever see this interface
- Tools report their own failures as error results when they can
- Anything a tool raises is converted to an error result by the registry
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from agentic_assistant.core.types import RiskLevel, ToolDefinition, ToolResult


class Tool(ABC):
    """
    Base class for tools.

    Example:
        class SystemInfoTool(Tool):
            name = "system_info"
            description = "Return OS, host and hardware information"
            risk_level = RiskLevel.SAFE

            async def execute(self, tool_use_id, arguments):
                return self.success(tool_use_id, platform.platform())
    """

    # Metadata - must be set by subclasses
    name: str
    description: str

    # Input schema for the tool (JSON Schema format)
    input_schema: dict[str, Any] = {"type": "object", "properties": {}}

    # Declared hazard class, consulted by the policy engine
    risk_level: RiskLevel = RiskLevel.DANGEROUS

    @abstractmethod
    async def execute(self, tool_use_id: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Execute the tool.

        Args:
            tool_use_id: Id of the model's tool_use block, echoed in the result
            arguments: Schema-validated input

        Returns:
            ToolResult for the call
        """
        pass

    @property
    def definition(self) -> ToolDefinition:
        """Definition advertised to the model."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )

    @classmethod
    def success(cls, tool_use_id: str, content: str | dict | list) -> ToolResult:
        """Helper to create a successful result."""
        if not isinstance(content, str):
            content = json.dumps(content)
        return ToolResult(tool_use_id=tool_use_id, content=content, is_error=False)

    @classmethod
    def error(cls, tool_use_id: str, error_message: str) -> ToolResult:
        """Helper to create an error result."""
        return ToolResult(tool_use_id=tool_use_id, content=error_message, is_error=True)


ToolFunction = Callable[[str, dict[str, Any]], Awaitable[ToolResult | str]]


class FunctionTool(Tool):
    """Adapts a coroutine function to the ``Tool`` interface.

    The function may return a ``ToolResult`` or a plain string, which is
    wrapped as a successful result.
    """

    def __init__(
        self,
        name: str,
        description: str,
        func: ToolFunction,
        input_schema: dict[str, Any] | None = None,
        risk_level: RiskLevel = RiskLevel.DANGEROUS,
    ):
        self.name = name
        self.description = description
        self.input_schema = input_schema or {"type": "object", "properties": {}}
        self.risk_level = risk_level
        self._func = func

    async def execute(self, tool_use_id: str, arguments: dict[str, Any]) -> ToolResult:
        result = await self._func(tool_use_id, arguments)
        if isinstance(result, ToolResult):
            return result
        return self.success(tool_use_id, result)
