"""Registry of executable tools with schema-validated dispatch."""

import threading
import time

from agentic_assistant.core.exceptions import (
    DuplicateToolNameError,
    SchemaValidationError,
    ToolValidationError,
    UnknownToolError,
)
from agentic_assistant.core.types import ToolDefinition, ToolResult, ToolUse
from agentic_assistant.tools.base import Tool
from agentic_assistant.tools.schema import validate_input
from agentic_assistant.utils.logging import get_logger


logger = get_logger(__name__)


class ToolRegistry:
    """
    Registry for tools.

    Design Pattern: Registry

    Tools are registered once at startup and read-only afterwards.
    Registration order is preserved and is the order definitions are
    advertised to the model.

    Usage:
        registry = ToolRegistry()
        registry.register(SystemInfoTool())

        # Later
        result = await registry.dispatch(tool_use)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> Tool:
        """
        Register a tool instance.

        Raises:
            DuplicateToolNameError: If a tool with the same name exists
        """
        with self._lock:
            if tool.name in self._tools:
                raise DuplicateToolNameError(tool.name)
            self._tools[tool.name] = tool
        logger.info("Registered tool", tool=tool.name, risk=tool.risk_level.label)
        return tool

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        with self._lock:
            return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Get list of registered tool names."""
        with self._lock:
            return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        """Definitions of all registered tools, in registration order."""
        with self._lock:
            tools = list(self._tools.values())
        return [tool.definition for tool in tools]

    def validate(self, call: ToolUse) -> Tool:
        """
        Resolve the tool and check the call's input against its schema.

        Returns:
            The resolved tool

        Raises:
            UnknownToolError: If no tool has this name
            ToolValidationError: If the input fails schema validation
        """
        tool = self.get(call.name)
        if tool is None:
            raise UnknownToolError(call.name)

        try:
            validate_input(call.input, tool.input_schema)
        except SchemaValidationError as e:
            raise ToolValidationError(call.name, str(e)) from e
        return tool

    async def dispatch(self, call: ToolUse) -> ToolResult:
        """
        Validate and execute a tool call.

        Resolution and validation errors are raised; anything the tool
        itself raises is converted to an error result.
        """
        tool = self.validate(call)

        start_time = time.monotonic()
        logger.info("Dispatching tool", tool=call.name, tool_use_id=call.id)

        try:
            result = await tool.execute(call.id, call.input)
        except Exception as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.error(
                "Tool execution failed",
                tool=call.name,
                duration_ms=round(duration_ms, 1),
                error=str(e),
                exc_info=True,
            )
            return Tool.error(call.id, f"Tool execution failed: {e}")

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "Tool executed",
            tool=call.name,
            duration_ms=round(duration_ms, 1),
            is_error=result.is_error,
        )
        return result

    def clear(self) -> None:
        """Remove all registered tools (useful for testing)."""
        with self._lock:
            self._tools.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools
