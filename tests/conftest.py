"""Pytest fixtures for testing."""

from typing import Any

import pytest

from agentic_assistant.config.settings import Settings
from agentic_assistant.core.orchestrator import Orchestrator
from agentic_assistant.core.policy import PolicyEngine
from agentic_assistant.core.types import AutonomyLevel, RiskLevel, ToolResult
from agentic_assistant.tools.base import FunctionTool, Tool
from agentic_assistant.tools.builtin import SystemInfoTool
from agentic_assistant.tools.registry import ToolRegistry
from agentic_assistant.utils.providers.mock import MockModelProvider


class EchoTool(Tool):
    """Echoes its ``text`` argument back."""

    name = "echo"
    description = "Echo the given text"
    input_schema = {
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "required": ["text"],
    }
    risk_level = RiskLevel.SAFE

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def execute(self, tool_use_id: str, arguments: dict[str, Any]) -> ToolResult:
        self.calls.append(arguments)
        return self.success(tool_use_id, arguments["text"])


class FailingTool(Tool):
    """Always raises."""

    name = "explode"
    description = "Raises an error"
    risk_level = RiskLevel.SAFE

    async def execute(self, tool_use_id: str, arguments: dict[str, Any]) -> ToolResult:
        raise RuntimeError("boom")


def _make_tool(name: str, risk_level: RiskLevel, output: str = "done") -> FunctionTool:
    async def run(tool_use_id: str, arguments: dict[str, Any]) -> str:
        return output

    return FunctionTool(
        name=name,
        description=f"{name} tool",
        func=run,
        risk_level=risk_level,
    )


@pytest.fixture
def make_tool():
    """Factory for tools with a fixed output and the given risk level."""
    return _make_tool


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        anthropic_api_key="test-key",
        http_max_retries=0,
        http_retry_backoff_seconds=0.0,
        log_level="DEBUG",
    )


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def registry(echo_tool: EchoTool) -> ToolRegistry:
    """Registry with system_info, echo and a failing tool."""
    registry = ToolRegistry()
    registry.register(SystemInfoTool())
    registry.register(echo_tool)
    registry.register(FailingTool())
    return registry


@pytest.fixture
def policy() -> PolicyEngine:
    return PolicyEngine(autonomy_level=AutonomyLevel.SMART_DEFAULT)


@pytest.fixture
def provider() -> MockModelProvider:
    return MockModelProvider()


@pytest.fixture
def orchestrator(
    provider: MockModelProvider,
    registry: ToolRegistry,
    policy: PolicyEngine,
) -> Orchestrator:
    """Orchestrator wired to the mock provider, without a confirmation handler."""
    return Orchestrator(
        model_provider=provider,
        tool_registry=registry,
        policy_engine=policy,
        max_rounds=5,
        timeout=5.0,
    )
