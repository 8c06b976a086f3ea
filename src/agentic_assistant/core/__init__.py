"""Core domain modules."""

from agentic_assistant.core.exceptions import (
    AgenticAssistantError,
    ModelProviderError,
    OrchestratorError,
    SchemaValidationError,
    ToolRegistryError,
)
from agentic_assistant.core.types import (
    AutonomyLevel,
    ContextLock,
    Message,
    OrchestratorResult,
    PolicyDecision,
    Response,
    RiskLevel,
    ToolResult,
    ToolUse,
    TurnMetrics,
)

__all__ = [
    # Exceptions
    "AgenticAssistantError",
    "ModelProviderError",
    "OrchestratorError",
    "SchemaValidationError",
    "ToolRegistryError",
    # Types
    "AutonomyLevel",
    "ContextLock",
    "Message",
    "OrchestratorResult",
    "PolicyDecision",
    "Response",
    "RiskLevel",
    "ToolResult",
    "ToolUse",
    "TurnMetrics",
]
