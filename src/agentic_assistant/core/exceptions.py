"""Domain exceptions for the assistant control plane.

Three families propagate to callers:

- model protocol errors (``ModelProviderError``) raised by the model client,
- loop-bound errors (``OrchestratorError``) raised by ``Orchestrator.process``,
- registry and schema errors (``ToolRegistryError``, ``SchemaValidationError``).

Tool execution failures are never raised out of a round; the orchestrator
turns them into error-flagged tool results instead.
"""


class AgenticAssistantError(Exception):
    """Base exception for all assistant errors."""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message)
        self.recoverable = recoverable


# =============================================================================
# TRANSPORT
# =============================================================================


class TransportError(AgenticAssistantError):
    """The HTTP request could not be completed (connection, timeout)."""


class TransportStatusError(TransportError):
    """A streaming request was answered with a non-2xx status."""

    def __init__(self, status_code: int, body: bytes = b""):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body


# =============================================================================
# MODEL PROTOCOL
# =============================================================================


class ModelProviderError(AgenticAssistantError):
    """Error returned by the model protocol client."""


class UnauthorizedError(ModelProviderError):
    """The API key was rejected (HTTP 401)."""

    def __init__(self, message: str = "API key rejected (HTTP 401)"):
        super().__init__(message, recoverable=False)


class RateLimitedError(ModelProviderError):
    """The provider is throttling requests (HTTP 429)."""

    def __init__(self, message: str = "Rate limited (HTTP 429)"):
        super().__init__(message, recoverable=True)


class ServerError(ModelProviderError):
    """Any other non-2xx status from the provider."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or f"Server error (HTTP {status_code})", recoverable=True)
        self.status_code = status_code


class InvalidResponseError(ModelProviderError):
    """The provider answered but the payload could not be decoded."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=False)


class ModelCancelledError(ModelProviderError):
    """The in-flight model call was torn down by ``abort()``."""

    def __init__(self, message: str = "Model request cancelled"):
        super().__init__(message, recoverable=True)


# =============================================================================
# ORCHESTRATOR
# =============================================================================


class OrchestratorError(AgenticAssistantError):
    """Loop-bound error ending a ``process()`` call abnormally."""


class MaxRoundsExceededError(OrchestratorError):
    """The model kept requesting tools past the round limit."""

    def __init__(self, max_rounds: int):
        super().__init__(f"Exceeded maximum of {max_rounds} rounds", recoverable=True)
        self.max_rounds = max_rounds


class OrchestratorTimeoutError(OrchestratorError):
    """The wall-clock limit for a single ``process()`` call elapsed."""

    def __init__(self, timeout: float):
        super().__init__(f"Request timed out after {timeout:g}s", recoverable=True)
        self.timeout = timeout


class OrchestratorCancelledError(OrchestratorError):
    """The caller aborted the in-flight ``process()`` call."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message, recoverable=True)


class NoResponseError(OrchestratorError):
    """The loop finished without producing a result."""

    def __init__(self, message: str = "No response from model"):
        super().__init__(message, recoverable=True)


# =============================================================================
# TOOL REGISTRY
# =============================================================================


class ToolRegistryError(AgenticAssistantError):
    """Error resolving or validating a tool call."""

    def __init__(self, message: str, tool_name: str | None = None):
        super().__init__(message, recoverable=True)
        self.tool_name = tool_name


class UnknownToolError(ToolRegistryError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name=tool_name)


class DuplicateToolNameError(ToolRegistryError):
    """A tool with this name is already registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool already registered: {tool_name}", tool_name=tool_name)


class ToolValidationError(ToolRegistryError):
    """The call's arguments do not satisfy the tool's input schema."""

    def __init__(self, tool_name: str, reason: str):
        super().__init__(f"Invalid input for {tool_name}: {reason}", tool_name=tool_name)
        self.reason = reason


# =============================================================================
# SCHEMA VALIDATION
# =============================================================================


class SchemaValidationError(AgenticAssistantError):
    """Input does not match a tool's JSON schema."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, recoverable=True)
        self.field = field


class InvalidSchemaError(SchemaValidationError):
    """The schema itself is not a supported object schema."""


class MissingRequiredFieldError(SchemaValidationError):
    def __init__(self, field: str):
        super().__init__(f"Missing required field '{field}'", field=field)


class TypeMismatchError(SchemaValidationError):
    def __init__(self, field: str, expected: str, got: str):
        super().__init__(
            f"Field '{field}' expected {expected}, got {got}",
            field=field,
        )
        self.expected = expected
        self.got = got


class InvalidEnumValueError(SchemaValidationError):
    def __init__(self, field: str, value: str, allowed: list[str]):
        super().__init__(
            f"Field '{field}' value {value!r} not in {allowed}",
            field=field,
        )
        self.value = value
        self.allowed = allowed
