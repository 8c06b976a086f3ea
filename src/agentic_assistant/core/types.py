"""Conversation and policy data model.

Content blocks mirror the Anthropic Messages wire format, so a block's
``model_dump(mode="json")`` is exactly what goes into a request body and
``Response.model_validate`` decodes a response body directly.
"""

from enum import Enum, IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


JSONValue = Any


# =============================================================================
# ENUMERATIONS
# =============================================================================


class RiskLevel(IntEnum):
    """Hazard class declared by each tool. Ordered from least to most risky."""

    SAFE = 0
    CAUTION = 1
    DANGEROUS = 2
    DESTRUCTIVE = 3

    @property
    def label(self) -> str:
        return self.name.lower()


class AutonomyLevel(IntEnum):
    """How much risk the user lets the assistant take without asking."""

    ASK_ALL = 0
    SMART_DEFAULT = 1
    FULL_AUTO = 2


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    REQUIRE_CONFIRMATION = "require_confirmation"
    DENY = "deny"


class StopReason(str, Enum):
    """Why the model ended its turn."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"


# =============================================================================
# CONTENT BLOCKS
# =============================================================================


class TextBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ToolUse(BaseModel):
    """A tool invocation requested by the model."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: dict[str, JSONValue] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one tool call, sent back to the model in a user message."""

    model_config = ConfigDict(frozen=True)

    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


class ImageSource(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class ImageBlock(BaseModel):
    """Base64 image produced by vision-capable tools."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    source: ImageSource

    @classmethod
    def from_base64(cls, media_type: str, data: str) -> "ImageBlock":
        return cls(source=ImageSource(media_type=media_type, data=data))


ContentBlock = Annotated[
    Union[TextBlock, ToolUse, ToolResult, ImageBlock],
    Field(discriminator="type"),
]


# =============================================================================
# MESSAGES
# =============================================================================


class Message(BaseModel):
    """One conversation turn. Immutable once appended to the history."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: list[ContentBlock]

    @classmethod
    def user_text(cls, text: str) -> "Message":
        return cls(role="user", content=[TextBlock(text=text)])

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUse]:
        return [b for b in self.content if isinstance(b, ToolUse)]

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the request body.

        A message holding a single text block is written with bare string
        content; anything else becomes an array of typed blocks.
        """
        if len(self.content) == 1 and isinstance(self.content[0], TextBlock):
            return {"role": self.role, "content": self.content[0].text}
        return {
            "role": self.role,
            "content": [block.model_dump(mode="json") for block in self.content],
        }


class ToolDefinition(BaseModel):
    """Tool description advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: dict[str, JSONValue] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0


class Response(BaseModel):
    """One complete model turn."""

    model_config = ConfigDict(frozen=True)

    id: str
    model: str
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: StopReason | None = None
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> list[ToolUse]:
        return [b for b in self.content if isinstance(b, ToolUse)]


# =============================================================================
# POLICY AND RESULTS
# =============================================================================


class ViolationKind(str, Enum):
    PATH_TRAVERSAL = "path_traversal"
    SYSTEM_PATH = "system_path"
    CONTROL_CHARACTERS = "control_characters"
    LENGTH_EXCEEDED = "length_exceeded"


class SanitizationViolation(BaseModel):
    """One unsafe string found in a tool call's input."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    field: str
    detail: str = ""


class ContextLock(BaseModel):
    """Advisory marker for the application last observed by the assistant."""

    model_config = ConfigDict(frozen=True)

    bundle_id: str
    pid: int


class TurnMetrics(BaseModel):
    """Summary of one ``process()`` call."""

    model_config = ConfigDict(frozen=True)

    round_count: int
    elapsed_time: float
    tools_used: list[str] = Field(default_factory=list)
    errors_encountered: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


class OrchestratorResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    metrics: TurnMetrics
