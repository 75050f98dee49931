"""Tool descriptors, tool-call content blocks and normalized invocation results."""

from dataclasses import dataclass
from typing import Annotated, Any, Final, Literal

from pydantic import BaseModel, ConfigDict, Field

LATEST_PROTOCOL_VERSION: Final[str] = "2024-11-05"

JsonSchema = dict[str, Any]


class MCPModel(BaseModel):
    """Base class for MCP domain types. Allows extra fields for forward compatibility."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Implementation(MCPModel):
    """Name and version of an MCP implementation."""

    name: str
    version: str


class Tool(MCPModel):
    """Definition of a tool the server provides."""

    name: str
    description: str | None = None
    input_schema: Annotated[JsonSchema, Field(alias="inputSchema")] = Field(default_factory=dict)


class TextContent(MCPModel):
    """Text content in a tool result."""

    type: Literal["text"] = "text"
    text: str


@dataclass(frozen=True)
class ParsedJson:
    """Tool output that decoded as structured JSON."""

    value: Any


@dataclass(frozen=True)
class RawText:
    """Tool output that is plain text and not JSON."""

    text: str

    @property
    def value(self) -> str:
        return self.text


ToolPayload = ParsedJson | RawText

ErrorKind = Literal["not_configured", "transport", "handshake", "protocol", "remote_tool"]


@dataclass
class ToolInvocationResult:
    """Outcome of one ``tools/call``.

    Failures are reported through ``success``/``error``/``error_kind`` rather than
    raised, so multi-step tool sequences can inspect partial failure and carry on.
    """

    success: bool
    tool: str
    payload: ToolPayload | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    elapsed: float = 0.0
    """Wall-clock seconds spent on the call."""
    session_id: str | None = None

    @property
    def data(self) -> Any:
        """The payload value, or ``None`` for failed calls."""
        return None if self.payload is None else self.payload.value

    def to_json(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "tool": self.tool,
            "result": self.data,
            "error": self.error,
            "kind": self.error_kind,
            "elapsed": self.elapsed,
        }
