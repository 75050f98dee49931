from salvager.types.gateway import GatheringTask, ResourceType, StoredResource, TaskStatus
from salvager.types.json_rpc import (
    JSONRPC_VERSION,
    ErrorData,
    JSONRPCErrorResponse,
    JSONRPCMessage,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCResultResponse,
    RequestId,
)
from salvager.types.tools import (
    LATEST_PROTOCOL_VERSION,
    Implementation,
    ParsedJson,
    RawText,
    TextContent,
    Tool,
    ToolInvocationResult,
    ToolPayload,
)

__all__ = [
    "JSONRPC_VERSION",
    "LATEST_PROTOCOL_VERSION",
    "ErrorData",
    "GatheringTask",
    "Implementation",
    "JSONRPCErrorResponse",
    "JSONRPCMessage",
    "JSONRPCNotification",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCResultResponse",
    "ParsedJson",
    "RawText",
    "RequestId",
    "ResourceType",
    "StoredResource",
    "TaskStatus",
    "TextContent",
    "Tool",
    "ToolInvocationResult",
    "ToolPayload",
]
