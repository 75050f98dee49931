from salvager.client.session import McpSessionClient, SessionState
from salvager.client.session_pool import SessionPool
from salvager.gateway.base import map_status
from salvager.gateway.facade import ResourceGateway
from salvager.settings import Settings
from salvager.shared.exceptions import (
    HandshakeError,
    NotConfiguredError,
    ProtocolError,
    RemoteToolError,
    SalvagerError,
    TransportError,
)
from salvager.types import GatheringTask, ResourceType, StoredResource, TaskStatus, Tool, ToolInvocationResult

__all__ = [
    "GatheringTask",
    "HandshakeError",
    "McpSessionClient",
    "NotConfiguredError",
    "ProtocolError",
    "RemoteToolError",
    "ResourceGateway",
    "ResourceType",
    "SalvagerError",
    "SessionPool",
    "SessionState",
    "Settings",
    "StoredResource",
    "TaskStatus",
    "Tool",
    "ToolInvocationResult",
    "TransportError",
    "map_status",
]
