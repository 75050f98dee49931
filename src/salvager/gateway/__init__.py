from salvager.gateway.base import ResourceTransport, map_status
from salvager.gateway.facade import ResourceGateway
from salvager.gateway.mcp import McpResourceTransport
from salvager.gateway.rest import RestResourceTransport

__all__ = [
    "McpResourceTransport",
    "ResourceGateway",
    "ResourceTransport",
    "RestResourceTransport",
    "map_status",
]
