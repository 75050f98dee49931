"""
Resource Gateway: the one vocabulary the rest of the application uses.

Every operation tries the primary transport (the MCP session pool) first. On any
exception it logs the cause and repeats the call on the fallback transport (the
REST API), so a transient MCP failure degrades to REST instead of failing the
request. The fallback is stateless per call and never touches the pool.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from salvager.client.session_pool import SessionPool
from salvager.gateway.base import ResourceTransport
from salvager.gateway.mcp import McpResourceTransport
from salvager.gateway.rest import RestResourceTransport
from salvager.settings import Settings
from salvager.shared.exceptions import NotConfiguredError
from salvager.types.gateway import GatheringTask, ResourceType, StoredResource
from salvager.types.tools import Tool, ToolInvocationResult

logger = logging.getLogger(__name__)


class ResourceGateway:
    def __init__(
        self,
        primary: ResourceTransport | None,
        fallback: ResourceTransport | None = None,
        *,
        mcp: McpResourceTransport | None = None,
        rest: RestResourceTransport | None = None,
    ) -> None:
        """
        Args:
            primary: Transport tried first. ``None`` together with no fallback
                means the gateway is not configured.
            fallback: Transport used when the primary raises.
            mcp: MCP transport for the raw tool operations (``list_tools``,
                ``call_tool``). Defaults to ``primary`` when that is one.
            rest: REST transport for the REST-only operations. Defaults to
                ``fallback`` when that is one.
        """
        self.primary = primary
        self.fallback = fallback
        self.mcp = mcp or (primary if isinstance(primary, McpResourceTransport) else None)
        self.rest = rest or (fallback if isinstance(fallback, RestResourceTransport) else None)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        pool: SessionPool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> ResourceGateway:
        """Build the MCP-with-REST-fallback gateway; unconfigured when no token is set."""
        token = settings.api_token
        if token is None:
            return cls(None)

        pool = pool or SessionPool.from_settings(settings, http_client=http_client)
        mcp = McpResourceTransport(pool, key=settings.default_session_key)
        rest = RestResourceTransport(token, settings.rest_url, http_client=http_client, timeout=settings.http_timeout)
        return cls(mcp, rest)

    @property
    def is_configured(self) -> bool:
        return self.primary is not None or self.fallback is not None

    @property
    def pool(self) -> SessionPool | None:
        return self.mcp.pool if self.mcp is not None else None

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise NotConfiguredError("Resource gateway not configured. Set RESOURCE_GATEWAY_TOKEN.")

    async def _dispatch(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        self._require_configured()
        transports = [t for t in (self.primary, self.fallback) if t is not None]

        for index, transport in enumerate(transports):
            try:
                return await getattr(transport, operation)(*args, **kwargs)
            except Exception as exc:
                if index + 1 == len(transports):
                    raise
                kind = getattr(exc, "kind", type(exc).__name__)
                logger.warning(
                    f"{operation} via {transport.name} failed ({kind}): {exc}; "
                    f"falling back to {transports[index + 1].name}"
                )

    async def discover_resources(self, query: str, limit: int = 20) -> list[ResourceType]:
        return await self._dispatch("discover_resources", query, limit)

    async def get_resource_details(self, resource_id: str) -> ResourceType:
        return await self._dispatch("get_resource_details", resource_id)

    async def start_gathering(self, resource_id: str, run_input: dict[str, Any] | None = None) -> GatheringTask:
        return await self._dispatch("start_gathering", resource_id, run_input or {})

    async def get_task_status(self, task_id: str) -> GatheringTask:
        return await self._dispatch("get_task_status", task_id)

    async def get_task_output(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]:
        return await self._dispatch("get_task_output", dataset_id, limit=limit, offset=offset)

    async def get_dataset_items(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]:
        return await self.get_task_output(dataset_id, limit=limit, offset=offset)

    async def get_task_logs(self, task_id: str) -> str:
        return await self._dispatch("get_task_logs", task_id)

    async def list_stored_resources(self) -> list[StoredResource]:
        return await self._dispatch("list_stored_resources")

    async def get_stored_resource(self, dataset_id: str) -> StoredResource:
        return await self._dispatch("get_stored_resource", dataset_id)

    async def browse_and_gather(self, query: str, max_results: int = 10) -> GatheringTask:
        return await self._dispatch("browse_and_gather", query, max_results)

    async def list_tools(self) -> list[Tool]:
        self._require_configured()
        if self.mcp is None:
            raise NotConfiguredError("MCP transport not configured")
        return await self.mcp.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolInvocationResult:
        self._require_configured()
        if self.mcp is None:
            raise NotConfiguredError("MCP transport not configured")
        return await self.mcp.call_tool(name, arguments)

    async def list_key_value_stores(self) -> list[Any]:
        self._require_configured()
        if self.rest is None:
            raise NotConfiguredError("REST transport not configured")
        return await self.rest.list_key_value_stores()

    async def get_stored_value(self, store_id: str, key: str) -> Any:
        self._require_configured()
        if self.rest is None:
            raise NotConfiguredError("REST transport not configured")
        return await self.rest.get_stored_value(store_id, key)

    async def aclose(self) -> None:
        if self.pool is not None:
            await self.pool.close_all()
        if self.rest is not None:
            await self.rest.aclose()
