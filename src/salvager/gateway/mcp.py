"""Resource transport backed by the pooled MCP session."""

import logging
from typing import Any, Final

from salvager.client.session_pool import DEFAULT_SESSION_KEY, SessionPool
from salvager.gateway.base import (
    RAG_WEB_BROWSER,
    extract_items,
    extract_record,
    resource_from_actor,
    stored_resource_from_dataset,
    task_from_run,
)
from salvager.shared.exceptions import ProtocolError, raise_for_result
from salvager.types.gateway import GatheringTask, ResourceType, StoredResource
from salvager.types.tools import Tool, ToolInvocationResult

logger = logging.getLogger(__name__)

SEARCH_ACTORS: Final[str] = "search-actors"
FETCH_ACTOR_DETAILS: Final[str] = "fetch-actor-details"
CALL_ACTOR: Final[str] = "call-actor"
GET_ACTOR_RUN: Final[str] = "get-actor-run"
GET_ACTOR_OUTPUT: Final[str] = "get-actor-output"
GET_ACTOR_LOG: Final[str] = "get-actor-log"
GET_DATASET_LIST: Final[str] = "get-dataset-list"
GET_DATASET: Final[str] = "get-dataset"


class McpResourceTransport:
    """Maps gateway operations onto remote MCP tools, one pooled session per key."""

    name = "mcp"

    def __init__(self, pool: SessionPool, key: str = DEFAULT_SESSION_KEY) -> None:
        self.pool = pool
        self.key = key

    async def list_tools(self) -> list[Tool]:
        async with self.pool.session(self.key) as client:
            return await client.list_tools()

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolInvocationResult:
        async with self.pool.session(self.key) as client:
            result = await client.call_tool(name, arguments)
            if not result.success and result.error_kind == "transport":
                # The session may be gone server-side; callers queued on it move to a fresh one
                await self.pool.close_session(self.key, client)
        return result

    async def _call(self, name: str, arguments: dict[str, Any]) -> Any:
        result = await self.call_tool(name, arguments)
        raise_for_result(result)
        return result.data

    async def discover_resources(self, query: str, limit: int = 20) -> list[ResourceType]:
        data = await self._call(SEARCH_ACTORS, {"search": query, "limit": limit})
        return [resource_from_actor(actor) for actor in extract_items(data)[:limit]]

    async def get_resource_details(self, resource_id: str) -> ResourceType:
        data = await self._call(FETCH_ACTOR_DETAILS, {"actorId": resource_id})
        record = dict(extract_record(data, "actor"))
        record.setdefault("fullName", resource_id)
        return resource_from_actor(record)

    async def start_gathering(self, resource_id: str, run_input: dict[str, Any]) -> GatheringTask:
        data = await self._call(CALL_ACTOR, {"actorId": resource_id, "input": run_input})
        return task_from_run(extract_record(data, "run"))

    async def get_task_status(self, task_id: str) -> GatheringTask:
        data = await self._call(GET_ACTOR_RUN, {"runId": task_id})
        return task_from_run(extract_record(data, "run"))

    async def get_task_output(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]:
        data = await self._call(GET_ACTOR_OUTPUT, {"datasetId": dataset_id, "limit": limit, "offset": offset})
        return extract_items(data)

    async def get_task_logs(self, task_id: str) -> str:
        data = await self._call(GET_ACTOR_LOG, {"runId": task_id})
        if not isinstance(data, str):
            raise ProtocolError(f"Expected log text, got {type(data).__name__}")
        return data

    async def list_stored_resources(self) -> list[StoredResource]:
        data = await self._call(GET_DATASET_LIST, {})
        return [stored_resource_from_dataset(dataset) for dataset in extract_items(data)]

    async def get_stored_resource(self, dataset_id: str) -> StoredResource:
        data = await self._call(GET_DATASET, {"datasetId": dataset_id})
        return stored_resource_from_dataset(extract_record(data, "dataset"))

    async def browse_and_gather(self, query: str, max_results: int = 10) -> GatheringTask:
        return await self.start_gathering(RAG_WEB_BROWSER, {"query": query, "maxResults": max_results})
