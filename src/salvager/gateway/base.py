"""Transport-agnostic vocabulary shared by every resource transport."""

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Final, Protocol

from salvager.shared.exceptions import ProtocolError
from salvager.types.gateway import GatheringTask, ResourceType, StoredResource, TaskStatus

RAG_WEB_BROWSER: Final[str] = "apify/rag-web-browser"

_STATUS_MAP: Final[dict[str, TaskStatus]] = {
    "SUCCEEDED": TaskStatus.COMPLETED,
    "FAILED": TaskStatus.FAILED,
    "ABORTED": TaskStatus.FAILED,
    "TIMED-OUT": TaskStatus.FAILED,
    "RUNNING": TaskStatus.RUNNING,
}


def map_status(status: Any) -> TaskStatus:
    """Map a remote run status onto the four task states.

    Total: anything unrecognized, including READY and the transitional
    ABORTING/TIMING-OUT states, is pending.
    """
    if not isinstance(status, str):
        return TaskStatus.PENDING
    return _STATUS_MAP.get(status.strip().upper(), TaskStatus.PENDING)


class ResourceTransport(Protocol):
    """One way of reaching the remote platform (MCP session pool or REST API)."""

    name: str

    async def discover_resources(self, query: str, limit: int = 20) -> list[ResourceType]: ...

    async def get_resource_details(self, resource_id: str) -> ResourceType: ...

    async def start_gathering(self, resource_id: str, run_input: dict[str, Any]) -> GatheringTask: ...

    async def get_task_status(self, task_id: str) -> GatheringTask: ...

    async def get_task_output(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]: ...

    async def get_task_logs(self, task_id: str) -> str: ...

    async def list_stored_resources(self) -> list[StoredResource]: ...

    async def get_stored_resource(self, dataset_id: str) -> StoredResource: ...

    async def browse_and_gather(self, query: str, max_results: int = 10) -> GatheringTask: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def unwrap_data(payload: Any) -> Any:
    """Strip the ``{"data": ...}`` envelope the REST API (and some tools) wrap records in."""
    if isinstance(payload, Mapping) and "data" in payload and isinstance(payload["data"], (Mapping, list)):
        return payload["data"]
    return payload


def extract_items(payload: Any) -> list[Any]:
    """Find the list of records in a listing response."""
    payload = unwrap_data(payload)
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        for key in ("items", "actors", "datasets"):
            if isinstance(payload.get(key), list):
                return payload[key]
    raise ProtocolError(f"Expected a list of records, got {type(payload).__name__}")


def extract_record(payload: Any, *nested_keys: str) -> Mapping[str, Any]:
    payload = unwrap_data(payload)
    if isinstance(payload, Mapping):
        for key in nested_keys:
            if isinstance(payload.get(key), Mapping):
                return payload[key]
        return payload
    raise ProtocolError(f"Expected a record, got {type(payload).__name__}")


def resource_from_actor(actor: Mapping[str, Any]) -> ResourceType:
    if actor.get("username") and actor.get("name"):
        resource_id = f"{actor['username']}/{actor['name']}"
    else:
        resource_id = actor.get("fullName") or actor.get("actorId") or actor.get("id") or actor.get("name")
    if not resource_id:
        raise ProtocolError("Actor record without an identifier")

    categories = actor.get("categories") or []
    return ResourceType(
        id=str(resource_id),
        name=actor.get("title") or actor.get("name") or str(resource_id),
        description=actor.get("description") or "",
        category=categories[0] if categories else "general",
        input_schema=actor.get("inputSchema"),
    )


def task_from_run(run: Mapping[str, Any]) -> GatheringTask:
    run_id = run.get("id") or run.get("runId")
    if not run_id:
        raise ProtocolError("Run record without an id")

    stats = run.get("stats")
    item_count = run.get("itemCount")
    if item_count is None and isinstance(stats, Mapping):
        item_count = stats.get("itemCount")

    status = map_status(run.get("status"))
    return GatheringTask(
        id=str(run_id),
        status=status,
        created_at=run.get("startedAt") or run.get("createdAt") or _now_iso(),
        completed_at=run.get("finishedAt"),
        dataset_id=run.get("defaultDatasetId") or run.get("datasetId"),
        item_count=item_count,
        error=run.get("statusMessage") if status is TaskStatus.FAILED else None,
    )


def stored_resource_from_dataset(dataset: Mapping[str, Any]) -> StoredResource:
    dataset_id = dataset.get("id") or dataset.get("datasetId")
    if not dataset_id:
        raise ProtocolError("Dataset record without an id")
    return StoredResource(
        id=str(dataset_id),
        name=dataset.get("name"),
        item_count=dataset.get("itemCount"),
        created_at=dataset.get("createdAt"),
        modified_at=dataset.get("modifiedAt"),
    )
