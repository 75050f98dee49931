"""Resource transport talking to the platform's conventional REST API (v2)."""

import logging
from typing import Any

import httpx

from salvager.gateway.base import (
    RAG_WEB_BROWSER,
    extract_items,
    extract_record,
    resource_from_actor,
    stored_resource_from_dataset,
    task_from_run,
)
from salvager.settings import DEFAULT_REST_URL
from salvager.shared.exceptions import ProtocolError, TransportError
from salvager.shared.httpx_utils import create_http_client
from salvager.types.gateway import GatheringTask, ResourceType, StoredResource

logger = logging.getLogger(__name__)


def actor_path_id(resource_id: str) -> str:
    """``username/name`` becomes ``username~name`` in REST paths."""
    return resource_id.replace("/", "~")


class RestResourceTransport:
    """Stateless REST client; every call is one authenticated HTTPS request."""

    name = "rest"

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_REST_URL,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client(timeout=self._timeout)
        return self._http_client

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        logger.info(f"{method} {endpoint}")
        try:
            response = await self._client().request(
                method,
                f"{self.base_url}{endpoint}",
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"REST request {method} {endpoint} failed: {exc}") from exc

        if not response.is_success:
            body = response.text
            logger.error(f"REST error {response.status_code}: {body[:500]}")
            raise TransportError(
                f"REST API error: {response.status_code} - {body[:500]}",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def _json(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        response = await self._request(method, endpoint, **kwargs)
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(f"REST response from {endpoint} is not JSON") from exc

    async def discover_resources(self, query: str, limit: int = 20) -> list[ResourceType]:
        body = await self._json("GET", "/store", params={"search": query, "limit": limit})
        return [resource_from_actor(actor) for actor in extract_items(body)]

    async def get_resource_details(self, resource_id: str) -> ResourceType:
        path_id = actor_path_id(resource_id)
        actor = dict(extract_record(await self._json("GET", f"/acts/{path_id}")))

        try:
            input_schema = await self._json("GET", f"/acts/{path_id}/input-schema")
        except TransportError as exc:
            # Not every actor publishes an input schema
            logger.debug(f"No input schema for {resource_id}: {exc}")
            input_schema = None

        actor["fullName"] = resource_id
        actor.pop("username", None)
        actor["inputSchema"] = input_schema or actor.get("defaultRunOptions")
        return resource_from_actor(actor)

    async def start_gathering(self, resource_id: str, run_input: dict[str, Any]) -> GatheringTask:
        body = await self._json("POST", f"/acts/{actor_path_id(resource_id)}/runs", json=run_input)
        return task_from_run(extract_record(body))

    async def get_task_status(self, task_id: str) -> GatheringTask:
        body = await self._json("GET", f"/actor-runs/{task_id}")
        return task_from_run(extract_record(body))

    async def get_task_output(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]:
        body = await self._json(
            "GET",
            f"/datasets/{dataset_id}/items",
            params={"limit": limit, "offset": offset, "format": "json"},
        )
        return body if isinstance(body, list) else []

    async def get_dataset_items(self, dataset_id: str, limit: int = 100, offset: int = 0) -> list[Any]:
        return await self.get_task_output(dataset_id, limit=limit, offset=offset)

    async def get_task_logs(self, task_id: str) -> str:
        response = await self._request("GET", f"/actor-runs/{task_id}/log")
        return response.text

    async def list_stored_resources(self) -> list[StoredResource]:
        body = await self._json("GET", "/datasets")
        return [stored_resource_from_dataset(dataset) for dataset in extract_items(body)]

    async def get_stored_resource(self, dataset_id: str) -> StoredResource:
        body = await self._json("GET", f"/datasets/{dataset_id}")
        return stored_resource_from_dataset(extract_record(body))

    async def browse_and_gather(self, query: str, max_results: int = 10) -> GatheringTask:
        return await self.start_gathering(RAG_WEB_BROWSER, {"query": query, "maxResults": max_results})

    async def list_key_value_stores(self) -> list[Any]:
        return extract_items(await self._json("GET", "/key-value-stores"))

    async def get_stored_value(self, store_id: str, key: str) -> Any:
        response = await self._request("GET", f"/key-value-stores/{store_id}/records/{key}")
        try:
            return response.json()
        except ValueError:
            return response.text

    async def aclose(self) -> None:
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
