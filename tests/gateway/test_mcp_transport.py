"""Tests for the MCP resource transport mapping gateway operations onto remote tools."""

from typing import Any

import anyio
import httpx
import pytest

from salvager.client.session import McpSessionClient
from salvager.client.session_pool import SessionPool
from salvager.gateway.mcp import McpResourceTransport
from salvager.shared.exceptions import ProtocolError, RemoteToolError, TransportError
from salvager.types.tools import ToolInvocationResult
from tests.test_helpers import MCP_URL, TOKEN, FakeMcpServer, text_result


@pytest.fixture
def pool(mcp_http_client: httpx.AsyncClient) -> SessionPool:
    return SessionPool(
        lambda token: McpSessionClient(token, MCP_URL, http_client=mcp_http_client),
        default_token=TOKEN,
    )


@pytest.fixture
def transport(pool: SessionPool) -> McpResourceTransport:
    return McpResourceTransport(pool)


def recording(calls: list[dict[str, Any]], value: Any):
    def handler(arguments: dict[str, Any]) -> dict[str, Any]:
        calls.append(arguments)
        return text_result(value)

    return handler


@pytest.mark.anyio
async def test_discover_resources(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    calls: list[dict[str, Any]] = []
    mcp_server.tools["search-actors"] = recording(
        calls,
        [
            {"fullName": "apify/instagram-scraper", "title": "Instagram Scraper", "categories": ["SOCIAL_MEDIA"]},
            {"username": "apify", "name": "tiktok-scraper"},
            {"fullName": "apify/extra"},
        ],
    )

    resources = await transport.discover_resources("social", limit=2)

    assert calls == [{"search": "social", "limit": 2}]
    assert [r.id for r in resources] == ["apify/instagram-scraper", "apify/tiktok-scraper"]
    assert resources[0].category == "SOCIAL_MEDIA"
    assert resources[1].category == "general"


@pytest.mark.anyio
async def test_resource_details_nested_actor(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["fetch-actor-details"] = lambda args: text_result(
        {"actor": {"title": "Web Scraper", "inputSchema": {"type": "object"}}}
    )

    resource = await transport.get_resource_details("apify/web-scraper")

    assert resource.id == "apify/web-scraper"
    assert resource.name == "Web Scraper"
    assert resource.input_schema == {"type": "object"}


@pytest.mark.anyio
async def test_start_gathering(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    calls: list[dict[str, Any]] = []
    mcp_server.tools["call-actor"] = recording(calls, {"runId": "r1", "status": "RUNNING", "defaultDatasetId": "d1"})

    task = await transport.start_gathering("demo/actor", {"q": "x"})

    assert calls == [{"actorId": "demo/actor", "input": {"q": "x"}}]
    assert (task.id, task.status, task.dataset_id) == ("r1", "running", "d1")


@pytest.mark.anyio
async def test_get_task_status(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["get-actor-run"] = lambda args: text_result(
        {"run": {"id": args["runId"], "status": "SUCCEEDED", "stats": {"itemCount": 4}}}
    )

    task = await transport.get_task_status("r7")

    assert task.id == "r7"
    assert task.status == "completed"
    assert task.item_count == 4


@pytest.mark.anyio
async def test_get_task_output(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    calls: list[dict[str, Any]] = []
    mcp_server.tools["get-actor-output"] = recording(calls, {"items": [{"url": "https://example.com"}]})

    items = await transport.get_task_output("d1", limit=10, offset=20)

    assert items == [{"url": "https://example.com"}]
    assert calls == [{"datasetId": "d1", "limit": 10, "offset": 20}]


@pytest.mark.anyio
async def test_get_task_logs(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["get-actor-log"] = lambda args: text_result("INFO crawled 3 pages")

    assert await transport.get_task_logs("r1") == "INFO crawled 3 pages"


@pytest.mark.anyio
async def test_get_task_logs_rejects_structured_output(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["get-actor-log"] = lambda args: text_result({"log": "nope"})

    with pytest.raises(ProtocolError):
        await transport.get_task_logs("r1")


@pytest.mark.anyio
async def test_stored_resources(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["get-dataset-list"] = lambda args: text_result({"datasets": [{"id": "d1", "itemCount": 2}]})
    mcp_server.tools["get-dataset"] = lambda args: text_result({"dataset": {"id": args["datasetId"], "name": "x"}})

    listing = await transport.list_stored_resources()
    dataset = await transport.get_stored_resource("d2")

    assert [d.id for d in listing] == ["d1"]
    assert (dataset.id, dataset.name) == ("d2", "x")


@pytest.mark.anyio
async def test_browse_and_gather(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    calls: list[dict[str, Any]] = []
    mcp_server.tools["call-actor"] = recording(calls, {"id": "r2", "status": "READY"})

    task = await transport.browse_and_gather("anyio docs", max_results=5)

    assert calls == [{"actorId": "apify/rag-web-browser", "input": {"query": "anyio docs", "maxResults": 5}}]
    assert task.status == "pending"


@pytest.mark.anyio
async def test_remote_failure_raises(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["get-actor-run"] = lambda args: {**text_result("Run not found"), "isError": True}

    with pytest.raises(RemoteToolError, match="get-actor-run: Run not found"):
        await transport.get_task_status("missing")


@pytest.mark.anyio
async def test_transport_failure_rotates_session(
    transport: McpResourceTransport, pool: SessionPool, mcp_server: FakeMcpServer
):
    mcp_server.tools["get-actor-run"] = lambda args: httpx.Response(404, text="Session not found")

    with pytest.raises(TransportError):
        await transport.get_task_status("r1")
    assert "default" not in pool

    mcp_server.tools["get-actor-run"] = lambda args: text_result({"id": "r1", "status": "RUNNING"})
    task = await transport.get_task_status("r1")

    assert task.status == "running"
    assert mcp_server.count("initialize") == 2


@pytest.mark.anyio
async def test_call_tool_returns_failures(transport: McpResourceTransport):
    result = await transport.call_tool("no-such-tool", {})

    assert result.success is False
    assert result.error_kind == "remote_tool"


@pytest.mark.anyio
async def test_list_tools(transport: McpResourceTransport, mcp_server: FakeMcpServer):
    mcp_server.tools["search-actors"] = lambda args: text_result([])

    tools = await transport.list_tools()

    assert [t.name for t in tools] == ["search-actors"]


@pytest.mark.anyio
async def test_queued_caller_moves_to_fresh_session(
    transport: McpResourceTransport, pool: SessionPool, mcp_server: FakeMcpServer
):
    answered: list[str] = []

    def flaky(arguments: dict[str, Any]) -> Any:
        answered.append(arguments["n"])
        if len(answered) == 1:
            return httpx.Response(504, text="Gateway Timeout")
        return text_result({"ok": True})

    mcp_server.tools["flaky"] = flaky
    results: list[ToolInvocationResult] = []

    async def call(n: str) -> None:
        results.append(await transport.call_tool("flaky", {"n": n}))

    async with anyio.create_task_group() as tg:
        tg.start_soon(call, "a")
        tg.start_soon(call, "b")

    assert sorted((r.success, r.error_kind) for r in results) == [(False, "transport"), (True, None)]
    assert mcp_server.count("initialize") == 2
    assert pool.active_session_count == 1
