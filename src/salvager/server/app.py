"""
JSON API served to the dashboard.

Every handler talks to the ``ResourceGateway`` stored on ``app.state.gateway``.
Unconfigured deployments answer with demo data where the dashboard can still
be useful (discovery, resource details, gathering, storage listing, browsing)
and with 503 elsewhere.
"""

import contextlib
import logging
import time
import uuid
from collections.abc import AsyncIterator
from typing import Any

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from salvager.gateway.facade import ResourceGateway
from salvager.server.demo import DEMO_RESOURCES, DEMO_RESOURCES_BY_ID, search_demo_resources
from salvager.settings import Settings
from salvager.shared.exceptions import NotConfiguredError
from salvager.types.gateway import ResourceType, TaskStatus

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Resource gateway not configured. Set RESOURCE_GATEWAY_TOKEN."


def _gateway(request: Request) -> ResourceGateway:
    return request.app.state.gateway


def error_response(message: str, exc: BaseException | None = None, status_code: int = 500) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message}
    if isinstance(exc, NotConfiguredError):
        status_code = 503
    if exc is not None:
        body["details"] = str(exc)
        body["kind"] = getattr(exc, "kind", "internal")
    return JSONResponse(body, status_code=status_code)


def not_configured_response() -> JSONResponse:
    return JSONResponse({"success": False, "error": NOT_CONFIGURED, "kind": "not_configured"}, status_code=503)


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _int_value(value: Any, default: int) -> int:
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def _int_param(request: Request, name: str, default: int) -> int:
    return _int_value(request.query_params.get(name), default)


def _summary(resource: ResourceType) -> dict[str, Any]:
    return resource.model_dump(mode="json", by_alias=True, exclude={"input_schema"})


async def _discover(request: Request, query: str, limit: int) -> JSONResponse:
    gateway = _gateway(request)
    if not query:
        return JSONResponse(
            {
                "success": True,
                "resources": [_summary(r) for r in DEMO_RESOURCES[:limit]],
                "demo": not gateway.is_configured,
            }
        )

    if not gateway.is_configured:
        matches = search_demo_resources(query, limit)
        return JSONResponse({"success": True, "resources": [_summary(r) for r in matches], "demo": True})

    try:
        resources = await gateway.discover_resources(query, limit)
    except Exception as exc:
        logger.exception("Resource discovery error")
        return error_response("Failed to discover resources", exc)
    return JSONResponse({"success": True, "resources": [_summary(r) for r in resources]})


async def discover_resources_get(request: Request) -> JSONResponse:
    return await _discover(request, request.query_params.get("q", ""), _int_param(request, "limit", 20))


async def discover_resources_post(request: Request) -> JSONResponse:
    body = await _json_body(request)
    query = body.get("query")
    if not query:
        return error_response("Query is required", status_code=400)
    return await _discover(request, str(query), _int_value(body.get("limit"), 20))


async def resource_details(request: Request) -> JSONResponse:
    resource_id = request.path_params["resource_id"]
    demo = DEMO_RESOURCES_BY_ID.get(resource_id)
    if demo is not None:
        return JSONResponse({"success": True, "resource": demo.to_json(), "demo": True})

    gateway = _gateway(request)
    if not gateway.is_configured:
        return error_response("Resource not found", status_code=404)

    try:
        resource = await gateway.get_resource_details(resource_id)
    except Exception as exc:
        logger.exception("Resource details error")
        return error_response("Failed to fetch resource details", exc)
    return JSONResponse({"success": True, "resource": resource.to_json()})


async def start_gathering(request: Request) -> JSONResponse:
    body = await _json_body(request)
    resource_id = body.get("resourceId")
    if not resource_id:
        return error_response("Resource ID is required", status_code=400)

    gateway = _gateway(request)
    if not gateway.is_configured:
        demo_id = f"demo-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
        return JSONResponse(
            {
                "success": True,
                "demo": True,
                "task": {
                    "id": demo_id,
                    "status": TaskStatus.RUNNING.value,
                    "message": "Demo mode - simulating extraction. Configure RESOURCE_GATEWAY_TOKEN for real data.",
                },
            }
        )

    try:
        task = await gateway.start_gathering(str(resource_id), body.get("input") or {})
    except Exception as exc:
        logger.exception("Gathering error")
        return error_response("Failed to start gathering", exc)
    return JSONResponse({"success": True, "task": {**task.to_json(), "message": "Resource gathering initiated"}})


async def task_status(request: Request) -> JSONResponse:
    try:
        task = await _gateway(request).get_task_status(request.path_params["task_id"])
    except Exception as exc:
        logger.exception("Task status error")
        return error_response("Failed to fetch task status", exc)
    return JSONResponse({"success": True, "task": task.to_json()})


async def task_output(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return not_configured_response()

    task_id = request.path_params["task_id"]
    limit = _int_param(request, "limit", 100)
    offset = _int_param(request, "offset", 0)
    try:
        task = await gateway.get_task_status(task_id)
        if task.status != TaskStatus.COMPLETED:
            return JSONResponse({"error": "Task not completed", "status": task.status}, status_code=202)
        output = await gateway.get_task_output(task.dataset_id or task_id, limit=limit, offset=offset)
    except Exception as exc:
        logger.exception("Task output error")
        return error_response("Failed to fetch task output", exc)

    total = task.item_count if task.item_count is not None else len(output)
    return JSONResponse(
        {"success": True, "data": output, "pagination": {"limit": limit, "offset": offset, "total": total}}
    )


async def task_logs(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return not_configured_response()
    try:
        logs = await gateway.get_task_logs(request.path_params["task_id"])
    except Exception as exc:
        logger.exception("Task logs error")
        return error_response("Failed to fetch task logs", exc)
    return JSONResponse({"success": True, "logs": logs})


async def list_storage(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return JSONResponse({"success": True, "datasets": [], "message": NOT_CONFIGURED})
    try:
        datasets = await gateway.list_stored_resources()
    except Exception as exc:
        logger.exception("Storage list error")
        return error_response("Failed to list stored resources", exc)
    return JSONResponse({"success": True, "datasets": [d.to_json() for d in datasets]})


async def stored_resource(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return not_configured_response()

    dataset_id = request.path_params["dataset_id"]
    limit = _int_param(request, "limit", 100)
    offset = _int_param(request, "offset", 0)
    try:
        metadata = await gateway.get_stored_resource(dataset_id)
        items = await gateway.get_task_output(dataset_id, limit=limit, offset=offset)
    except Exception as exc:
        logger.exception("Storage fetch error")
        return error_response("Failed to fetch stored resource", exc)
    return JSONResponse(
        {
            "success": True,
            "dataset": metadata.to_json(),
            "items": items,
            "pagination": {"limit": limit, "offset": offset, "total": metadata.item_count},
        }
    )


async def _browse(request: Request, query: str | None, max_results: int) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return JSONResponse({"success": True, "results": [], "message": NOT_CONFIGURED})
    if not query:
        return error_response("Query is required", status_code=400)
    try:
        task = await gateway.browse_and_gather(query, max_results)
    except Exception as exc:
        logger.exception("Browse error")
        return error_response("Failed to browse and gather", exc)
    return JSONResponse({"success": True, "results": task.to_json()})


async def browse_get(request: Request) -> JSONResponse:
    return await _browse(request, request.query_params.get("q"), _int_param(request, "max", 10))


async def browse_post(request: Request) -> JSONResponse:
    body = await _json_body(request)
    return await _browse(request, body.get("query"), _int_value(body.get("maxResults"), 10))


async def mcp_tools(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return not_configured_response()
    try:
        tools = await gateway.list_tools()
    except Exception as exc:
        logger.exception("Failed to get MCP tools")
        return error_response("Failed to get MCP tools", exc)
    return JSONResponse(
        {
            "success": True,
            "tools": [{"name": t.name, "description": t.description} for t in tools],
            "count": len(tools),
        }
    )


async def mcp_call(request: Request) -> JSONResponse:
    gateway = _gateway(request)
    if not gateway.is_configured:
        return not_configured_response()

    body = await _json_body(request)
    tool = body.get("tool")
    if not tool:
        return error_response("Tool name is required", status_code=400)

    try:
        result = await gateway.call_tool(str(tool), body.get("args") or {})
    except Exception as exc:
        logger.exception("MCP tool call failed")
        return error_response("MCP tool call failed", exc)
    status_code = 200 if result.success else 502
    return JSONResponse(result.to_json(), status_code=status_code)


def create_app(settings: Settings | None = None, gateway: ResourceGateway | None = None) -> Starlette:
    """Build the Starlette application.

    Args:
        settings: Configuration; read from the environment when omitted.
        gateway: Pre-built gateway (tests inject one backed by mock transports).
    """
    settings = settings or Settings()
    gateway = gateway or ResourceGateway.from_settings(settings)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with contextlib.AsyncExitStack() as stack:
            if gateway.pool is not None:
                await stack.enter_async_context(gateway.pool.run())
            stack.push_async_callback(gateway.aclose)
            yield

    routes = [
        Route("/api/resources/discover", discover_resources_get, methods=["GET"]),
        Route("/api/resources/discover", discover_resources_post, methods=["POST"]),
        Route("/api/resources/{resource_id:path}", resource_details, methods=["GET"]),
        Route("/api/gather", start_gathering, methods=["POST"]),
        Route("/api/gather/{task_id}", task_status, methods=["GET"]),
        Route("/api/gather/{task_id}/output", task_output, methods=["GET"]),
        Route("/api/gather/{task_id}/logs", task_logs, methods=["GET"]),
        Route("/api/storage", list_storage, methods=["GET"]),
        Route("/api/storage/{dataset_id}", stored_resource, methods=["GET"]),
        Route("/api/browse", browse_get, methods=["GET"]),
        Route("/api/browse", browse_post, methods=["POST"]),
        Route("/api/mcp/tools", mcp_tools, methods=["GET"]),
        Route("/api/mcp/call", mcp_call, methods=["POST"]),
    ]

    app = Starlette(debug=settings.debug, routes=routes, lifespan=lifespan)
    app.state.gateway = gateway
    return app
