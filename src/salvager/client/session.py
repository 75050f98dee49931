"""
Stateful MCP client session over plain HTTP POST.

One ``McpSessionClient`` owns one logical session with one remote endpoint:

    Uninitialized -> Initializing -> Ready -> Closed

The handshake is ``initialize`` -> session id learned -> ``notifications/initialized``
-> ``tools/list``. Once the session id is known it is sent on every request both
as the ``sessionId`` query parameter and as the ``Mcp-Session-Id`` header, since
the server may honour either one.

Known gap: MCP offers no way to cancel a ``tools/call`` that has been sent. A
caller-imposed timeout (``anyio.fail_after``) only stops waiting; the remote run
may still complete, and retrying it is not idempotent.
"""

import logging
import time
from enum import Enum
from typing import Any

import anyio
import httpx

from salvager.shared.codec import (
    ACCEPT,
    CONTENT_TYPE,
    JSON,
    MCP_SESSION_ID,
    SSE,
    DecodedResponse,
    decode_response,
    encode_notification,
    encode_request,
    extract_payload,
)
from salvager.shared.exceptions import HandshakeError, ProtocolError, RemoteToolError, SalvagerError, TransportError
from salvager.shared.httpx_utils import create_http_client
from salvager.types.json_rpc import JSONRPCNotification, JSONRPCRequest
from salvager.types.tools import LATEST_PROTOCOL_VERSION, Implementation, Tool, ToolInvocationResult
from salvager.utilities.logging import redact_url

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_INFO = Implementation(name="salvager", version="1.0.0")


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


class McpSessionClient:
    """Client for one MCP session against an HTTP endpoint authenticated by API token."""

    def __init__(
        self,
        token: str,
        url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        protocol_version: str = LATEST_PROTOCOL_VERSION,
        client_info: Implementation | None = None,
        timeout: float = 30.0,
    ) -> None:
        """
        Args:
            token: API token, sent as the ``token`` query parameter.
            url: Base endpoint every JSON-RPC message is POSTed to.
            http_client: Optional shared client. When omitted the session creates
                its own and closes it in ``close()``.
            protocol_version: Protocol version announced in ``initialize``.
            client_info: Name and version announced in ``initialize``.
            timeout: Per-request timeout in seconds for an owned client.
        """
        self.url = url
        self._token = token
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._timeout = timeout
        self.protocol_version = protocol_version
        self.client_info = client_info or DEFAULT_CLIENT_INFO

        self.state = SessionState.UNINITIALIZED
        self.session_id: str | None = None
        self.server_info: dict[str, Any] | None = None
        self._message_id = 0
        self._tools: list[Tool] = []
        self._init_lock = anyio.Lock()

        self.created_at = time.time()
        self.last_used = self.created_at

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools)

    @property
    def message_count(self) -> int:
        return self._message_id

    def _next_id(self) -> int:
        self._message_id += 1
        return self._message_id

    def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = create_http_client(timeout=self._timeout)
        return self._http_client

    def _request_params(self) -> dict[str, str]:
        params = {"token": self._token}
        if self.session_id:
            params["sessionId"] = self.session_id
        return params

    def _request_headers(self) -> dict[str, str]:
        headers = {
            ACCEPT: f"{JSON}, {SSE}",
            CONTENT_TYPE: JSON,
        }
        if self.session_id:
            headers[MCP_SESSION_ID] = self.session_id
        return headers

    def _remember_session_id(self, session_id: str | None) -> None:
        if session_id and session_id != self.session_id:
            self.session_id = session_id
            logger.info(f"Received session ID: {session_id}")

    async def _post(self, message: JSONRPCRequest | JSONRPCNotification) -> httpx.Response:
        try:
            response = await self._client().post(
                self.url,
                params=self._request_params(),
                headers=self._request_headers(),
                json=message.model_dump(by_alias=True, mode="json", exclude_none=True),
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"MCP request {message.method} failed: {exc}") from exc

        logger.debug(f"{message.method} -> {response.status_code} from {redact_url(str(response.request.url))}")
        if not response.is_success:
            body = response.text
            raise TransportError(
                f"MCP request failed: {response.status_code} - {body[:500]}",
                status_code=response.status_code,
                body=body,
            )
        self.last_used = time.time()
        return response

    async def _exchange(self, request: JSONRPCRequest) -> DecodedResponse:
        response = await self._post(request)
        try:
            decoded = decode_response(response.text, response.headers.get(CONTENT_TYPE), response.headers)
        except RemoteToolError as exc:
            self._remember_session_id(exc.session_id)
            raise
        self._remember_session_id(decoded.session_id)
        return decoded

    async def _fetch_tools(self) -> list[Tool]:
        decoded = await self._exchange(encode_request(self._next_id(), "tools/list"))
        raw_tools = decoded.result.get("tools") or []
        try:
            tools = [Tool.model_validate(tool) for tool in raw_tools]
        except ValueError as exc:
            raise ProtocolError(f"Invalid tools/list result: {exc}") from exc
        logger.info(f"Discovered {len(tools)} tools")
        return tools

    def _reset(self) -> None:
        self.session_id = None
        self.server_info = None
        self._tools = []

    async def initialize(self) -> list[Tool]:
        """Perform the handshake unless the session is already ready.

        Returns:
            The tool catalogue fetched during the handshake.

        Raises:
            TransportError: A request failed or returned non-2xx. The client is
                left uninitialized and ``initialize`` may be retried.
            HandshakeError: The server never communicated a session id.
            anyio.ClosedResourceError: The session has been closed.
        """
        if self.state is SessionState.CLOSED:
            raise anyio.ClosedResourceError
        if self.is_ready:
            return self.tools

        async with self._init_lock:
            # Another caller may have finished the handshake while we waited
            if self.is_ready:
                return self.tools
            if self.state is SessionState.CLOSED:
                raise anyio.ClosedResourceError

            logger.info("Initializing MCP session")
            self.state = SessionState.INITIALIZING
            try:
                decoded = await self._exchange(
                    encode_request(
                        self._next_id(),
                        "initialize",
                        {
                            "protocolVersion": self.protocol_version,
                            "capabilities": {"tools": {}, "resources": {}},
                            "clientInfo": self.client_info.model_dump(),
                        },
                    )
                )
                if not self.session_id:
                    raise HandshakeError("No session ID returned by initialize")

                await self._post(encode_notification("notifications/initialized"))
                self._tools = await self._fetch_tools()
            except BaseException:
                self._reset()
                if self.state is SessionState.INITIALIZING:
                    self.state = SessionState.UNINITIALIZED
                raise

            server_info = decoded.result.get("serverInfo")
            self.server_info = server_info if isinstance(server_info, dict) else None
            self.state = SessionState.READY
            logger.info(f"Session {self.session_id} initialized")
        return self.tools

    async def list_tools(self) -> list[Tool]:
        """Return the server's tool catalogue, refreshing the cached copy."""
        if not self.is_ready:
            # The handshake has just fetched a fresh catalogue
            return await self.initialize()
        self._tools = await self._fetch_tools()
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> ToolInvocationResult:
        """Invoke a remote tool.

        Handshake failures raise. Anything that goes wrong after the request has
        been built (transport, undecodable body, JSON-RPC error, ``isError``
        result) is returned as a failed ``ToolInvocationResult``.
        """
        await self.initialize()

        started = time.perf_counter()
        request = encode_request(self._next_id(), "tools/call", {"name": name, "arguments": arguments or {}})
        logger.info(f"Calling tool: {name}")

        try:
            decoded = await self._exchange(request)
        except SalvagerError as exc:
            logger.warning(f"Tool {name} failed ({exc.kind}): {exc}")
            return ToolInvocationResult(
                success=False,
                tool=name,
                error=str(exc),
                error_kind=exc.kind,
                elapsed=time.perf_counter() - started,
                session_id=self.session_id,
            )

        payload = extract_payload(decoded.result)
        elapsed = time.perf_counter() - started
        if decoded.result.get("isError"):
            return ToolInvocationResult(
                success=False,
                tool=name,
                payload=payload,
                error=str(payload.value),
                error_kind="remote_tool",
                elapsed=elapsed,
                session_id=self.session_id,
            )

        logger.debug(f"Tool {name} returned in {elapsed:.3f}s")
        return ToolInvocationResult(
            success=True,
            tool=name,
            payload=payload,
            elapsed=elapsed,
            session_id=self.session_id,
        )

    async def close(self) -> None:
        """Forget the session locally. The remote side is not notified."""
        self._reset()
        self.state = SessionState.CLOSED
        if self._owns_http_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
        logger.info("Session closed")

    async def __aenter__(self) -> "McpSessionClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
