"""
Protocol message codec for the MCP-over-HTTP endpoint.

Encodes JSON-RPC 2.0 envelopes and decodes responses that arrive either as a
single JSON document or as a Server-Sent-Events stream of ``data:`` frames.

The server may communicate the session id in three places. They are checked
in order, first hit wins:

1. the ``Mcp-Session-Id`` response header
2. ``result._meta.sessionId`` of the decoded envelope
3. the same field inside any SSE frame of the stream (latest frame first)
"""

import json
import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from pydantic import ValidationError

from salvager.shared.exceptions import ProtocolError, RemoteToolError
from salvager.types.json_rpc import (
    INTERNAL_ERROR,
    ErrorData,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResultResponse,
    RequestId,
)
from salvager.types.tools import ParsedJson, RawText, ToolPayload

logger = logging.getLogger(__name__)

MCP_SESSION_ID: Final[str] = "mcp-session-id"
CONTENT_TYPE: Final[str] = "content-type"
ACCEPT: Final[str] = "accept"

JSON: Final[str] = "application/json"
SSE: Final[str] = "text/event-stream"

SSE_DATA_PREFIX: Final[str] = "data:"


def encode_request(request_id: RequestId, method: str, params: dict[str, Any] | None = None) -> JSONRPCRequest:
    return JSONRPCRequest(id=request_id, method=method, params=params if params is not None else {})


def encode_notification(method: str, params: dict[str, Any] | None = None) -> JSONRPCNotification:
    return JSONRPCNotification(method=method, params=params if params is not None else {})


def is_event_stream(content_type: str | None) -> bool:
    return content_type is not None and SSE in content_type.lower()


def iter_sse_data(body: str) -> Iterator[str]:
    """Yield the payload of every ``data:`` line in an SSE body.

    Each line is treated as a complete frame; multi-line events are not joined.
    """
    for line in body.splitlines():
        if not line.startswith(SSE_DATA_PREFIX):
            continue
        value = line[len(SSE_DATA_PREFIX) :]
        # A single leading space after the colon is not part of the value
        if value.startswith(" "):
            value = value[1:]
        yield value


def parse_sse_frames(body: str) -> list[dict[str, Any]]:
    """Parse every ``data:`` line as JSON, silently skipping lines that are not JSON objects."""
    frames: list[dict[str, Any]] = []
    for data in iter_sse_data(body):
        try:
            frame = json.loads(data)
        except ValueError:
            logger.debug(f"Skipping non-JSON SSE frame: {data[:80]!r}")
            continue
        if isinstance(frame, dict):
            frames.append(frame)
    return frames


def parse_json_document(body: str) -> dict[str, Any]:
    try:
        document = json.loads(body)
    except ValueError as exc:
        raise ProtocolError(f"Response body is not valid JSON: {body[:200]!r}") from exc
    if not isinstance(document, dict):
        raise ProtocolError(f"Expected a JSON-RPC object, got {type(document).__name__}")
    return document


@dataclass
class ResponseContext:
    """Everything a session-id extractor may look at for one HTTP response."""

    headers: Mapping[str, str]
    envelope: dict[str, Any]
    """The authoritative (last) JSON-RPC envelope."""
    frames: Sequence[dict[str, Any]] = field(default_factory=list)
    """Every parsed SSE frame in arrival order; empty for plain JSON responses."""


SessionIdExtractor = Callable[[ResponseContext], str | None]


def _meta_session_id(envelope: Mapping[str, Any]) -> str | None:
    result = envelope.get("result")
    if not isinstance(result, dict):
        return None
    meta = result.get("_meta")
    if not isinstance(meta, dict):
        return None
    session_id = meta.get("sessionId")
    return session_id if isinstance(session_id, str) and session_id else None


def session_id_from_header(ctx: ResponseContext) -> str | None:
    for name, value in ctx.headers.items():
        if name.lower() == MCP_SESSION_ID and value:
            return value
    return None


def session_id_from_body_meta(ctx: ResponseContext) -> str | None:
    return _meta_session_id(ctx.envelope)


def session_id_from_sse_frames(ctx: ResponseContext) -> str | None:
    for frame in reversed(ctx.frames):
        session_id = _meta_session_id(frame)
        if session_id:
            return session_id
    return None


SESSION_ID_EXTRACTORS: Final[tuple[SessionIdExtractor, ...]] = (
    session_id_from_header,
    session_id_from_body_meta,
    session_id_from_sse_frames,
)


def extract_session_id(
    ctx: ResponseContext,
    extractors: Sequence[SessionIdExtractor] = SESSION_ID_EXTRACTORS,
) -> str | None:
    for extractor in extractors:
        session_id = extractor(ctx)
        if session_id:
            return session_id
    return None


@dataclass
class DecodedResponse:
    """A successful JSON-RPC response together with any session id it carried."""

    response: JSONRPCResultResponse
    session_id: str | None = None

    @property
    def result(self) -> dict[str, Any]:
        return self.response.result


def _error_data(error: Any) -> ErrorData:
    try:
        return ErrorData.model_validate(error)
    except ValidationError:
        return ErrorData(code=INTERNAL_ERROR, message=str(error))


def decode_response(
    body: str,
    content_type: str | None,
    headers: Mapping[str, str] | None = None,
) -> DecodedResponse:
    """Decode one HTTP response body into a JSON-RPC result.

    For event streams the last successfully parsed frame is authoritative; the
    earlier frames are incremental and only consulted for the session id.

    Raises:
        ProtocolError: If no JSON-RPC envelope can be parsed from the body.
        RemoteToolError: If the envelope carries an ``error`` member.
    """
    if is_event_stream(content_type):
        frames = parse_sse_frames(body)
        if not frames:
            raise ProtocolError("No valid response in SSE stream")
        envelope = frames[-1]
    else:
        frames = []
        envelope = parse_json_document(body)

    session_id = extract_session_id(ResponseContext(headers=headers or {}, envelope=envelope, frames=frames))

    if envelope.get("error") is not None:
        raise RemoteToolError(_error_data(envelope["error"]), session_id=session_id)

    try:
        response = JSONRPCResultResponse.model_validate(envelope)
    except ValidationError as exc:
        raise ProtocolError(f"Invalid JSON-RPC response: {exc.error_count()} validation error(s)") from exc

    return DecodedResponse(response=response, session_id=session_id)


def extract_payload(tool_result: Mapping[str, Any]) -> ToolPayload:
    """Unwrap the text content blocks of a ``tools/call`` result.

    Text blocks are joined with newlines (order preserved) and parsed once as
    JSON. Returns ``ParsedJson`` on success, ``RawText`` otherwise. A result
    without text blocks is returned verbatim as ``ParsedJson``.
    """
    content = tool_result.get("content")
    texts: list[str] = []
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str):
                if block["text"]:
                    texts.append(block["text"])

    if not texts:
        return ParsedJson(dict(tool_result))

    joined = "\n".join(texts)
    try:
        return ParsedJson(json.loads(joined))
    except ValueError:
        return RawText(joined)
