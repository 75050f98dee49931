"""Tests for the JSON-RPC / SSE response codec."""

import json

import pytest

from salvager.shared.codec import (
    SESSION_ID_EXTRACTORS,
    ResponseContext,
    decode_response,
    encode_notification,
    encode_request,
    extract_payload,
    extract_session_id,
    iter_sse_data,
    parse_sse_frames,
    session_id_from_body_meta,
    session_id_from_header,
    session_id_from_sse_frames,
)
from salvager.shared.exceptions import ProtocolError, RemoteToolError
from salvager.types.json_rpc import INTERNAL_ERROR, METHOD_NOT_FOUND
from salvager.types.tools import ParsedJson, RawText
from tests.test_helpers import sse_body

SSE = "text/event-stream"
JSON = "application/json"


def envelope(result: dict, request_id: int = 1) -> dict:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


class TestEncoding:
    def test_request_defaults_to_empty_params(self):
        request = encode_request(7, "tools/list")
        assert request.model_dump(exclude_none=True) == {
            "jsonrpc": "2.0",
            "id": 7,
            "method": "tools/list",
            "params": {},
        }

    def test_notification_has_no_id(self):
        notification = encode_notification("notifications/initialized")
        dumped = notification.model_dump(exclude_none=True)
        assert "id" not in dumped
        assert dumped["method"] == "notifications/initialized"


class TestSseParsing:
    def test_only_data_lines_are_frames(self):
        body = "event: message\nid: 1\ndata: {\"a\": 1}\n\n: comment\ndata:{\"b\": 2}\n"
        assert list(iter_sse_data(body)) == ['{"a": 1}', '{"b": 2}']

    def test_malformed_frames_are_skipped(self):
        body = sse_body("not json", "[1, 2]", {"ok": True})
        assert parse_sse_frames(body) == [{"ok": True}]


class TestDecodeResponse:
    def test_plain_json(self):
        decoded = decode_response(json.dumps(envelope({"tools": []})), JSON)
        assert decoded.result == {"tools": []}
        assert decoded.session_id is None

    def test_last_sse_frame_is_authoritative(self):
        body = sse_body(envelope({"step": 1}), "garbage", envelope({"step": 3}))
        decoded = decode_response(body, f"{SSE}; charset=utf-8")
        assert decoded.result == {"step": 3}

    def test_only_last_of_three_frames_valid(self):
        body = sse_body("{broken", "also broken", envelope({"content": []}))
        assert decode_response(body, SSE).result == {"content": []}

    def test_sse_without_valid_frames(self):
        with pytest.raises(ProtocolError, match="No valid response in SSE stream"):
            decode_response(sse_body("nope", "still nope"), SSE)

    def test_invalid_json_body(self):
        with pytest.raises(ProtocolError):
            decode_response("<html>Bad Gateway</html>", JSON)

    def test_non_object_json_body(self):
        with pytest.raises(ProtocolError):
            decode_response("[1, 2, 3]", JSON)

    def test_envelope_without_result(self):
        with pytest.raises(ProtocolError):
            decode_response(json.dumps({"jsonrpc": "2.0", "id": 1}), JSON)

    def test_error_envelope_raises_remote_tool_error(self):
        body = json.dumps({"jsonrpc": "2.0", "id": 3, "error": {"code": METHOD_NOT_FOUND, "message": "nope"}})

        with pytest.raises(RemoteToolError) as exc_info:
            decode_response(body, JSON, {"Mcp-Session-Id": "from-error"})

        assert exc_info.value.error.code == METHOD_NOT_FOUND
        assert exc_info.value.error.message == "nope"
        assert exc_info.value.session_id == "from-error"
        assert exc_info.value.kind == "remote_tool"

    def test_malformed_error_member_keeps_its_text(self):
        body = json.dumps({"jsonrpc": "2.0", "id": 3, "error": "server exploded"})

        with pytest.raises(RemoteToolError) as exc_info:
            decode_response(body, JSON)

        assert exc_info.value.error.code == INTERNAL_ERROR
        assert "server exploded" in exc_info.value.error.message


class TestSessionIdExtraction:
    def test_extractor_order(self):
        assert SESSION_ID_EXTRACTORS == (
            session_id_from_header,
            session_id_from_body_meta,
            session_id_from_sse_frames,
        )

    def test_header_wins_over_body(self):
        body = json.dumps(envelope({"_meta": {"sessionId": "from-body"}}))
        decoded = decode_response(body, JSON, {"Mcp-Session-Id": "from-header"})
        assert decoded.session_id == "from-header"

    def test_header_lookup_is_case_insensitive(self):
        ctx = ResponseContext(headers={"MCP-SESSION-ID": "upper"}, envelope={})
        assert extract_session_id(ctx) == "upper"

    def test_body_meta(self):
        body = json.dumps(envelope({"_meta": {"sessionId": "from-body"}}))
        assert decode_response(body, JSON).session_id == "from-body"

    def test_earlier_sse_frame(self):
        body = sse_body(
            {"jsonrpc": "2.0", "method": "notifications/progress", "result": {"_meta": {"sessionId": "early"}}},
            envelope({"serverInfo": {"name": "x"}}),
        )
        decoded = decode_response(body, SSE)
        assert decoded.session_id == "early"
        assert decoded.result == {"serverInfo": {"name": "x"}}

    def test_latest_sse_frame_first(self):
        frames = [
            {"result": {"_meta": {"sessionId": "first"}}},
            {"result": {"_meta": {"sessionId": "second"}}},
            {"result": {}},
        ]
        ctx = ResponseContext(headers={}, envelope=frames[-1], frames=frames)
        assert session_id_from_sse_frames(ctx) == "second"

    def test_none_found(self):
        ctx = ResponseContext(headers={"content-type": JSON}, envelope=envelope({}))
        assert extract_session_id(ctx) is None

    def test_custom_extractors(self):
        ctx = ResponseContext(headers={"mcp-session-id": "header"}, envelope=envelope({}))
        assert extract_session_id(ctx, [lambda _: "custom", session_id_from_header]) == "custom"


class TestExtractPayload:
    def test_json_text_is_parsed(self):
        result = {"content": [{"type": "text", "text": '{"a": 1}'}]}
        assert extract_payload(result) == ParsedJson({"a": 1})

    def test_text_blocks_joined_with_newline(self):
        result = {
            "content": [
                {"type": "text", "text": '{"items":'},
                {"type": "image", "data": "...", "mimeType": "image/png"},
                {"type": "text", "text": "[1, 2]}"},
            ]
        }
        assert extract_payload(result) == ParsedJson({"items": [1, 2]})

    def test_plain_text_falls_back_to_raw(self):
        result = {"content": [{"type": "text", "text": "line one"}, {"type": "text", "text": "line two"}]}
        payload = extract_payload(result)
        assert payload == RawText("line one\nline two")
        assert payload.value == "line one\nline two"

    def test_result_without_text_is_verbatim(self):
        result = {"content": [], "structuredContent": {"runId": "r1"}}
        assert extract_payload(result) == ParsedJson(result)

    def test_json_scalar(self):
        assert extract_payload({"content": [{"type": "text", "text": "42"}]}) == ParsedJson(42)
