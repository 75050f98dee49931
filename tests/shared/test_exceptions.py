import pytest

from salvager.shared.exceptions import (
    HandshakeError,
    NotConfiguredError,
    ProtocolError,
    RemoteToolError,
    TransportError,
    raise_for_result,
)
from salvager.types.json_rpc import INTERNAL_ERROR
from salvager.types.tools import ParsedJson, ToolInvocationResult


def test_every_error_has_a_kind():
    assert NotConfiguredError.kind == "not_configured"
    assert TransportError.kind == "transport"
    assert HandshakeError.kind == "handshake"
    assert ProtocolError.kind == "protocol"
    assert RemoteToolError.kind == "remote_tool"


def test_transport_error_keeps_status_and_body():
    exc = TransportError("boom", status_code=502, body="Bad Gateway")
    assert str(exc) == "boom"
    assert exc.status_code == 502
    assert exc.body == "Bad Gateway"


def test_raise_for_result_passes_success():
    raise_for_result(ToolInvocationResult(success=True, tool="search-actors", payload=ParsedJson([])))


@pytest.mark.parametrize(
    ("kind", "error_type"),
    [
        ("transport", TransportError),
        ("protocol", ProtocolError),
        ("handshake", HandshakeError),
        ("not_configured", NotConfiguredError),
    ],
)
def test_raise_for_result_maps_kind(kind, error_type):
    result = ToolInvocationResult(success=False, tool="get-actor-run", error="it broke", error_kind=kind)

    with pytest.raises(error_type, match="get-actor-run: it broke"):
        raise_for_result(result)


def test_raise_for_result_remote_tool():
    result = ToolInvocationResult(
        success=False, tool="call-actor", error="Actor not found", error_kind="remote_tool", session_id="s1"
    )

    with pytest.raises(RemoteToolError) as exc_info:
        raise_for_result(result)

    assert exc_info.value.error.code == INTERNAL_ERROR
    assert exc_info.value.session_id == "s1"


def test_result_to_json():
    result = ToolInvocationResult(success=True, tool="search-actors", payload=ParsedJson({"a": 1}), elapsed=0.5)
    assert result.to_json() == {
        "success": True,
        "tool": "search-actors",
        "result": {"a": 1},
        "error": None,
        "kind": None,
        "elapsed": 0.5,
    }
