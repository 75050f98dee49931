from typing import ClassVar

from salvager.types.json_rpc import INTERNAL_ERROR, ErrorData
from salvager.types.tools import ErrorKind, ToolInvocationResult


class SalvagerError(Exception):
    """Base error for Salvager."""

    kind: ClassVar[ErrorKind]


class NotConfiguredError(SalvagerError):
    """Raised when no API token is available, before any network call is made."""

    kind = "not_configured"


class TransportError(SalvagerError):
    """HTTP-level failure: a non-2xx status or a network error.

    Never retried internally. ``status_code`` is ``None`` for network failures.
    """

    kind = "transport"

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class HandshakeError(SalvagerError):
    """No session id could be obtained from the ``initialize`` exchange."""

    kind = "handshake"


class ProtocolError(SalvagerError):
    """The response body could not be decoded into a JSON-RPC envelope."""

    kind = "protocol"


class RemoteToolError(SalvagerError):
    """Raised when the remote peer answers with a JSON-RPC ``error`` member.

    Attributes:
        error: The ErrorData received from the peer
        session_id: Session id learned from the same response, if any. The
            server may communicate the id only through an error response.
    """

    kind = "remote_tool"

    error: ErrorData

    def __init__(self, error: ErrorData, session_id: str | None = None):
        super().__init__(error.message)
        self.error = error
        self.session_id = session_id


_ERRORS_BY_KIND: dict[str, type[SalvagerError]] = {
    cls.kind: cls for cls in (NotConfiguredError, TransportError, HandshakeError, ProtocolError)
}


def raise_for_result(result: ToolInvocationResult) -> None:
    """Raise the typed exception matching a failed tool result; no-op on success."""
    if result.success:
        return
    message = f"{result.tool}: {result.error}"
    if result.error_kind == "remote_tool" or result.error_kind is None:
        raise RemoteToolError(ErrorData(code=INTERNAL_ERROR, message=message), session_id=result.session_id)
    raise _ERRORS_BY_KIND[result.error_kind](message)
