import httpx
import pytest

from tests.test_helpers import FakeMcpServer


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def mcp_server() -> FakeMcpServer:
    return FakeMcpServer()


@pytest.fixture
def mcp_http_client(mcp_server: FakeMcpServer) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(mcp_server))
