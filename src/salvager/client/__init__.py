from salvager.client.session import McpSessionClient, SessionState
from salvager.client.session_pool import PoolEntry, SessionPool

__all__ = ["McpSessionClient", "PoolEntry", "SessionPool", "SessionState"]
