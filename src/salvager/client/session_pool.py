"""Pool of MCP sessions keyed by a logical name (per user, or one shared default)."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field

import anyio
import httpx

from salvager.client.session import McpSessionClient
from salvager.settings import Settings
from salvager.shared.exceptions import NotConfiguredError
from salvager.types.tools import Implementation

logger = logging.getLogger(__name__)

DEFAULT_SESSION_KEY = "default"

ClientFactory = Callable[[str], McpSessionClient]


@dataclass
class PoolEntry:
    """Binds a pool key to one live session plus bookkeeping."""

    client: McpSessionClient
    created_at: float
    last_used: float
    user_id: str | None = None
    lock: anyio.Lock = field(default_factory=anyio.Lock)
    """Held for the duration of one call; serializes callers sharing the key."""


class SessionPool:
    """
    Creates MCP sessions on demand, reuses them while ready and reaps idle ones.

    Session creation is serialized per key, so concurrent callers asking for the
    same unpopulated key share one handshake instead of racing to create two
    sessions. State is process-local and in-memory only; remote runs outlive it
    and are recovered by their run id, not through the pool.

    Use ``run()`` in the application lifespan to drive the idle-reap loop:

        async with pool.run():
            async with pool.session("user:42") as client:
                result = await client.call_tool("search-actors", {"search": "maps"})
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        default_token: str | None = None,
        idle_timeout: float = 30 * 60,
        sweep_interval: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client_factory = client_factory
        self.default_token = default_token
        self.idle_timeout = idle_timeout
        self.sweep_interval = sweep_interval
        self._clock = clock

        self._entries: dict[str, PoolEntry] = {}
        self._creation_locks: dict[str, anyio.Lock] = {}
        self._run_lock = anyio.Lock()
        self._has_started = False

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> SessionPool:
        client_info = Implementation(name=settings.client_name, version=settings.client_version)

        def factory(token: str) -> McpSessionClient:
            return McpSessionClient(
                token,
                settings.mcp_url,
                http_client=http_client,
                protocol_version=settings.protocol_version,
                client_info=client_info,
                timeout=settings.http_timeout,
            )

        return cls(
            factory,
            default_token=settings.api_token,
            idle_timeout=settings.session_idle_timeout,
            sweep_interval=settings.session_sweep_interval,
        )

    @property
    def active_session_count(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _reuse(self, key: str) -> PoolEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.client.is_ready:
            entry.last_used = self._clock()
            return entry
        return None

    async def _acquire(self, key: str, token: str | None, user_id: str | None) -> PoolEntry:
        api_token = token or self.default_token
        if not api_token:
            raise NotConfiguredError("No API token configured")

        entry = self._reuse(key)
        if entry is not None:
            return entry

        lock = self._creation_locks.setdefault(key, anyio.Lock())
        try:
            async with lock:
                # The session may have been created while we waited for the lock
                entry = self._reuse(key)
                if entry is not None:
                    return entry

                if key in self._entries:
                    await self.close_session(key)

                logger.info(f"Creating new session: {key}")
                client = self._client_factory(api_token)
                try:
                    await client.initialize()
                except Exception:
                    await client.close()
                    raise

                now = self._clock()
                entry = PoolEntry(client=client, created_at=now, last_used=now, user_id=user_id)
                self._entries[key] = entry
                return entry
        finally:
            # A released lock is handed straight to the next waiter, so unlocked means nobody queued
            if not lock.locked() and self._creation_locks.get(key) is lock:
                del self._creation_locks[key]

    async def get_session(
        self,
        key: str = DEFAULT_SESSION_KEY,
        token: str | None = None,
        *,
        user_id: str | None = None,
    ) -> McpSessionClient:
        """Return a ready session for ``key``, creating and initializing one if needed.

        Raises:
            NotConfiguredError: Neither ``token`` nor a default token is available.
            TransportError, HandshakeError: Creating the session failed.
        """
        entry = await self._acquire(key, token, user_id)
        return entry.client

    async def get_user_session(self, user_id: str, token: str | None = None) -> McpSessionClient:
        return await self.get_session(f"user:{user_id}", token, user_id=user_id)

    @contextlib.asynccontextmanager
    async def session(
        self,
        key: str = DEFAULT_SESSION_KEY,
        token: str | None = None,
    ) -> AsyncIterator[McpSessionClient]:
        """Borrow the session for ``key`` exclusively for the duration of the block.

        If the entry is closed or replaced while waiting for its lock, the
        caller moves on to the current session for ``key`` instead.
        """
        while True:
            entry = await self._acquire(key, token, None)
            async with entry.lock:
                if self._entries.get(key) is not entry or not entry.client.is_ready:
                    continue
                entry.last_used = self._clock()
                try:
                    yield entry.client
                finally:
                    entry.last_used = self._clock()
                return

    async def close_session(self, key: str, client: McpSessionClient | None = None) -> None:
        """Close and evict the session for ``key``.

        When ``client`` is given, the entry is only closed if it still holds
        that client, so a stale caller cannot close a replacement session.
        """
        entry = self._entries.get(key)
        if entry is None or (client is not None and entry.client is not client):
            return
        del self._entries[key]
        await entry.client.close()
        logger.info(f"Closed session: {key}")

    async def close_all(self) -> None:
        for key in list(self._entries):
            await self.close_session(key)
        logger.info("All sessions closed")

    async def sweep(self) -> list[str]:
        """Close and evict every idle entry. Entries currently borrowed are skipped.

        Returns:
            The evicted keys.
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.last_used > self.idle_timeout and not entry.lock.locked()
        ]
        for key in expired:
            await self.close_session(key)

        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
        return expired

    async def _reap_loop(self) -> None:
        while True:
            await anyio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Session sweep failed")

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[SessionPool]:
        """
        Run the idle-reap loop for the lifetime of the block.

        On exit the loop is cancelled and every session is closed. A pool can be
        run only once; create a new instance to start again.
        """
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError("SessionPool.run() can only be called once per instance.")
            self._has_started = True

        async with anyio.create_task_group() as tg:
            tg.start_soon(self._reap_loop)
            logger.info("Session pool started")
            try:
                yield self
            finally:
                logger.info("Session pool shutting down")
                tg.cancel_scope.cancel()
                with anyio.CancelScope(shield=True):
                    await self.close_all()
