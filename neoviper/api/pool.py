"""
A bounded pool of HTTP sessions to one RPC endpoint.
"""
from __future__ import annotations
import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional
from neoviper import errors, api_logger as logger
from neoviper.api import noderpc


@dataclass
class PoolConfig:
    #: upper bound on concurrently used connections.
    max_connections: int = 10
    #: connections kept open while idle.
    min_idle: int = 2
    #: seconds after which an idle connection above `min_idle` is closed.
    max_idle_time: float = 300.0
    #: seconds to wait for a free connection.
    connection_timeout: float = 30.0
    #: total seconds a single request may take.
    request_timeout: float = 60.0


@dataclass
class PoolStats:
    created: int = 0
    closed: int = 0
    active: int = 0
    idle: int = 0
    waits: int = 0
    timeouts: int = 0


class PooledConnection:
    """
    A single HTTP session plus bookkeeping.
    """

    def __init__(self, client: noderpc.RPCClient, clock: Callable[[], float] = time.monotonic):
        self.client = client
        self._clock = clock
        self.created_at = clock()
        self.last_used = self.created_at
        self.request_count = 0

    @property
    def idle_time(self) -> float:
        return self._clock() - self.last_used

    @property
    def closed(self) -> bool:
        return self.client.closed

    async def post(self, json: dict):
        self.request_count += 1
        try:
            return await self.client._post(json)
        finally:
            self.last_used = self._clock()

    async def close(self) -> None:
        await self.client.close()


class ConnectionPool:
    def __init__(
        self,
        url: str,
        config: Optional[PoolConfig] = None,
        client_factory: Optional[Callable[[str, float], noderpc.RPCClient]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.url = url
        self.config = config if config else PoolConfig()
        self._client_factory = client_factory if client_factory else (lambda u, t: noderpc.RPCClient(u, timeout=t))
        self._clock = clock
        self._semaphore = asyncio.Semaphore(self.config.max_connections)
        self._idle: deque[PooledConnection] = deque()
        self._stats = PoolStats()
        self._closed = False

    @property
    def stats(self) -> PoolStats:
        self._stats.idle = len(self._idle)
        return self._stats

    def _create(self) -> PooledConnection:
        self._stats.created += 1
        logger.debug(f"Opening connection {self._stats.created} to {self.url}")
        return PooledConnection(self._client_factory(self.url, self.config.request_timeout), self._clock)

    async def _discard(self, connection: PooledConnection) -> None:
        self._stats.closed += 1
        await connection.close()

    async def acquire(self) -> PooledConnection:
        """
        Wait for a free slot and return an open connection.

        Raises:
            PoolTimeoutError: if no connection became available within `connection_timeout`.
        """
        if self._closed:
            raise errors.TransportError("Connection pool is closed")
        if self._semaphore.locked():
            self._stats.waits += 1
        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=self.config.connection_timeout)
        except asyncio.TimeoutError:
            self._stats.timeouts += 1
            raise errors.PoolTimeoutError(
                f"No connection to {self.url} available within {self.config.connection_timeout}s"
            ) from None

        try:
            connection = None
            while self._idle:
                candidate = self._idle.pop()
                if candidate.closed or candidate.idle_time > self.config.max_idle_time:
                    await self._discard(candidate)
                    continue
                connection = candidate
                break
            if connection is None:
                connection = self._create()
        except BaseException:
            # the caller never sees a connection, so it never releases the slot
            self._semaphore.release()
            raise
        self._stats.active += 1
        return connection

    async def release(self, connection: PooledConnection, discard: bool = False) -> None:
        """
        Return a connection to the pool. Discarded and closed connections are not reused.
        """
        self._stats.active -= 1
        try:
            if discard or self._closed or connection.closed:
                if discard:
                    logger.warning(f"Discarding connection to {self.url}")
                await self._discard(connection)
            else:
                self._idle.append(connection)
        finally:
            self._semaphore.release()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[PooledConnection]:
        """
        Acquire a connection for the duration of the block. The connection is released on cancellation too.
        Connections that saw a transport failure are discarded.
        """
        connection = await self.acquire()
        discard = False
        try:
            yield connection
        except errors.TransportError:
            discard = True
            raise
        finally:
            await self.release(connection, discard)

    async def warm_up(self) -> None:
        """
        Make sure at least `min_idle` connections exist.
        """
        while len(self._idle) + self._stats.active < self.config.min_idle:
            self._idle.append(self._create())

    async def cleanup_idle(self) -> int:
        """
        Close idle connections that exceeded `max_idle_time`, keeping at least `min_idle`.

        Returns:
            the number of closed connections.
        """
        closed = 0
        # oldest first
        for connection in sorted(self._idle, key=lambda c: c.last_used):
            if len(self._idle) <= self.config.min_idle:
                break
            if connection.idle_time > self.config.max_idle_time:
                self._idle.remove(connection)
                await self._discard(connection)
                closed += 1
        return closed

    async def close(self) -> None:
        self._closed = True
        while self._idle:
            await self._discard(self._idle.pop())

    def to_dict(self) -> dict:
        stats = self.stats
        return {
            "max_connections": self.config.max_connections,
            "created": stats.created,
            "closed": stats.closed,
            "active": stats.active,
            "idle": stats.idle,
            "waits": stats.waits,
            "timeouts": stats.timeouts,
        }
