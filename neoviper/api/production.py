"""
RPC client for long running services: pooled connections, response caching, circuit breaking and retries.

Request lifecycle::

    cache lookup -> hit returns
                 -> miss: circuit breaker check (open short-circuits)
                          -> acquire pooled connection -> JSON-RPC call within the request timeout
                          -> record metrics -> update breaker -> populate cache

Transport failures of idempotent methods are retried with exponential backoff. ``sendrawtransaction`` is only
retried when the request provably never left the client.
"""
from __future__ import annotations
import asyncio
import itertools
import random
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from neoviper import errors, settings, api_logger as logger
from neoviper.api import noderpc
from neoviper.api.cache import RpcCache, CacheConfig, WRITE_METHODS
from neoviper.api.circuitbreaker import CircuitBreaker, CircuitBreakerConfig
from neoviper.api.pool import ConnectionPool, PoolConfig


@dataclass
class RetryConfig:
    max_retries: int = 3
    #: seconds before the first retry. Doubles with every attempt.
    retry_delay: float = 1.0
    #: upper bound on the delay before jitter is applied.
    max_retry_delay: float = 30.0

    def delay_for(self, attempt: int, jitter: Callable[[float, float], float] = random.uniform) -> float:
        """
        Backoff before retry number `attempt` (0 based), with a uniform jitter factor in ``[0.8, 1.2]``.
        """
        base = min(self.retry_delay * (2**attempt), self.max_retry_delay)
        return base * jitter(0.8, 1.2)


@dataclass
class ProductionClientConfig:
    pool: PoolConfig = field(default_factory=PoolConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    enable_cache: bool = True
    enable_circuit_breaker: bool = True

    @classmethod
    def from_settings(cls) -> ProductionClientConfig:
        """
        Defaults with timeouts and retry values taken from ``settings.rpc``.
        """
        rpc = settings.settings.rpc
        config = cls()
        config.pool.request_timeout = rpc.request_timeout
        config.retry = RetryConfig(rpc.max_retries, rpc.retry_delay, rpc.max_retry_delay)
        return config

    @classmethod
    def production(cls) -> ProductionClientConfig:
        """
        Larger pool for services with many concurrent callers.
        """
        config = cls.from_settings()
        config.pool.max_connections = 20
        config.pool.min_idle = 5
        config.cache = CacheConfig(max_entries=10000, default_ttl=30.0, cleanup_interval=60.0)
        return config


@dataclass
class ClientStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    retries: int = 0
    circuit_breaker_state: str = "closed"
    #: rolling average of the last 100 network round trips, in seconds.
    average_response_time: float = 0.0
    _samples: deque = field(default_factory=lambda: deque(maxlen=100), repr=False, compare=False)

    def record_response_time(self, seconds: float) -> None:
        self._samples.append(seconds)
        self.average_response_time = sum(self._samples) / len(self._samples)

    @property
    def success_rate(self) -> float:
        return self.successful_requests / self.total_requests * 100 if self.total_requests else 0.0

    def to_dict(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "retries": self.retries,
            "circuit_breaker_state": self.circuit_breaker_state,
            "average_response_time": self.average_response_time,
            "success_rate": self.success_rate,
        }


def is_retriable(method: str, error: Exception) -> bool:
    """
    Decide if a failed call may be repeated.

    Writes are only repeated if the request never reached the node, everything else on any transport failure.
    JSON-RPC errors, malformed responses and an open circuit are never retried.
    """
    if not isinstance(error, errors.TransportError):
        return False
    if method in WRITE_METHODS:
        return isinstance(error, (errors.ConnectionFailedError, errors.PoolTimeoutError))
    return True


class ProductionRpcClient(noderpc.NodeApi):
    def __init__(self, url: str, config: Optional[ProductionClientConfig] = None, pool: Optional[ConnectionPool] = None):
        """
        Args:
            url: host + port of the node.
            config: client configuration. Defaults to :meth:`ProductionClientConfig.from_settings`.
            pool: a connection pool to use instead of creating one from `config.pool`.
        """
        self.url = url
        self.config = config if config else ProductionClientConfig.from_settings()
        self.pool = pool if pool else ConnectionPool(url, self.config.pool)
        self.cache = RpcCache(self.config.cache)
        self.circuit_breaker = CircuitBreaker(url, self.config.circuit_breaker)
        self._stats = ClientStats()
        self._ids = itertools.count(1)
        self._maintenance: Optional[asyncio.Task] = None

    async def _do_post(self, method: str, params: Optional[list] = None) -> Any:
        params = params if params else []
        self._start_maintenance()
        self._stats.total_requests += 1

        use_cache = self.config.enable_cache and self.cache.is_cacheable(method)
        if use_cache:
            hit, value = self.cache.get(method, params)
            if hit:
                self._stats.cache_hits += 1
                self._stats.successful_requests += 1
                return value
            self._stats.cache_misses += 1

        generation = self.cache.generation
        try:
            result = await self._call_with_retry(method, params)
        except Exception:
            self._stats.failed_requests += 1
            raise
        self._stats.successful_requests += 1

        if method in WRITE_METHODS:
            self.cache.bump_generation()
        elif use_cache:
            await self.cache.put(method, params, result, generation)
        return result

    async def _call_with_retry(self, method: str, params: list) -> Any:
        attempt = 0
        while True:
            try:
                return await self._execute(method, params)
            except errors.RpcError as e:
                if attempt >= self.config.retry.max_retries or not is_retriable(method, e):
                    raise
                delay = self.config.retry.delay_for(attempt)
                attempt += 1
                self._stats.retries += 1
                logger.debug(f"{method} failed ({e}), retry {attempt}/{self.config.retry.max_retries} in {delay:.2f}s")
                await asyncio.sleep(delay)

    async def _execute(self, method: str, params: list) -> Any:
        json = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        if not self.config.enable_circuit_breaker:
            return await self._send(json)
        async with self.circuit_breaker:
            return await self._send(json)

    async def _send(self, json: dict) -> Any:
        loop = asyncio.get_running_loop()
        async with self.pool.connection() as connection:
            start = loop.time()
            logger.debug(f"{json['method']} -> {self.url}")
            response = await connection.post(json)
            self._stats.record_response_time(loop.time() - start)
        return noderpc.unwrap_response(response)

    def _start_maintenance(self) -> None:
        if self._maintenance is None and self.config.cache.cleanup_interval > 0:
            self._maintenance = asyncio.create_task(self._maintenance_loop())

    async def _maintenance_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cache.cleanup_interval)
            purged = self.cache.purge_expired()
            closed = await self.pool.cleanup_idle()
            if purged or closed:
                logger.debug(f"Maintenance removed {purged} cache entries and {closed} idle connections")

    def get_stats(self) -> ClientStats:
        """
        Snapshot of the request counters.
        """
        stats = ClientStats(
            self._stats.total_requests,
            self._stats.successful_requests,
            self._stats.failed_requests,
            self._stats.cache_hits,
            self._stats.cache_misses,
            self._stats.retries,
            self.circuit_breaker.state.value,
            self._stats.average_response_time,
        )
        return stats

    async def health_check(self) -> bool:
        """
        Probe the node with ``getblockcount``, bypassing the cache and retries.
        """
        try:
            await asyncio.wait_for(self._execute("getblockcount", []), timeout=self.config.pool.request_timeout)
        except (errors.RpcError, asyncio.TimeoutError) as e:
            logger.warning(f"Health check of {self.url} failed: {e}")
            return False
        return True

    async def get_health(self) -> dict:
        healthy = await self.health_check()
        return {
            "healthy": healthy,
            "url": self.url,
            "circuit_breaker": self.circuit_breaker.to_dict(),
            "pool": self.pool.to_dict(),
            "cache": self.cache.to_dict(),
            "stats": self.get_stats().to_dict(),
        }

    async def close(self) -> None:
        if self._maintenance is not None:
            self._maintenance.cancel()
            try:
                await self._maintenance
            except asyncio.CancelledError:
                pass
            self._maintenance = None
        await self.pool.close()

    async def __aenter__(self):
        await self.pool.warm_up()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
