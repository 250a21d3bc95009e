"""
Circuit breaker guarding a single RPC endpoint.

States:

* CLOSED - requests pass. Failures within `failure_window` are counted, at `failure_threshold` the breaker opens.
* OPEN - requests are rejected with :class:`~neoviper.errors.CircuitOpenError` until `timeout` elapsed.
* HALF_OPEN - up to `half_open_max_requests` probes pass. `success_threshold` successes close the breaker, any
  failure opens it again.

Usage::

    async with breaker:
        result = await call_node()
"""
from __future__ import annotations
import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional
from neoviper import errors, api_logger as logger


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    #: failures within `failure_window` before opening.
    failure_threshold: int = 5
    #: seconds to stay open before allowing probes.
    timeout: float = 60.0
    #: successes in half-open before closing.
    success_threshold: int = 3
    #: seconds a failure is remembered while closed.
    failure_window: float = 60.0
    #: max concurrent probes in half-open.
    half_open_max_requests: int = 3


@dataclass
class CircuitBreakerStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rejected_requests: int = 0
    state_transitions: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None


def is_breaker_failure(exc: BaseException) -> bool:
    """
    Only transport level failures (including timeouts) count. A node that answers with a JSON-RPC error is healthy.
    """
    return isinstance(exc, (errors.TransportError, asyncio.TimeoutError)) and not isinstance(
        exc, errors.PoolTimeoutError
    )


class CircuitBreaker:
    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._name = name
        self._config = config if config else CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._stats = CircuitBreakerStats()
        self._failures: deque[float] = deque()
        self._opened_at = 0.0
        self._half_open_requests = 0
        self._half_open_successes = 0
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    @property
    def failure_rate(self) -> float:
        """
        Failed requests as a percentage of all requests that were let through.
        """
        completed = self._stats.successful_requests + self._stats.failed_requests
        return self._stats.failed_requests / completed * 100 if completed else 0.0

    def retry_after(self) -> float:
        """
        Seconds until an open breaker allows probes again. 0 if not open.
        """
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self._opened_at + self._config.timeout - self._clock())

    def is_open(self) -> bool:
        return self._state == CircuitState.OPEN and self.retry_after() > 0

    async def __aenter__(self) -> CircuitBreaker:
        await self.before_call()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None:
            await self.on_success()
        elif is_breaker_failure(exc_val):
            await self.on_failure(exc_val)
        else:
            # cancellation and protocol errors do not change the health verdict
            await self._release_probe()
        return False

    async def call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        async with self:
            return await func(*args, **kwargs)

    async def before_call(self) -> None:
        """
        Raises:
            CircuitOpenError: if the call is not allowed.
        """
        async with self._lock:
            self._stats.total_requests += 1

            if self._state == CircuitState.OPEN:
                if self._clock() >= self._opened_at + self._config.timeout:
                    self._transition_to(CircuitState.HALF_OPEN)
                else:
                    self._stats.rejected_requests += 1
                    raise errors.CircuitOpenError(self._name, self.retry_after())

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_requests >= self._config.half_open_max_requests:
                    self._stats.rejected_requests += 1
                    raise errors.CircuitOpenError(self._name, 0.0)
                self._half_open_requests += 1

    async def on_success(self) -> None:
        async with self._lock:
            self._stats.successful_requests += 1
            self._stats.last_success_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_requests = max(0, self._half_open_requests - 1)
                self._half_open_successes += 1
                if self._half_open_successes >= self._config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._failures.clear()

    async def on_failure(self, error: Optional[BaseException] = None) -> None:
        async with self._lock:
            now = self._clock()
            self._stats.failed_requests += 1
            self._stats.last_failure_time = now

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_requests = max(0, self._half_open_requests - 1)
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._failures.append(now)
                while self._failures and now - self._failures[0] > self._config.failure_window:
                    self._failures.popleft()
                if len(self._failures) >= self._config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)
            if error is not None:
                logger.debug(f"Circuit breaker '{self._name}' recorded failure: {error}")

    async def _release_probe(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_requests = max(0, self._half_open_requests - 1)

    def _transition_to(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        self._stats.state_transitions += 1
        self._half_open_requests = 0
        self._half_open_successes = 0

        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.warning(
                f"Circuit breaker '{self._name}' OPENED, rejecting requests for {self._config.timeout}s"
            )
        elif new_state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit breaker '{self._name}' entering HALF_OPEN")
        elif new_state == CircuitState.CLOSED:
            self._failures.clear()
            logger.info(f"Circuit breaker '{self._name}' CLOSED (recovered)")

    async def force_open(self) -> None:
        async with self._lock:
            self._transition_to(CircuitState.OPEN)
            # restart the timer when already open
            self._opened_at = self._clock()

    async def reset(self) -> None:
        """
        Manually close the breaker and clear its statistics.
        """
        async with self._lock:
            self._state = CircuitState.CLOSED
            self._stats = CircuitBreakerStats()
            self._failures.clear()
            self._half_open_requests = 0
            self._half_open_successes = 0
            logger.info(f"Circuit breaker '{self._name}' manually reset")

    def to_dict(self) -> dict:
        return {
            "name": self._name,
            "state": self._state.value,
            "failure_rate": self.failure_rate,
            "stats": {
                "total_requests": self._stats.total_requests,
                "successful_requests": self._stats.successful_requests,
                "failed_requests": self._stats.failed_requests,
                "rejected_requests": self._stats.rejected_requests,
                "state_transitions": self._stats.state_transitions,
            },
        }
