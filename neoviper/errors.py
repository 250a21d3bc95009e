"""
Exceptions raised by the SDK.

The hierarchy is intentionally flat. Input validation errors derive from ``ValueError`` so callers that only care
about "bad argument" can keep catching that. Everything that can come out of a facade call derives from
:class:`RpcError`.
"""
from __future__ import annotations
import asyncio
from typing import Optional


class NeoViperError(Exception):
    """Base class for all SDK errors."""


class InvalidInput(NeoViperError, ValueError):
    """A malformed address, hash, hex string or contract parameter."""


class InvalidAddress(InvalidInput):
    pass


class InvalidHex(InvalidInput):
    pass


class ScopeViolation(InvalidInput):
    """A signer whose witness scope composition is not allowed."""


class ScriptTooLarge(InvalidInput):
    def __init__(self, size: int, limit: int):
        super(ScriptTooLarge, self).__init__(f"Script size {size} exceeds the limit of {limit} bytes")
        self.size = size
        self.limit = limit


class NoScript(NeoViperError):
    def __init__(self):
        super(NoScript, self).__init__("Cannot finalize a transaction without a script")


class NoSigners(NeoViperError):
    def __init__(self):
        super(NoSigners, self).__init__("Cannot finalize a transaction without signers")


class InvocationFault(NeoViperError):
    """The test invocation ended in the FAULT state."""

    def __init__(self, exception: Optional[str], gas_consumed: int = 0):
        super(InvocationFault, self).__init__(f"Invocation faulted: {exception}")
        self.exception = exception
        self.gas_consumed = gas_consumed


class InsufficientFunds(NeoViperError):
    def __init__(self, required: int, available: int):
        super(InsufficientFunds, self).__init__(
            f"Insufficient GAS balance. Required {required}, available {available}"
        )
        self.required = required
        self.available = available


class RpcError(NeoViperError):
    """Base class for failures of a remote call."""


class TransportError(RpcError):
    """Network, TLS, DNS or HTTP level failure. Safe to retry for idempotent methods."""


class ConnectionFailedError(TransportError):
    """The connection could not be established. The request was never sent."""


class RequestTimeoutError(TransportError, asyncio.TimeoutError):
    pass


class PoolTimeoutError(RequestTimeoutError):
    """No connection became available within the acquisition timeout."""


class ProtocolError(RpcError):
    """The node answered, but with something other than a usable result."""


class JsonRpcError(ProtocolError):
    def __init__(self, code: int, message: str, data: Optional[str] = None):
        self.code = code
        self.message = message
        self.data = data

    def __str__(self):
        error_str = f"code={self.code}, message={self.message}"
        if self.data:
            error_str += f", data={self.data}"
        return error_str


class CircuitOpenError(RpcError):
    def __init__(self, name: str, retry_after: float = 0.0):
        super(CircuitOpenError, self).__init__(
            f"Circuit '{name}' is open, retry after {retry_after:.1f}s"
        )
        self.name = name
        self.retry_after = retry_after


class JsonRpcTimeoutError(RpcError):
    def __init__(self, message: Optional[str] = None):
        self.message = "Operation timed out" if message is None else message

    def __str__(self):
        return self.message
