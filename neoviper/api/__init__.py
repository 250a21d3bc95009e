"""
Classes to interact with the network: a plain RPC client for the NEO Node RPC API, a production client with pooling,
caching, circuit breaking and retries, and the facade protocol both implement.
"""
from .noderpc import (
    NeoRpcClient,
    StackItem,
    StackItemType,
    InvocationResult,
    ApplicationLog,
    ContractState,
    Nep17BalancesResponse,
)
from .facade import Facade
from .production import ProductionRpcClient, ProductionClientConfig, RetryConfig, ClientStats

__all__ = [
    "NeoRpcClient",
    "StackItem",
    "StackItemType",
    "InvocationResult",
    "ApplicationLog",
    "ContractState",
    "Nep17BalancesResponse",
    "Facade",
    "ProductionRpcClient",
    "ProductionClientConfig",
    "RetryConfig",
    "ClientStats",
]
