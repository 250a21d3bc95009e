"""
The set of node operations the transaction builder and fee estimator depend on.

Both :class:`~neoviper.api.noderpc.NeoRpcClient` and :class:`~neoviper.api.production.ProductionRpcClient`
satisfy it. Tests can supply any object with these coroutines.
"""
from __future__ import annotations
from typing import Protocol, Optional, Any, runtime_checkable
from collections.abc import Sequence
from neoviper.core import types
from neoviper.network.payloads import transaction, verification
from neoviper.api import noderpc


@runtime_checkable
class Facade(Protocol):
    async def get_block_count(self) -> int:
        """Best block height + 1."""
        ...

    async def get_contract_state(self, contract_hash_or_name: types.UInt160 | str) -> noderpc.ContractState:
        ...

    async def invoke_function(
        self,
        contract_hash: types.UInt160 | str,
        name: str,
        function_params: Optional[Sequence[Any]] = None,
        signers: Optional[Sequence[verification.Signer]] = None,
    ) -> noderpc.InvocationResult:
        ...

    async def invoke_script(
        self, script: bytes, signers: Optional[Sequence[verification.Signer]] = None
    ) -> noderpc.InvocationResult:
        ...

    async def calculate_network_fee(self, tx: bytes | transaction.Transaction) -> int:
        ...

    async def send_raw_transaction(self, tx: bytes | transaction.Transaction) -> types.UInt256:
        ...

    async def get_application_log(self, tx_hash: types.UInt256 | str) -> noderpc.ApplicationLog:
        ...

    async def get_nep17_balances(self, address: str | types.UInt160) -> noderpc.Nep17BalancesResponse:
        ...
