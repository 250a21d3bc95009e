import asyncio
from typing import Optional
from neoviper import errors, vm
from neoviper.api import noderpc
from neoviper.core import types
from neoviper.network.payloads import transaction
from neoviper.wallet import utils as walletutils


class FakeFacade:
    """
    In-memory node. Records what it was asked and answers with configurable values.
    """

    def __init__(
        self,
        block_count: int = 100,
        gas_consumed: int = 1_000_000,
        network_fee: int = 123_456,
        gas_balance: int = 10**12,
    ):
        self.block_count = block_count
        self.gas_consumed = gas_consumed
        self.network_fee = network_fee
        self.gas_balance = gas_balance
        #: script -> exception message for scripts that should FAULT
        self.faults: dict[bytes, str] = {}
        #: number of `get_application_log` calls answered with "Unknown transaction"
        self.pending_polls = 0
        self.send_hash: Optional[types.UInt256] = None

        self.invoked: list[tuple[bytes, list]] = []
        self.fee_requests: list[transaction.Transaction] = []
        self.sent: list[transaction.Transaction] = []
        self.log_requests = 0
        self.concurrent = 0
        self.max_concurrent = 0

    async def get_block_count(self) -> int:
        return self.block_count

    async def get_contract_state(self, contract_hash_or_name):
        raise errors.JsonRpcError(-100, "Unknown contract")

    async def invoke_function(self, contract_hash, name, function_params=None, signers=None):
        raise errors.JsonRpcError(-100, "Not supported")

    async def invoke_script(self, script, signers=None) -> noderpc.InvocationResult:
        self.invoked.append((script, list(signers) if signers else []))
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            await asyncio.sleep(0)
        finally:
            self.concurrent -= 1
        if script in self.faults:
            return noderpc.InvocationResult(vm.VMState.FAULT, self.gas_consumed, self.faults[script], [], script)
        return noderpc.InvocationResult(vm.VMState.HALT, self.gas_consumed, None, [], script)

    async def calculate_network_fee(self, tx) -> int:
        self.fee_requests.append(tx)
        return self.network_fee

    async def send_raw_transaction(self, tx) -> types.UInt256:
        self.sent.append(tx)
        return self.send_hash if self.send_hash is not None else tx.hash()

    async def get_application_log(self, tx_hash) -> noderpc.ApplicationLog:
        self.log_requests += 1
        if self.pending_polls > 0:
            self.pending_polls -= 1
            raise errors.JsonRpcError(-100, "Unknown transaction/blockhash")
        execution = noderpc.ApplicationExecution(
            "Application", vm.VMState.HALT, self.gas_consumed, None, [], []
        )
        return noderpc.ApplicationLog(tx_hash, [execution])

    async def get_nep17_balances(self, address) -> noderpc.Nep17BalancesResponse:
        if isinstance(address, types.UInt160):
            address = walletutils.script_hash_to_address(address)
        gas = types.UInt160.from_string("0xd2a4cff31913016155e38e474a2c06d08be276cf")
        return noderpc.Nep17BalancesResponse([noderpc.Nep17Balance(gas, self.gas_balance, 1)], address)
