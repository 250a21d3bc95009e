"""
System and network fee estimation.

The system fee is what the node reports as consumed GAS for a test invocation of the script. The network fee is
either calculated by the node (``calculatenetworkfee``) or locally from the transaction size and the cost of the
verification scripts using a :class:`FeePolicy`.
"""
from __future__ import annotations
import asyncio
import math
from dataclasses import dataclass
from typing import Optional
from collections.abc import Sequence
from neoviper import errors, vm, api_logger as logger
from neoviper.api import facade as _facade
from neoviper.contracts import utils as contractutils
from neoviper.core import cryptography
from neoviper.network.payloads import transaction, verification

#: maximum number of concurrent test invocations in :meth:`FeeEstimator.batch`
MAX_BATCH_CONCURRENCY = 8

# opcode and interop prices in datoshi before applying the execution fee factor
PUSHDATA1_PRICE = 1 << 3
PUSHINT_PRICE = 1 << 0
SYSCALL_PRICE = 0
CHECK_SIG_PRICE = 1 << 15


@dataclass
class FeePolicy:
    """
    Network fee parameters as stored in the Policy native contract.
    """

    fee_per_byte: int = 1000
    exec_fee_factor: int = 30

    def signature_verification_cost(self) -> int:
        """
        Execution cost of a single signature verification script.
        """
        return self.exec_fee_factor * (PUSHDATA1_PRICE * 2 + SYSCALL_PRICE + CHECK_SIG_PRICE)

    def multisig_verification_cost(self, m: int, n: int) -> int:
        """
        Execution cost of an `m` out of `n` multi-signature verification script.
        """
        return self.exec_fee_factor * (
            PUSHDATA1_PRICE * (m + n) + PUSHINT_PRICE * 2 + SYSCALL_PRICE + CHECK_SIG_PRICE * n
        )

    def verification_cost(self, verification_script: bytes) -> int:
        """
        Raises:
            InvalidInput: if the script is neither a signature nor a multi-signature verification script.
        """
        if contractutils.is_signature_contract(verification_script):
            return self.signature_verification_cost()
        valid, m, public_keys = contractutils.parse_as_multisig_contract(verification_script)
        if valid:
            return self.multisig_verification_cost(m, len(public_keys))
        raise errors.InvalidInput("Cannot price a verification script that is not a (multi-)signature contract")

    def network_fee_for_size(self, size: int, signer_count: int = 1) -> int:
        """
        Network fee for a transaction of `size` bytes signed by `signer_count` single signature accounts.
        """
        if size < 0 or signer_count < 0:
            raise errors.InvalidInput("Size and signer count must not be negative")
        return self.fee_per_byte * size + signer_count * self.signature_verification_cost()


def placeholder_verification_script() -> bytes:
    """
    A single signature verification script for a throwaway key. Has the same size and cost as any other.
    """
    return contractutils.create_signature_redeemscript(cryptography.KeyPair.generate().public_key)


def _invocation_placeholder(verification_script: bytes) -> bytes:
    valid, m, _ = contractutils.parse_as_multisig_contract(verification_script)
    count = m if valid else 1
    sb = vm.ScriptBuilder()
    for _ in range(count):
        sb.push_data(bytes(64))
    return sb.to_array()


def with_placeholder_witnesses(
    tx: transaction.Transaction,
    verification_scripts: Optional[Sequence[bytes]] = None,
    sized_invocation: bool = False,
) -> transaction.Transaction:
    """
    Copy `tx` with one placeholder witness per signer.

    Args:
        tx: the transaction.
        verification_scripts: per signer verification script. Defaults to a single signature placeholder.
        sized_invocation: fill invocation scripts with zeroed signatures so the size matches the signed transaction.
    """
    if verification_scripts is None:
        verification_scripts = [placeholder_verification_script() for _ in tx.signers]
    if len(verification_scripts) != len(tx.signers):
        raise errors.InvalidInput("Need exactly one verification script per signer")
    witnesses = [
        verification.Witness(_invocation_placeholder(script) if sized_invocation else b"", script)
        for script in verification_scripts
    ]
    return transaction.Transaction(
        tx.version,
        tx.nonce,
        tx.system_fee,
        tx.network_fee,
        tx.valid_until_block,
        list(tx.attributes),
        list(tx.signers),
        tx.script,
        witnesses,
    )


class FeeEstimator:
    def __init__(
        self,
        facade: _facade.Facade,
        policy: Optional[FeePolicy] = None,
        use_node_network_fee: bool = True,
        max_concurrency: int = MAX_BATCH_CONCURRENCY,
    ):
        """
        Args:
            facade: node access.
            policy: fee parameters for local network fee calculation.
            use_node_network_fee: ask the node via ``calculatenetworkfee`` instead of calculating locally.
            max_concurrency: upper bound of concurrent test invocations in :meth:`batch`.
        """
        self.facade = facade
        self.policy = policy if policy else FeePolicy()
        self.use_node_network_fee = use_node_network_fee
        self.max_concurrency = min(max_concurrency, MAX_BATCH_CONCURRENCY)

    async def estimate(self, script: bytes, signers: Optional[Sequence[verification.Signer]] = None) -> int:
        """
        Test invoke `script` and return the consumed GAS.

        Raises:
            InvocationFault: if the VM ended in the FAULT state.
        """
        result = await self.facade.invoke_script(script, list(signers) if signers else [])
        if result.is_fault:
            raise errors.InvocationFault(result.exception, result.gas_consumed)
        logger.debug(f"Estimated system fee {result.gas_consumed} for {len(script)} byte script")
        return result.gas_consumed

    async def estimate_with_margin(
        self, script: bytes, signers: Optional[Sequence[verification.Signer]], margin_percent: int
    ) -> int:
        """
        Like :meth:`estimate` with a safety margin: ``ceil(base * (100 + margin_percent) / 100)``.

        Raises:
            InvalidInput: if `margin_percent` is negative.
        """
        if margin_percent < 0:
            raise errors.InvalidInput(f"Margin must not be negative, got {margin_percent}")
        base = await self.estimate(script, signers)
        return apply_margin(base, margin_percent)

    async def network_fee(
        self,
        tx_or_size: transaction.Transaction | int,
        signer_count: int = 1,
        verification_scripts: Optional[Sequence[bytes]] = None,
    ) -> int:
        """
        Calculate the network fee.

        Args:
            tx_or_size: the (unsigned) transaction, or only its expected signed size in bytes.
            signer_count: number of single signature signers. Only used when a size is given.
            verification_scripts: per signer verification scripts. Only used when a transaction is given.
        """
        if isinstance(tx_or_size, int):
            return self.policy.network_fee_for_size(tx_or_size, signer_count)

        if self.use_node_network_fee:
            placeholder = with_placeholder_witnesses(tx_or_size, verification_scripts)
            return await self.facade.calculate_network_fee(placeholder)

        placeholder = with_placeholder_witnesses(tx_or_size, verification_scripts, sized_invocation=True)
        verification_cost = sum(self.policy.verification_cost(w.verification_script) for w in placeholder.witnesses)
        return self.policy.fee_per_byte * len(placeholder) + verification_cost

    async def batch(
        self, items: Sequence[tuple[bytes, Optional[Sequence[verification.Signer]]]]
    ) -> list[int | errors.InvocationFault]:
        """
        Estimate many scripts concurrently.

        Returns:
            one entry per item, in order. Either the consumed GAS or the :class:`~neoviper.errors.InvocationFault`.

        Raises:
            RpcError: transport and protocol failures are not captured and abort the batch.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(script: bytes, signers) -> int | errors.InvocationFault:
            async with semaphore:
                try:
                    return await self.estimate(script, signers)
                except errors.InvocationFault as e:
                    return e

        tasks = [asyncio.ensure_future(_one(script, signers)) for script, signers in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    @staticmethod
    def accuracy(estimate: int, actual: int) -> float:
        """
        ``actual / estimate`` as a percentage. 100.0 means the estimate was exact.
        """
        if estimate == 0:
            return 100.0 if actual == 0 else math.inf
        return actual * 100 / estimate


def apply_margin(base: int, margin_percent: int) -> int:
    """
    ``ceil(base * (100 + margin_percent) / 100)`` without floating point rounding.
    """
    return -(-base * (100 + margin_percent) // 100)

