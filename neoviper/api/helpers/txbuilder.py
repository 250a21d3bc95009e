"""
Builder for creating a Transaction. Calculate fees, add signers and sign.
"""
from __future__ import annotations
import asyncio
import inspect
import secrets
from enum import Enum
from typing import Optional
from collections.abc import Sequence
from neoviper import errors, settings, api_logger as logger
from neoviper.api import facade as _facade, noderpc
from neoviper.api.helpers import fees, signing
from neoviper.core import types
from neoviper.network.payloads import transaction, verification

#: script hash of the GAS native contract
GAS_CONTRACT_HASH = types.UInt160.from_string("0xd2a4cff31913016155e38e474a2c06d08be276cf")


class BuilderState(Enum):
    EMPTY = "empty"
    SCRIPTED = "scripted"
    SIGNED = "signed"
    FINALIZED = "finalized"


class TransactionBuilder:
    """
    Transaction builder.

    Configure it with the setters, then call :meth:`sign` to obtain a signed transaction::

        builder = TransactionBuilder(client)
        builder.set_script(script).set_signers([signer])
        tx = await builder.sign(signing.account_signer(acc))
        tx_hash = await builder.send(tx)
    """

    def __init__(
        self,
        facade: _facade.Facade,
        network_magic: Optional[int] = None,
        fee_estimator: Optional[fees.FeeEstimator] = None,
        gas_contract_hash: Optional[types.UInt160] = GAS_CONTRACT_HASH,
    ):
        """
        Args:
            facade: node access.
            network_magic: the network the transaction is signed for. Defaults to `settings.network.magic`.
            fee_estimator: defaults to an estimator using `facade`.
            gas_contract_hash: the sender's balance of this asset is checked against the total fee. Pass ``None`` to
             skip the check, e.g. for a sender that is funded before the transaction is sent.
        """
        builder_settings = settings.settings.builder
        self.facade = facade
        self.network_magic = network_magic if network_magic is not None else settings.settings.network.magic
        self.fee_estimator = fee_estimator if fee_estimator else fees.FeeEstimator(facade)
        self.gas_contract_hash = gas_contract_hash
        self.max_script_size: int = builder_settings.max_script_size
        self.valid_until_block_increment: int = builder_settings.valid_until_block_increment
        self.max_valid_until_block_increment: int = builder_settings.max_valid_until_block_increment
        self.fee_margin_percent: int = builder_settings.fee_margin_percent

        self.state = BuilderState.EMPTY
        self._script = b""
        self._signers: list[verification.Signer] = []
        self._valid_until_block: Optional[int] = None
        self._nonce = secrets.randbits(32)
        self._additional_system_fee = 0
        self._additional_network_fee = 0

    @property
    def script(self) -> bytes:
        return self._script

    @property
    def signers(self) -> list[verification.Signer]:
        return list(self._signers)

    def _touch(self) -> None:
        # any change after finalization invalidates the previous result
        self.state = BuilderState.SCRIPTED if self._script else BuilderState.EMPTY

    def set_script(self, script: bytes) -> TransactionBuilder:
        """
        Set the script to execute. An empty script resets the builder to the EMPTY state.

        Raises:
            ScriptTooLarge: if the script exceeds `max_script_size`.
        """
        if len(script) > self.max_script_size:
            raise errors.ScriptTooLarge(len(script), self.max_script_size)
        self._script = bytes(script)
        self._touch()
        return self

    def set_signers(self, signers: Sequence[verification.Signer]) -> TransactionBuilder:
        """
        Set the signers. The first signer is the sender and pays the fees.

        Raises:
            ScopeViolation: if a signer has an invalid scope composition.
            InvalidInput: if the list is empty, too long or contains the same account twice.
        """
        if len(signers) == 0:
            raise errors.InvalidInput("At least one signer is required")
        if len(signers) > transaction.Transaction.MAX_TRANSACTION_ATTRIBUTES:
            raise errors.InvalidInput(
                f"Too many signers ({len(signers)}), maximum is {transaction.Transaction.MAX_TRANSACTION_ATTRIBUTES}"
            )
        seen = set()
        for signer in signers:
            signer.validate()
            if signer.account in seen:
                raise errors.InvalidInput(f"Signer with same account ({signer.account}) already exists")
            seen.add(signer.account)
        self._signers = list(signers)
        self._touch()
        return self

    async def _current_height(self) -> int:
        return await self.facade.get_block_count() - 1

    async def valid_until_block(self, height: int) -> TransactionBuilder:
        """
        Set the last block height at which the transaction can be included.

        Raises:
            InvalidInput: if `height` is not above the current height or too far in the future.
        """
        current = await self._current_height()
        if height <= current:
            raise errors.InvalidInput(f"Valid until block {height} is not above the current height {current}")
        if height > current + self.max_valid_until_block_increment:
            raise errors.InvalidInput(
                f"Valid until block {height} exceeds current height {current} + "
                f"{self.max_valid_until_block_increment}"
            )
        self._valid_until_block = height
        self._touch()
        return self

    def nonce(self, nonce: int) -> TransactionBuilder:
        if not 0 <= nonce < 2**32:
            raise errors.InvalidInput(f"Nonce must be an unsigned 32 bit integer, got {nonce}")
        self._nonce = nonce
        self._touch()
        return self

    def additional_system_fee(self, amount: int) -> TransactionBuilder:
        if amount < 0:
            raise errors.InvalidInput(f"Additional system fee must not be negative, got {amount}")
        self._additional_system_fee = amount
        self._touch()
        return self

    def additional_network_fee(self, amount: int) -> TransactionBuilder:
        if amount < 0:
            raise errors.InvalidInput(f"Additional network fee must not be negative, got {amount}")
        self._additional_network_fee = amount
        self._touch()
        return self

    @staticmethod
    def _verification_scripts(
        signers: Sequence[verification.Signer], key_provider: Optional[signing.KeyProvider]
    ) -> list[bytes]:
        lookup = getattr(key_provider, "verification_script", None)
        scripts = []
        for signer in signers:
            script = lookup(signer.account) if lookup else None
            scripts.append(script if script is not None else fees.placeholder_verification_script())
        return scripts

    async def build_unsigned(self, key_provider: Optional[signing.KeyProvider] = None) -> transaction.Transaction:
        """
        Resolve the valid until block and both fees, and return the transaction without witnesses. For example for
        use in an offline signing scenario.

        Args:
            key_provider: used only to look up verification scripts for an exact network fee.

        Raises:
            NoScript: if no script is set.
            NoSigners: if no signers are set.
            InvocationFault: if the test invocation of the script faults.
            InsufficientFunds: if the sender cannot pay the fees.
        """
        if not self._script:
            raise errors.NoScript()
        if not self._signers:
            raise errors.NoSigners()

        valid_until_block = self._valid_until_block
        if valid_until_block is None:
            valid_until_block = await self._current_height() + self.valid_until_block_increment

        if self.fee_margin_percent:
            system_fee = await self.fee_estimator.estimate_with_margin(
                self._script, self._signers, self.fee_margin_percent
            )
        else:
            system_fee = await self.fee_estimator.estimate(self._script, self._signers)
        system_fee += self._additional_system_fee

        tx = transaction.Transaction(
            version=0,
            nonce=self._nonce,
            system_fee=system_fee,
            network_fee=0,
            valid_until_block=valid_until_block,
            attributes=[],
            signers=list(self._signers),
            script=self._script,
        )
        verification_scripts = self._verification_scripts(tx.signers, key_provider)
        network_fee = await self.fee_estimator.network_fee(tx, len(tx.signers), verification_scripts)
        tx.network_fee = network_fee + self._additional_network_fee

        if self.gas_contract_hash is not None:
            await self._check_balance(tx)
        return tx

    async def _check_balance(self, tx: transaction.Transaction) -> None:
        required = tx.system_fee + tx.network_fee
        balances = await self.facade.get_nep17_balances(tx.sender)
        available = balances.balance_of(self.gas_contract_hash)  # type: ignore
        if available < required:
            raise errors.InsufficientFunds(required, available)

    async def sign(self, key_provider: signing.KeyProvider) -> transaction.Transaction:
        """
        Finalize the transaction and sign it for every signer.

        Args:
            key_provider: called once per signer with ``(signer, tx, network_magic)`` and returns the witness.

        Raises:
            NoScript: if no script is set.
            NoSigners: if no signers are set.
            InvocationFault: if the test invocation of the script faults.
            InsufficientFunds: if the sender cannot pay the fees.
            InvalidInput: if a returned witness does not belong to its signer.
        """
        tx = await self.build_unsigned(key_provider)

        witnesses = []
        for signer in tx.signers:
            witness = key_provider(signer, tx, self.network_magic)
            if inspect.isawaitable(witness):
                witness = await witness
            witnesses.append(witness)
        self.state = BuilderState.SIGNED

        for signer, witness in zip(tx.signers, witnesses):
            if witness.script_hash() != signer.account:
                self._touch()
                raise errors.InvalidInput(
                    f"Witness verification script hashes to {witness.script_hash()}, expected {signer.account}"
                )
        tx.witnesses = witnesses
        self.state = BuilderState.FINALIZED
        logger.debug(
            f"Finalized transaction 0x{tx.hash()} system_fee={tx.system_fee} network_fee={tx.network_fee}"
        )
        return tx

    async def send(self, tx: transaction.Transaction) -> types.UInt256:
        """
        Broadcast a signed transaction.

        Returns:
            the transaction hash. Acceptance only means the transaction entered the node's memory pool.
        """
        tx_hash = await self.facade.send_raw_transaction(tx)
        if tx_hash != tx.hash():
            logger.warning(f"Node returned hash 0x{tx_hash} for transaction 0x{tx.hash()}")
        return tx_hash

    async def wait_for_receipt(
        self, tx_hash: types.UInt256, timeout: float = 20.0, retry_delay: float = 5.0
    ) -> noderpc.ApplicationLog:
        """
        Poll the application log of `tx_hash` until the transaction is persisted.

        Args:
            tx_hash: unique identifier of the transaction.
            timeout: maximum time to wait to find the transaction on chain.
            retry_delay: interval between querying the chain for the transaction.

        Raises:
            JsonRpcTimeoutError: if timeout threshold is exceeded.
            JsonRpcError: for other errors that might occur.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                return await self.facade.get_application_log(tx_hash)
            except errors.JsonRpcError as e:
                if "unknown transaction" not in e.message.lower():
                    raise
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise errors.JsonRpcTimeoutError(
                    f"Could not find receipt for {tx_hash} within specified timeout of {timeout} seconds"
                )
            await asyncio.sleep(min(retry_delay, remaining))
