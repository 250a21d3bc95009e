"""
Key providers for use with `TransactionBuilder.sign`.

A key provider is called once per signer as ``provider(signer, tx, network_magic)`` and returns the witness for that
signer, either directly or as an awaitable. Providers that know the verification script of an account upfront expose
it through ``verification_script(account)``, which the builder uses for an exact network fee.
"""
from __future__ import annotations
import asyncio
from typing import Awaitable, Callable, Optional, Union
from collections.abc import Sequence, Mapping
from neoviper import vm
from neoviper.contracts import utils as contractutils
from neoviper.core import cryptography, types
from neoviper.network.payloads import transaction, verification
from neoviper.wallet import account

KeyProvider = Callable[
    [verification.Signer, transaction.Transaction, int],
    Union[verification.Witness, Awaitable[verification.Witness]],
]


class KeyPairSigner:
    """
    Sign with raw key pairs. Each key pair signs for the single signature account derived from its public key.
    """

    def __init__(self, *key_pairs: cryptography.KeyPair):
        self._by_account: dict[types.UInt160, cryptography.KeyPair] = {
            contractutils.public_key_to_script_hash(kp.public_key): kp for kp in key_pairs
        }

    def verification_script(self, account_hash: types.UInt160) -> Optional[bytes]:
        kp = self._by_account.get(account_hash)
        return contractutils.create_signature_redeemscript(kp.public_key) if kp else None

    def __call__(
        self, signer: verification.Signer, tx: transaction.Transaction, network_magic: int
    ) -> verification.Witness:
        kp = self._by_account.get(signer.account)
        if kp is None:
            raise ValueError(f"No key available for signer {signer.account}")
        signature = cryptography.sign(tx.get_hash_data(network_magic), kp.private_key)
        invocation_script = vm.ScriptBuilder().push_data(signature).to_array()
        return verification.Witness(invocation_script, contractutils.create_signature_redeemscript(kp.public_key))


class AccountSigner:
    """
    Sign with single signature accounts. Locked accounts are decrypted in the default executor.
    """

    def __init__(self, accounts: Sequence[account.Account], passwords: Optional[Mapping[str, str]] = None):
        """
        Args:
            accounts: the accounts to sign with.
            passwords: address -> password for locked accounts.
        """
        self._by_account = {acc.script_hash: acc for acc in accounts}
        self._passwords = dict(passwords) if passwords else {}

    def verification_script(self, account_hash: types.UInt160) -> Optional[bytes]:
        acc = self._by_account.get(account_hash)
        if acc is None or acc.public_key is None:
            return None
        return acc.verification_script

    async def __call__(
        self, signer: verification.Signer, tx: transaction.Transaction, network_magic: int
    ) -> verification.Witness:
        acc = self._by_account.get(signer.account)
        if acc is None:
            raise ValueError(f"No account available for signer {signer.account}")
        if acc.is_watchonly:
            raise ValueError(f"Cannot sign with watch only account {acc.address}")
        password = self._passwords.get(acc.address)
        if not acc.is_locked:
            return acc.sign_tx(tx, password, network_magic)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, acc.sign_tx, tx, password, network_magic)


class MultiSigSigner:
    """
    Sign for an `m` out of `n` multi-signature account with the participating accounts at hand.
    """

    def __init__(
        self,
        accounts: Sequence[account.Account],
        m: int,
        public_keys: Sequence[cryptography.ECPoint],
        passwords: Optional[Mapping[str, str]] = None,
    ):
        self.accounts = list(accounts)
        self.m = m
        self.public_keys = list(public_keys)
        self._passwords = dict(passwords) if passwords else {}
        self._script = contractutils.create_multisig_redeemscript(m, self.public_keys)
        self.script_hash = verification.Witness(b"", self._script).script_hash()

    def verification_script(self, account_hash: types.UInt160) -> Optional[bytes]:
        return self._script if account_hash == self.script_hash else None

    async def __call__(
        self, signer: verification.Signer, tx: transaction.Transaction, network_magic: int
    ) -> verification.Witness:
        if signer.account != self.script_hash:
            raise ValueError(f"Signer {signer.account} is not the multi-signature account {self.script_hash}")
        context = account.MultiSigContext(self._script)
        loop = asyncio.get_running_loop()
        for acc in self.accounts:
            if acc.is_watchonly:
                continue
            if acc.public_key is not None and acc.public_key not in context.expected_public_keys:
                continue
            password = self._passwords.get(acc.address)
            witness = await loop.run_in_executor(None, acc.sign_multisig, tx, context, password, network_magic)
            if witness is not None:
                return witness
        raise ValueError(
            f"Collected {len(context.signature_pairs)} of {context.signing_threshold} required signatures"
        )


class CompositeSigner:
    """
    Dispatch each signer to the first provider that knows its verification script.
    """

    def __init__(self, *providers):
        self.providers = providers

    def _provider_for(self, account_hash: types.UInt160):
        for provider in self.providers:
            if provider.verification_script(account_hash) is not None:
                return provider
        return None

    def verification_script(self, account_hash: types.UInt160) -> Optional[bytes]:
        provider = self._provider_for(account_hash)
        return provider.verification_script(account_hash) if provider else None

    async def __call__(
        self, signer: verification.Signer, tx: transaction.Transaction, network_magic: int
    ) -> verification.Witness:
        provider = self._provider_for(signer.account)
        if provider is None:
            raise ValueError(f"No key provider for signer {signer.account}")
        witness = provider(signer, tx, network_magic)
        if asyncio.iscoroutine(witness) or isinstance(witness, asyncio.Future):
            witness = await witness
        return witness


def account_signer(acc: account.Account, password: Optional[str] = None) -> AccountSigner:
    """
    Key provider for a single account. `password` is only needed if the account is locked.
    """
    return AccountSigner([acc], {acc.address: password} if password is not None else None)


def multisig_signer(
    accounts: Sequence[account.Account],
    passwords: Optional[Sequence[Optional[str]]],
    threshold_pubkeys: tuple[int, Sequence[cryptography.ECPoint]],
) -> MultiSigSigner:
    """
    Key provider for a multi-signature account.

    Args:
        accounts: participating accounts. At least `m` of them must hold key material.
        passwords: one password per account (``None`` for unlocked accounts).
        threshold_pubkeys: ``(m, public keys)`` of the multi-signature account.
    """
    m, public_keys = threshold_pubkeys
    mapping = None
    if passwords is not None:
        mapping = {acc.address: pw for acc, pw in zip(accounts, passwords) if pw is not None}
    return MultiSigSigner(accounts, m, public_keys, mapping)
