"""
Verification (redeem) script helpers for single and multi-signature accounts.
"""
from __future__ import annotations
from collections.abc import Sequence
from typing import Optional
from neoviper import errors, vm
from neoviper.core import types, utils as coreutils, cryptography

MAX_MULTISIG_PUBLIC_KEYS = 1024


def create_signature_redeemscript(public_key: cryptography.ECPoint) -> bytes:
    """
    Create a single signature verification script.

    The script pushes the compressed public key and calls ``System.Crypto.CheckSig``.
    """
    sb = vm.ScriptBuilder()
    sb.push_data(public_key.encode_point(True))
    sb.emit_syscall(vm.Syscalls.SYSTEM_CRYPTO_CHECK_SIG)
    return sb.to_array()


def create_multisig_redeemscript(m: int, public_keys: Sequence[cryptography.ECPoint]) -> bytes:
    """
    Create a multi-signature verification script requiring `m` signatures from `public_keys`.

    The keys are sorted before they are written, so the same set of keys always results in the same script hash.

    Raises:
        InvalidInput: if `m` is lower than 1 or larger than the number of keys.
        InvalidInput: if more than 1024 public keys are supplied.
    """
    if m < 1:
        raise errors.InvalidInput(f"Minimum required signature count is 1, specified {m}.")
    if m > len(public_keys):
        raise errors.InvalidInput(
            "Invalid public key count. Minimum required signatures is bigger than supplied public keys count."
        )
    if len(public_keys) > MAX_MULTISIG_PUBLIC_KEYS:
        raise errors.InvalidInput(
            f"Supplied public key count ({len(public_keys)}) exceeds maximum of {MAX_MULTISIG_PUBLIC_KEYS}."
        )

    sb = vm.ScriptBuilder()
    sb.push_integer(m)
    for key in sorted(public_keys):
        sb.push_data(key.encode_point(True))
    sb.push_integer(len(public_keys))
    sb.emit_syscall(vm.Syscalls.SYSTEM_CRYPTO_CHECK_MULTISIG)
    return sb.to_array()


def public_key_to_script_hash(public_key: cryptography.ECPoint) -> types.UInt160:
    return coreutils.to_script_hash(create_signature_redeemscript(public_key))


def is_signature_contract(script: bytes) -> bool:
    """
    Test if the provided script is a single signature verification script.
    """
    return (
        len(script) == 40
        and script[0] == vm.OpCode.PUSHDATA1
        and script[1] == 33
        and script[35] == vm.OpCode.SYSCALL
        and script[36:40] == vm.Syscalls.SYSTEM_CRYPTO_CHECK_SIG.to_array()
    )


def is_multisig_contract(script: bytes) -> bool:
    valid, _, _ = parse_as_multisig_contract(script)
    return valid


def _read_small_int(script: bytes, offset: int) -> tuple[Optional[int], int]:
    """Read a PUSH1..PUSH16 / PUSHINT8 / PUSHINT16 value. Returns (value, new offset) or (None, offset)."""
    if offset >= len(script):
        return None, offset
    op = script[offset]
    if op == vm.OpCode.PUSHINT8 and offset + 1 < len(script):
        return script[offset + 1], offset + 2
    if op == vm.OpCode.PUSHINT16 and offset + 2 < len(script):
        return int.from_bytes(script[offset + 1:offset + 3], "little"), offset + 3
    if vm.OpCode.PUSH1 <= op <= vm.OpCode.PUSH16:
        return op - vm.OpCode.PUSH0, offset + 1
    return None, offset


def parse_as_multisig_contract(script: bytes) -> tuple[bool, int, list[cryptography.ECPoint]]:
    """
    Try to parse script as multisig contract and extract related data.

    Returns:
        bool: `True` if the script is a valid multi-signature verification script.
        int: the signing threshold if validation passed. 0 otherwise.
        list[ECPoint]: the public keys in the script if validation passed. An empty list otherwise.
    """
    script = bytes(script)
    failure: tuple[bool, int, list[cryptography.ECPoint]] = (False, 0, [])
    if len(script) < 42:
        return failure

    threshold, i = _read_small_int(script, 0)
    if threshold is None or not 1 <= threshold <= MAX_MULTISIG_PUBLIC_KEYS:
        return failure

    public_keys = []
    while i < len(script) and script[i] == vm.OpCode.PUSHDATA1:
        if len(script) <= i + 35 or script[i + 1] != 33:
            return failure
        try:
            public_keys.append(cryptography.ECPoint.deserialize_from_bytes(script[i + 2:i + 35]))
        except (cryptography.ECCException, ValueError):
            return failure
        i += 35

    if not threshold <= len(public_keys) <= MAX_MULTISIG_PUBLIC_KEYS:
        return failure

    count, i = _read_small_int(script, i)
    if count != len(public_keys):
        return failure

    if len(script) != i + 5 or script[i] != vm.OpCode.SYSCALL:
        return failure
    if script[i + 1:i + 5] != vm.Syscalls.SYSTEM_CRYPTO_CHECK_MULTISIG.to_array():
        return failure
    return True, threshold, public_keys
