"""
Hashing, hex and size helpers shared by the other packages.
"""
from __future__ import annotations
import binascii
import hashlib
from enum import Enum
from typing import Any, Sequence
from Crypto.Hash import RIPEMD160  # type: ignore
from neoviper import errors
from neoviper.core import serialization, types


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """Double SHA-256."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ripemd160(data: bytes) -> bytes:
    # OpenSSL 3 no longer guarantees ripemd160 in hashlib
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD-160 over SHA-256."""
    return ripemd160(sha256(data))


def to_script_hash(data: bytes) -> types.UInt160:
    """
    Create a script hash from the given script.

    The digest is stored as is, which makes it the internal little endian form of the hash. The display form
    (``str()``) is the reversed digest.

    Args:
        data: the script to hash.
    """
    return types.UInt160(hash160(data))


def from_hex(value: str) -> bytes:
    """
    Decode a hex string with optional ``0x`` prefix.

    Raises:
        InvalidHex: if the length is odd or non-hex characters are present.
    """
    if value.startswith(("0x", "0X")):
        value = value[2:]
    if len(value) % 2 != 0:
        raise errors.InvalidHex(f"Hex string has odd length {len(value)}")
    try:
        return binascii.unhexlify(value)
    except (binascii.Error, ValueError):
        raise errors.InvalidHex(f"Invalid hex string: {value}") from None


def get_var_size(value: Any) -> int:
    """
    Return the serialized size of `value` when written with a variable length prefix.

    Supports ints (the prefix itself), bytes, str (UTF-8), enums (1 byte) and sequences of serializable objects.

    Raises:
        ValueError: for unsupported types.
    """
    if isinstance(value, Enum):
        return 1
    if isinstance(value, int):
        return serialization.var_int_size(value)
    if isinstance(value, (bytes, bytearray)):
        return serialization.var_int_size(len(value)) + len(value)
    if isinstance(value, str):
        length = len(value.encode("utf-8"))
        return serialization.var_int_size(length) + length
    if isinstance(value, Sequence):
        return serialization.var_int_size(len(value)) + sum(len(item) for item in value)
    raise ValueError(f"[NOT SUPPORTED] Unexpected value type {type(value).__name__} for get_var_size()")
