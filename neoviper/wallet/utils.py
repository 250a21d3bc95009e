"""
NEO address utilities.
"""
from typing import Optional
import base58  # type: ignore
from neoviper import errors, settings
from neoviper.core import types
from neoviper.wallet.types import NeoAddress


def _version(address_version: Optional[int]) -> int:
    return settings.settings.network.account_version if address_version is None else address_version


def script_hash_to_address(script_hash: types.UInt160, address_version: Optional[int] = None) -> NeoAddress:
    """
    Convert the specified script hash to an address.

    Args:
        script_hash: script hash to convert.
        address_version: network protocol address version. Defaults to the configured version (`0x35` on MainNet
         and TestNet). Use the `getversion()` RPC method to query for its value.
    """
    data = _version(address_version).to_bytes(1, "little") + script_hash.to_array()
    return base58.b58encode_check(data).decode("utf-8")


def address_to_script_hash(address: NeoAddress, address_version: Optional[int] = None) -> types.UInt160:
    """
    Convert the specified address to a script hash.

    Raises:
        InvalidAddress: if the address is not valid base58, the checksum does not match, the length is wrong or the
         version byte differs from `address_version`.
    """
    data = _decode(address, _version(address_version))
    return types.UInt160(data[1:])


def is_valid_address(address: NeoAddress, address_version: Optional[int] = None) -> bool:
    """
    Test if the provided address is a valid address.
    """
    try:
        validate_address(address, address_version)
    except errors.InvalidAddress:
        return False
    return True


def validate_address(address: NeoAddress, address_version: Optional[int] = None) -> None:
    """
    Validate a given address. If address is not valid an exception will be raised.

    Raises:
        InvalidAddress: if the address is not valid.
    """
    _decode(address, _version(address_version))


def _decode(address: NeoAddress, address_version: int) -> bytes:
    try:
        data: bytes = base58.b58decode_check(address)
    except ValueError as e:
        raise errors.InvalidAddress(f"Invalid address {address}: {e}") from None
    if len(data) != len(types.UInt160.zero()) + 1:
        raise errors.InvalidAddress(
            f"The address is wrong, because data (address value in bytes) length should be "
            f"{len(types.UInt160.zero()) + 1}"
        )
    elif data[0] != address_version:
        raise errors.InvalidAddress(f"The account version is not {address_version}")
    return data
