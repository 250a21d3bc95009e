from __future__ import annotations
import binascii
from typing import Type, TypeVar
from neoviper import errors
from neoviper.core import serialization

__all__ = ["UInt160", "UInt256"]

UInt_T = TypeVar("UInt_T", bound="_UIntBase")


class _UIntBase(serialization.ISerializable):
    """
    Fixed width unsigned integer stored as little endian bytes.

    The human readable form (``str()``, JSON) is the big endian hex string, i.e. the internal bytes reversed.
    """

    _BYTE_LEN = 0

    def __init__(self, data: bytes | bytearray | None = None) -> None:
        if data is None:
            self._data = bytes(self._BYTE_LEN)
        else:
            if len(data) != self._BYTE_LEN:
                raise errors.InvalidInput(
                    f"Invalid {type(self).__name__}: data length {len(data)} != {self._BYTE_LEN}"
                )
            self._data = bytes(data)

    def __len__(self) -> int:
        return self._BYTE_LEN

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return False
        return self._data == other._data

    def __hash__(self):
        return hash(self._data)

    def __str__(self):
        return self._data[::-1].hex()

    def __repr__(self):
        return f"<{type(self).__name__} at {hex(id(self))}> 0x{self}"

    def __lt__(self, other):
        return self._compare_to(other) < 0

    def __gt__(self, other):
        return self._compare_to(other) > 0

    def __le__(self, other):
        return self._compare_to(other) <= 0

    def __ge__(self, other):
        return self._compare_to(other) >= 0

    def _compare_to(self, other) -> int:
        if not isinstance(other, type(self)):
            raise TypeError(f"Cannot compare {type(self).__name__} to type {type(other).__name__}")
        x = int.from_bytes(self._data, "little")
        y = int.from_bytes(other._data, "little")
        return (x > y) - (x < y)

    def to_array(self) -> bytes:
        """Return the internal (little endian) bytes."""
        return self._data

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_bytes(self._data)

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        self._data = reader.read_bytes(self._BYTE_LEN)

    @classmethod
    def deserialize_from_bytes(cls: Type[UInt_T], data: bytes | bytearray) -> UInt_T:
        """
        Parse data into an object instance.

        Raises:
            InvalidInput: if the length of the supplied data does not match the type.
        """
        return cls(data)

    @classmethod
    def from_string(cls: Type[UInt_T], value: str) -> UInt_T:
        """
        Parse a big endian hex string (with or without ``0x`` prefix) into an instance.

        Raises:
            InvalidHex: if the string is not valid hex.
            InvalidInput: if the length does not match the type.
        """
        if value.startswith(("0x", "0X")):
            value = value[2:]
        if len(value) % 2 != 0:
            raise errors.InvalidHex(f"Hex string has odd length {len(value)}")
        if len(value) != cls._BYTE_LEN * 2:
            raise errors.InvalidInput(
                f"Invalid {cls.__name__} format: {len(value)} chars != {cls._BYTE_LEN * 2} chars"
            )
        try:
            data = binascii.unhexlify(value)
        except (binascii.Error, ValueError):
            raise errors.InvalidHex(f"Invalid hex string: {value}") from None
        return cls(data[::-1])

    @classmethod
    def zero(cls: Type[UInt_T]) -> UInt_T:
        """
        Returns:
            An instance initialized to zero.
        """
        return cls(bytes(cls._BYTE_LEN))

    @classmethod
    def _serializable_init(cls):
        return cls.zero()


class UInt160(_UIntBase):
    """A 20 byte script hash."""

    _BYTE_LEN = 20


class UInt256(_UIntBase):
    """A 32 byte hash, i.e. a transaction or block hash."""

    _BYTE_LEN = 32
