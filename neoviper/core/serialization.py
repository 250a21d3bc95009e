from __future__ import annotations
import abc
import struct
import sys
from io import BytesIO
from typing import Type, TypeVar, Sequence

ISerializable_T = TypeVar("ISerializable_T", bound="ISerializable")

__all__ = ["ISerializable", "BinaryReader", "BinaryWriter", "encode_var_int", "var_int_size"]


def var_int_size(value: int) -> int:
    """Number of bytes the variable length encoding of `value` occupies."""
    if value < 0xFD:
        return 1
    elif value <= 0xFFFF:
        return 3
    elif value <= 0xFFFFFFFF:
        return 5
    return 9


def encode_var_int(value: int) -> bytes:
    """
    Encode an unsigned integer using NEO's variable length encoding.

    Values below ``0xFD`` take a single byte. Larger values get a marker byte (``0xFD``, ``0xFE`` or ``0xFF``)
    followed by 2, 4 or 8 little endian bytes.

    Raises:
        TypeError: if `value` is not an integer.
        ValueError: if `value` is negative or does not fit in 64 bits.
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{value} not int type.")
    if value < 0:
        raise ValueError(f"{value} too small.")
    if value < 0xFD:
        return bytes([value])
    elif value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    elif value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    elif value <= 0xFFFFFFFFFFFFFFFF:
        return b"\xff" + value.to_bytes(8, "little")
    raise ValueError(f"{value} too large.")


class ISerializable(abc.ABC):
    """
    An interface like class supporting NEO's binary serialization format.
    """

    @abc.abstractmethod
    def serialize(self, writer: BinaryWriter) -> None:
        """
        Write the wire form of this instance to `writer`.

        Args:
            writer: instance.
        """

    @abc.abstractmethod
    def deserialize(self, reader: BinaryReader) -> None:
        """
        Populate this instance from `reader`.

        Args:
            reader: instance.
        """

    @classmethod
    def deserialize_from_bytes(cls: Type[ISerializable_T], data: bytes | bytearray) -> ISerializable_T:
        """
        Create an instance from its wire form.

        Args:
            data: hex escaped bytes.

        Returns:
            a deserialized instance of the class.
        """
        with BinaryReader(data) as br:
            payload = cls._serializable_init()
            payload.deserialize(br)
            return payload

    def to_array(self) -> bytes:
        """Serialize the object into a bytearray."""
        with BinaryWriter() as bw:
            self.serialize(bw)
            return bw.to_array()

    @abc.abstractmethod
    def __len__(self):
        """Return the length of the object in number of bytes."""

    @classmethod
    def _serializable_init(cls):
        """
        If the inheritor has mandatory arguments, override this function and provide dummy values. These values will
        be overwritten by deserialization.
        """
        return cls()


class BinaryReader:
    """
    A convenience class for reading little endian data from byte streams.

    Example:
    ::

        with BinaryReader(b'\\x01\\x02') as br:
            my_value = br.read_uint16()
    """

    _uint16 = struct.Struct("<H")
    _uint32 = struct.Struct("<I")
    _uint64 = struct.Struct("<Q")
    _int64 = struct.Struct("<q")

    def __init__(self, stream: bytes | bytearray) -> None:
        self._stream = BytesIO(stream)

    def __enter__(self):
        return self

    def __exit__(self, *args, **kwargs):
        self.close()

    def __len__(self):
        return len(self._stream.getbuffer())

    def remaining(self) -> int:
        """Number of bytes not read yet."""
        return len(self) - self._stream.tell()

    def read_bytes(self, length: int) -> bytes:
        """
        Read exactly `length` bytes from the stream.

        Raises:
            ValueError: if `length` bytes of data cannot be read from the stream.
        """
        value = self._stream.read(length)
        if len(value) != length:
            raise ValueError(f"Could not read {length} bytes from stream. Only found {len(value)} bytes of data")
        return value

    def read_byte(self) -> bytes:
        return self.read_bytes(1)

    def read_bool(self) -> bool:
        return self.read_uint8() != 0

    def read_uint8(self) -> int:
        return self.read_bytes(1)[0]

    def read_uint16(self) -> int:
        return self._uint16.unpack(self.read_bytes(2))[0]

    def read_uint32(self) -> int:
        return self._uint32.unpack(self.read_bytes(4))[0]

    def read_uint64(self) -> int:
        return self._uint64.unpack(self.read_bytes(8))[0]

    def read_int64(self) -> int:
        return self._int64.unpack(self.read_bytes(8))[0]

    def read_var_int(self, max: int = 0xFFFFFFFFFFFFFFFF) -> int:
        """
        Read an integer that starts with a variable length indicator.

        Args:
            max: (Optional) maximum allowed value.

        Raises:
            ValueError: if the value exceeds the `max` argument.
        """
        fb = self.read_uint8()
        if fb == 0xFD:
            value = self.read_uint16()
        elif fb == 0xFE:
            value = self.read_uint32()
        elif fb == 0xFF:
            value = self.read_uint64()
        else:
            value = fb

        if value > max:
            raise ValueError(f"Invalid format - value {value} exceeds maximum {max}")
        return value

    def read_var_bytes(self, max: int = sys.maxsize) -> bytes:
        """
        Read bytes that start with a variable length indicator.

        Args:
            max: (Optional) maximum number of bytes to read.
        """
        length = self.read_var_int(max)
        return self.read_bytes(length)

    def read_var_string(self, max: int = sys.maxsize) -> str:
        """
        Read a var-int length prefixed UTF-8 string.

        Raises:
            ValueError: if decoding fails or insufficient data is present in the stream.
        """
        return self.read_var_bytes(max).decode("utf-8")

    def read_serializable(self, obj_type: Type[ISerializable_T]) -> ISerializable_T:
        """
        Read one `obj_type` instance.
        """
        obj = obj_type._serializable_init()
        obj.deserialize(self)
        return obj

    def read_serializable_list(self, obj_type: Type[ISerializable_T], max: int = sys.maxsize) -> list[ISerializable_T]:
        """
        Read a list of `obj_type` instances.

        The list is prefixed with its length as a var-int.

        Raises:
            ValueError: if the list holds more than `max` objects or data is missing.
        """
        count = self.read_var_int(max)
        return [self.read_serializable(obj_type) for _ in range(count)]

    def close(self) -> None:
        self._stream.close()


class BinaryWriter:
    """
    A convenience class for writing little endian data to byte streams.

    Example:
    ::

        with BinaryWriter() as bw:
            bw.write_uint8(5)
            data = bw.to_array()
    """

    def __init__(self) -> None:
        self._stream = BytesIO()

    def __enter__(self):
        return self

    def __exit__(self, *args, **kwargs):
        self.close()

    def __len__(self):
        return len(self._stream.getbuffer())

    def write_bytes(self, value: bytes) -> int:
        return self._stream.write(value)

    def write_bool(self, value: bool) -> int:
        return self.write_bytes(b"\x01" if value else b"\x00")

    def write_uint8(self, value: int) -> int:
        return self.write_bytes(bytes([value]))

    def write_uint16(self, value: int) -> int:
        return self.write_bytes(struct.pack("<H", value))

    def write_uint32(self, value: int) -> int:
        return self.write_bytes(struct.pack("<I", value))

    def write_uint64(self, value: int) -> int:
        return self.write_bytes(struct.pack("<Q", value))

    def write_int64(self, value: int) -> int:
        return self.write_bytes(struct.pack("<q", value))

    def write_var_int(self, value: int) -> int:
        """
        Write `value` as a var-int: 1, 3, 5 or 9 bytes depending on its size.

        See :func:`encode_var_int` for the format.
        """
        return self.write_bytes(encode_var_int(value))

    def write_var_bytes(self, value: bytes) -> int:
        """
        Write `value` prefixed by its length as a var-int.
        """
        self.write_var_int(len(value))
        return self.write_bytes(value)

    def write_var_string(self, value: str) -> int:
        return self.write_var_bytes(value.encode("utf-8"))

    def write_serializable(self, obj_instance: ISerializable) -> None:
        obj_instance.serialize(self)

    def write_serializable_list(self, objects: Sequence[ISerializable]) -> None:
        """
        Serialize a list of objects prefixed with its length.
        """
        self.write_var_int(len(objects))
        for o in objects:
            o.serialize(self)

    def close(self) -> None:
        self._stream.close()

    def to_array(self) -> bytes:
        """
        Everything written so far.
        """
        return self._stream.getvalue()
