from __future__ import annotations
import binascii
import secrets
from typing import Type, Any
from neo3crypto import (  # type: ignore
    ECPoint as _ECPointCpp,
    ECCCurve,
    ECCException,
    sign as ecdsa_sign,
    verify as ecdsa_verify,
)
from neoviper import errors
from neoviper.core import serialization

# order of the secp256r1 group
SECP256R1_N = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551

# mypy workaround
type_ECPoint = type(_ECPointCpp)  # type: Any
type_Serializable = type(serialization.ISerializable)  # type: Any


class SerializableECPointMeta(type_ECPoint, type_Serializable):
    pass


class ECPoint(_ECPointCpp, serialization.ISerializable, metaclass=SerializableECPointMeta):
    """
    A point on the secp256r1 curve that serializes to its 33 byte compressed form.
    """

    def __init__(self, *args, **kwargs):
        super(ECPoint, self).__init__(*args, **kwargs)

    def __str__(self):
        return binascii.hexlify(self.encode_point(compressed=True)).decode("utf8")

    def __bool__(self):
        return True

    def __hash__(self):
        return hash(self.x + self.y)

    def __len__(self):
        return 1 if self.is_infinity else 33

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        if self.is_infinity:
            writer.write_bytes(b"\x00")
        else:
            writer.write_bytes(self.encode_point(True))

    def deserialize(self, reader: serialization.BinaryReader, curve=ECCCurve.SECP256R1) -> None:
        prefix = reader.read_byte()
        if prefix[0] in (2, 3):
            self.from_bytes(prefix + reader.read_bytes(32), curve, True)
        else:
            raise ValueError(f"Unsupported point encoding: {prefix.hex()}")

    @classmethod
    def deserialize_from_bytes(
        cls: Type[serialization.ISerializable_T],
        data: bytes | bytearray,
        curve: ECCCurve = ECCCurve.SECP256R1,
        validate: bool = True,
    ) -> serialization.ISerializable_T:
        """
        Parse a compressed or uncompressed encoded point.

        Args:
            data: the encoded point.
            curve: the curve type to decompress.
            validate: validate the point lies on the specified curve.
        """
        return cls(bytes(data), curve, validate)  # type: ignore

    @classmethod
    def from_string(cls, value: str) -> ECPoint:
        """Parse a hex encoded point."""
        try:
            data = binascii.unhexlify(value)
        except (binascii.Error, ValueError):
            raise errors.InvalidHex(f"Invalid hex string: {value}") from None
        try:
            return cls.deserialize_from_bytes(data)
        except (ECCException, ValueError) as e:
            raise errors.InvalidInput(f"Invalid public key {value}: {e}") from None

    @classmethod
    def _serializable_init(cls):
        return cls(b"\x00", ECCCurve.SECP256R1, False)


class KeyPair:
    """
    A secp256r1 private key and its public key.

    Raises:
        InvalidInput: if the private key is not 32 bytes or the scalar is outside ``[1, n-1]``.
    """

    def __init__(self, private_key: bytes, curve: ECCCurve = ECCCurve.SECP256R1):
        if len(private_key) != 32:
            raise errors.InvalidInput(f"Private key must be 32 bytes, got {len(private_key)}")
        if not 0 < int.from_bytes(private_key, "big") < SECP256R1_N:
            raise errors.InvalidInput("Private key scalar out of range")
        self.private_key = bytes(private_key)
        self.public_key: ECPoint = ECPoint(self.private_key, curve)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.private_key == other.private_key

    @classmethod
    def generate(cls) -> KeyPair:
        while True:
            candidate = secrets.token_bytes(32)
            if 0 < int.from_bytes(candidate, "big") < SECP256R1_N:
                return cls(candidate)
