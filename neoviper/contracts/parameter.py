"""
Typed contract call arguments.

A :class:`ContractParameter` pairs a :class:`ContractParameterType` with a payload. Use the per type constructors
(``ContractParameter.hash160(...)``) or :meth:`ContractParameter.from_native` to build one.
"""
from __future__ import annotations
import base64
from dataclasses import dataclass
from enum import IntEnum, Enum
from typing import Any, Iterable
from neoviper import errors
from neoviper.core import types, cryptography, serialization, interfaces

INTEGER_MIN = -(2**255)
INTEGER_MAX = 2**255 - 1


class ContractParameterType(IntEnum):
    """
    Type information for a contract method parameter.
    """

    ANY = 0x00
    BOOLEAN = 0x10
    INTEGER = 0x11
    BYTEARRAY = 0x12
    STRING = 0x13
    HASH160 = 0x14
    HASH256 = 0x15
    PUBLICKEY = 0x16
    SIGNATURE = 0x17
    ARRAY = 0x20
    MAP = 0x22
    INTEROPINTERFACE = 0x30
    VOID = 0xFF

    def PascalCase(self) -> str:
        if self == ContractParameterType.BYTEARRAY:
            return "ByteArray"
        elif self == ContractParameterType.INTEROPINTERFACE:
            return "InteropInterface"
        elif self == ContractParameterType.PUBLICKEY:
            return "PublicKey"
        else:
            return self.name.title()

    @classmethod
    def from_pascal_case(cls, value: str) -> ContractParameterType:
        for member in cls:
            if member.PascalCase() == value:
                return member
        raise ValueError(f"{value} is not a valid {cls.__name__}")


@dataclass(frozen=True)
class ContractParameter(interfaces.IJson):
    type: ContractParameterType
    value: Any = None

    @classmethod
    def any(cls) -> ContractParameter:
        return cls(ContractParameterType.ANY)

    @classmethod
    def boolean(cls, value: bool) -> ContractParameter:
        return cls(ContractParameterType.BOOLEAN, bool(value))

    @classmethod
    def integer(cls, value: int) -> ContractParameter:
        if isinstance(value, bool) or not isinstance(value, int):
            raise errors.InvalidInput(f"Expected an integer, got {type(value).__name__}")
        if not INTEGER_MIN <= value <= INTEGER_MAX:
            raise errors.InvalidInput(f"Integer {value} does not fit in 256 bits")
        return cls(ContractParameterType.INTEGER, int(value))

    @classmethod
    def byte_array(cls, value: bytes | bytearray) -> ContractParameter:
        return cls(ContractParameterType.BYTEARRAY, bytes(value))

    @classmethod
    def string(cls, value: str) -> ContractParameter:
        return cls(ContractParameterType.STRING, value)

    @classmethod
    def hash160(cls, value: types.UInt160) -> ContractParameter:
        if not isinstance(value, types.UInt160):
            raise errors.InvalidInput(f"Expected UInt160, got {type(value).__name__}")
        return cls(ContractParameterType.HASH160, value)

    @classmethod
    def hash256(cls, value: types.UInt256) -> ContractParameter:
        if not isinstance(value, types.UInt256):
            raise errors.InvalidInput(f"Expected UInt256, got {type(value).__name__}")
        return cls(ContractParameterType.HASH256, value)

    @classmethod
    def public_key(cls, value: cryptography.ECPoint) -> ContractParameter:
        return cls(ContractParameterType.PUBLICKEY, value)

    @classmethod
    def signature(cls, value: bytes) -> ContractParameter:
        if len(value) != 64:
            raise errors.InvalidInput(f"Signature must be 64 bytes, got {len(value)}")
        return cls(ContractParameterType.SIGNATURE, bytes(value))

    @classmethod
    def array(cls, items: Iterable[ContractParameter]) -> ContractParameter:
        return cls(ContractParameterType.ARRAY, tuple(items))

    @classmethod
    def map(cls, pairs: Iterable[tuple[ContractParameter, ContractParameter]]) -> ContractParameter:
        """
        Args:
            pairs: (key, value) pairs. Insertion order is kept.
        """
        return cls(ContractParameterType.MAP, tuple((k, v) for k, v in pairs))

    @classmethod
    def interop_interface(cls) -> ContractParameter:
        return cls(ContractParameterType.INTEROPINTERFACE)

    @classmethod
    def void(cls) -> ContractParameter:
        return cls(ContractParameterType.VOID)

    @classmethod
    def from_native(cls, obj: Any) -> ContractParameter:
        """
        Wrap a native Python value.

        ``bool``, ``int``, ``str``, ``bytes``, ``UInt160``, ``UInt256``, ``ECPoint``, lists/tuples, dicts,
        enums and serializable objects are supported. ``None`` becomes `Any`.

        Raises:
            InvalidInput: for unsupported types.
        """
        if obj is None:
            return cls.any()
        if isinstance(obj, ContractParameter):
            return obj
        if isinstance(obj, bool):
            return cls.boolean(obj)
        if isinstance(obj, Enum):
            return cls.from_native(obj.value)
        if isinstance(obj, int):
            return cls.integer(obj)
        if isinstance(obj, str):
            return cls.string(obj)
        if isinstance(obj, (bytes, bytearray)):
            return cls.byte_array(obj)
        if isinstance(obj, types.UInt160):
            return cls.hash160(obj)
        if isinstance(obj, types.UInt256):
            return cls.hash256(obj)
        if isinstance(obj, cryptography.ECPoint):
            return cls.public_key(obj)
        if isinstance(obj, (list, tuple)):
            return cls.array(map(cls.from_native, obj))
        if isinstance(obj, dict):
            return cls.map((cls.from_native(k), cls.from_native(v)) for k, v in obj.items())
        if isinstance(obj, serialization.ISerializable):
            return cls.byte_array(obj.to_array())
        raise errors.InvalidInput(f"Unsupported type {type(obj)}")

    def to_json(self) -> dict:
        """
        Convert into the JSON form accepted by the ``invokefunction`` RPC method.
        """
        json: dict[str, Any] = {"type": self.type.PascalCase()}
        match self.type:
            case ContractParameterType.BOOLEAN | ContractParameterType.STRING:
                json["value"] = self.value
            case ContractParameterType.INTEGER:
                json["value"] = str(self.value)
            case ContractParameterType.BYTEARRAY | ContractParameterType.SIGNATURE:
                json["value"] = base64.b64encode(self.value).decode()
            case ContractParameterType.HASH160 | ContractParameterType.HASH256:
                json["value"] = f"0x{self.value}"
            case ContractParameterType.PUBLICKEY:
                json["value"] = str(self.value)
            case ContractParameterType.ARRAY:
                json["value"] = [item.to_json() for item in self.value]
            case ContractParameterType.MAP:
                json["value"] = [{"key": k.to_json(), "value": v.to_json()} for k, v in self.value]
        return json

    @classmethod
    def from_json(cls, json: dict) -> ContractParameter:
        type_ = ContractParameterType.from_pascal_case(json["type"])
        value = json.get("value")
        match type_:
            case ContractParameterType.ANY | ContractParameterType.INTEROPINTERFACE | ContractParameterType.VOID:
                return cls(type_)
            case ContractParameterType.BOOLEAN:
                return cls.boolean(value)
            case ContractParameterType.INTEGER:
                return cls.integer(int(value))
            case ContractParameterType.STRING:
                return cls.string(value)
            case ContractParameterType.BYTEARRAY:
                return cls.byte_array(base64.b64decode(value))
            case ContractParameterType.SIGNATURE:
                return cls.signature(base64.b64decode(value))
            case ContractParameterType.HASH160:
                return cls.hash160(types.UInt160.from_string(value))
            case ContractParameterType.HASH256:
                return cls.hash256(types.UInt256.from_string(value))
            case ContractParameterType.PUBLICKEY:
                return cls.public_key(cryptography.ECPoint.from_string(value))
            case ContractParameterType.ARRAY:
                return cls.array(cls.from_json(item) for item in value)
            case ContractParameterType.MAP:
                return cls.map((cls.from_json(p["key"]), cls.from_json(p["value"])) for p in value)
        raise ValueError(f"Unsupported type {type_}")
