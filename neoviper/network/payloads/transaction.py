"""
The transaction payload: header fields, signers, attributes, script and witnesses.
"""
from __future__ import annotations
import abc
import base64
from collections.abc import Sequence
from enum import Enum
from typing import Optional
from neoviper import settings
from neoviper.core import Size as s, serialization, utils, types, interfaces
from neoviper.network.payloads import verification
from neoviper.wallet import utils as walletutils


class TransactionAttributeType(Enum):
    HIGH_PRIORITY = 0x1

    def to_csharp_name(self) -> str:
        return _ATTRIBUTE_NAMES[self]

    @classmethod
    def from_csharp_name(cls, name: str):
        for member, csharp_name in _ATTRIBUTE_NAMES.items():
            if csharp_name == name:
                return member
        raise ValueError(f"Unsupported transaction attribute {name}")


_ATTRIBUTE_NAMES = {TransactionAttributeType.HIGH_PRIORITY: "HighPriority"}


class TransactionAttribute(serialization.ISerializable, interfaces.IJson):
    """
    An attribute is a type byte followed by a type specific body.
    """

    type_: TransactionAttributeType

    def __len__(self):
        return s.uint8

    def __eq__(self, other):
        return type(self) is type(other)

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_uint8(self.type_.value)
        self._serialize_body(writer)

    @abc.abstractmethod
    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        pass

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        if reader.read_uint8() != self.type_.value:
            raise ValueError("Deserialization error - transaction attribute type mismatch")
        self._deserialize_body(reader)

    @abc.abstractmethod
    def _deserialize_body(self, reader: serialization.BinaryReader) -> None:
        pass

    @staticmethod
    def _attribute_class(type_: TransactionAttributeType):
        for sub in TransactionAttribute.__subclasses__():
            if sub.type_ == type_:
                return sub
        raise ValueError(f"No attribute class registered for {type_.name}")

    @staticmethod
    def read_from(reader: serialization.BinaryReader) -> TransactionAttribute:
        """
        Read one attribute of whatever type the stream announces.
        """
        try:
            type_ = TransactionAttributeType(reader.read_uint8())
        except ValueError:
            raise ValueError("Deserialization error - unknown transaction attribute type") from None
        attribute = TransactionAttribute._attribute_class(type_)._serializable_init()
        attribute._deserialize_body(reader)
        return attribute

    def to_json(self) -> dict:
        return {"type": self.type_.to_csharp_name()}

    @classmethod
    def from_json(cls, json: dict):
        type_ = TransactionAttributeType.from_csharp_name(json["type"])
        return TransactionAttribute._attribute_class(type_)()


class HighPriorityAttribute(TransactionAttribute):
    """
    Moves the transaction to the front of the memory pool. Only honoured when the committee signs.
    """

    type_ = TransactionAttributeType.HIGH_PRIORITY

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        pass

    def _deserialize_body(self, reader: serialization.BinaryReader) -> None:
        pass


class Transaction(serialization.ISerializable, interfaces.IJson):
    """
    A script plus the accounts authorizing it and the fees paid for it.

    The hash is the double SHA-256 of the unsigned part (everything except the witnesses). Witnesses sign
    :meth:`get_hash_data`, which prefixes that hash with the network magic.
    """

    MAX_TRANSACTION_SIZE = 102400
    #: 24h worth of 15 second blocks
    MAX_VALID_UNTIL_BLOCK_INCREMENT = 5760
    #: shared limit for signers and attributes together
    MAX_TRANSACTION_ATTRIBUTES = 16
    #: version + nonce + system fee + network fee + valid until block
    HEADER_SIZE = s.uint8 + s.uint32 + s.uint64 + s.uint64 + s.uint32

    def __init__(
        self,
        version: int,
        nonce: int,
        system_fee: int,
        network_fee: int,
        valid_until_block: int,
        attributes: Optional[list[TransactionAttribute]] = None,
        signers: Optional[Sequence[verification.Signer]] = None,
        script: Optional[bytes] = None,
        witnesses: Optional[list[verification.Witness]] = None,
    ):
        #: always 0
        self.version = version
        self.nonce = nonce
        #: GAS burned by executing `script`, in datoshi
        self.system_fee = system_fee
        #: GAS paid for size and witness verification, in datoshi
        self.network_fee = network_fee
        #: last block height that may include this transaction
        self.valid_until_block = valid_until_block
        self.attributes = attributes if attributes else []
        #: the first signer is the sender and pays the fees
        self.signers = list(signers) if signers else []
        self.script = script if script else b""
        #: one per signer, in signer order
        self.witnesses = witnesses if witnesses else []

    def __len__(self):
        return (
            self.HEADER_SIZE
            + utils.get_var_size(self.signers)
            + utils.get_var_size(self.attributes)
            + utils.get_var_size(self.script)
            + utils.get_var_size(self.witnesses)
        )

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return self.hash() == other.hash()

    def __hash__(self):
        return hash(self.hash())

    def hash(self) -> types.UInt256:
        """
        Transaction id. Witnesses do not contribute, so signing does not change it.
        """
        return types.UInt256(utils.hash256(self.unsigned_data()))

    def unsigned_data(self) -> bytes:
        with serialization.BinaryWriter() as writer:
            self.serialize_unsigned(writer)
            return writer.to_array()

    def get_hash_data(self, network_magic: Optional[int] = None) -> bytes:
        """
        Get the data that witnesses sign.

        Args:
            network_magic: network protocol number. Defaults to the configured network magic.
        """
        if network_magic is None:
            network_magic = settings.settings.network.magic
        return network_magic.to_bytes(4, "little") + self.hash().to_array()

    @property
    def sender(self) -> types.UInt160:
        """
        Account of the first signer, or the zero hash if there are no signers yet.
        """
        if not self.signers:
            return types.UInt160.zero()
        return self.signers[0].account

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        self.serialize_unsigned(writer)
        writer.write_serializable_list(self.witnesses)

    def serialize_unsigned(self, writer: serialization.BinaryWriter) -> None:
        writer.write_uint8(self.version)
        writer.write_uint32(self.nonce)
        writer.write_int64(self.system_fee)
        writer.write_int64(self.network_fee)
        writer.write_uint32(self.valid_until_block)
        writer.write_serializable_list(self.signers)
        writer.write_serializable_list(self.attributes)
        writer.write_var_bytes(self.script)

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        self.deserialize_unsigned(reader)
        self.witnesses = reader.read_serializable_list(verification.Witness, max=len(self.signers))
        if len(self.witnesses) != len(self.signers):
            raise ValueError("Deserialization error - witness count differs from signer count")

    def deserialize_unsigned(self, reader: serialization.BinaryReader) -> None:
        """
        Raises:
            ValueError: on a non-zero version, negative fees, missing or duplicate signers, or an empty script.
        """
        self.version = reader.read_uint8()
        if self.version != 0:
            raise ValueError("Deserialization error - invalid version")
        self.nonce = reader.read_uint32()
        self.system_fee, self.network_fee = reader.read_int64(), reader.read_int64()
        if self.system_fee < 0 or self.network_fee < 0:
            raise ValueError("Deserialization error - fees must not be negative")
        self.valid_until_block = reader.read_uint32()

        self.signers = reader.read_serializable_list(verification.Signer, max=self.MAX_TRANSACTION_ATTRIBUTES)
        if not self.signers:
            raise ValueError("Deserialization error - no signers")
        if len({signer.account for signer in self.signers}) != len(self.signers):
            raise ValueError("Deserialization error - duplicate signers")

        count = reader.read_var_int(self.MAX_TRANSACTION_ATTRIBUTES - len(self.signers))
        self.attributes = [TransactionAttribute.read_from(reader) for _ in range(count)]

        self.script = reader.read_var_bytes(max=0xFFFF)
        if not self.script:
            raise ValueError("Deserialization error - invalid script length 0")

    @classmethod
    def deserialize_from_bytes(cls, data: bytes | bytearray) -> Transaction:
        if len(data) > cls.MAX_TRANSACTION_SIZE:
            raise ValueError(f"Deserialization error - transaction exceeds {cls.MAX_TRANSACTION_SIZE} bytes")
        return super(Transaction, cls).deserialize_from_bytes(data)

    def fee_per_byte(self) -> int:
        return self.network_fee // len(self)

    def to_json(self) -> dict:
        return {
            "hash": f"0x{self.hash()}",
            "size": len(self),
            "version": self.version,
            "nonce": self.nonce,
            "sender": walletutils.script_hash_to_address(self.sender),
            "sysfee": str(self.system_fee),
            "netfee": str(self.network_fee),
            "validuntilblock": self.valid_until_block,
            "signers": [signer.to_json() for signer in self.signers],
            "attributes": [attr.to_json() for attr in self.attributes],
            "script": base64.b64encode(self.script).decode(),
            "witnesses": [w.to_json() for w in self.witnesses],
        }

    @classmethod
    def from_json(cls, json: dict):
        return cls(
            version=json["version"],
            nonce=json["nonce"],
            system_fee=int(json["sysfee"]),
            network_fee=int(json["netfee"]),
            valid_until_block=json["validuntilblock"],
            attributes=[TransactionAttribute.from_json(a) for a in json["attributes"]],
            signers=[verification.Signer.from_json(signer) for signer in json["signers"]],
            script=base64.b64decode(json["script"]),
            witnesses=[verification.Witness.from_json(w) for w in json["witnesses"]],
        )

    @classmethod
    def _serializable_init(cls):
        return cls(0, 0, 0, 0, 0)
