"""
Neo Virtual Machine script construction.
"""
from __future__ import annotations
import hashlib
from collections.abc import Sequence
from enum import IntEnum, Enum
from typing import Optional, Any
from neoviper import errors
from neoviper.contracts import callflags
from neoviper.contracts.parameter import ContractParameter, ContractParameterType
from neoviper.core import types, serialization

MAX_PUSHDATA_LENGTH = 0xFFFFFFFF

# widths of the PUSHINT8..PUSHINT256 payloads, in opcode order
_PUSHINT_WIDTHS = (1, 2, 4, 8, 16, 32)

# parameter types the VM accepts as map keys (they all become primitive stack items)
_MAP_KEY_TYPES = (
    ContractParameterType.BOOLEAN,
    ContractParameterType.INTEGER,
    ContractParameterType.BYTEARRAY,
    ContractParameterType.STRING,
    ContractParameterType.HASH160,
    ContractParameterType.HASH256,
    ContractParameterType.PUBLICKEY,
    ContractParameterType.SIGNATURE,
)


def syscall_name_to_int(name: str) -> int:
    """
    Interop service id as used by the ``SYSCALL`` instruction.

    The id is the first 4 bytes of the SHA-256 of the ASCII name, read as little endian.
    """
    return int.from_bytes(hashlib.sha256(name.encode("ascii")).digest()[:4], "little", signed=False)


class OpCode(IntEnum):
    """
    NEO Virtual Machine instructions.

    Can be concatenated into a bytes sequence.

    Example:
        >>> OpCode.PUSHDATA1 + b'\x01' + OpCode.RET
        b'\x0c\x01@'
    """

    PUSHINT8 = 0x00
    PUSHINT16 = 0x01
    PUSHINT32 = 0x02
    PUSHINT64 = 0x03
    PUSHINT128 = 0x04
    PUSHINT256 = 0x05
    PUSHT = 0x08
    PUSHF = 0x09
    PUSHA = 0x0A
    PUSHNULL = 0x0B
    PUSHDATA1 = 0x0C
    PUSHDATA2 = 0x0D
    PUSHDATA4 = 0x0E
    PUSHM1 = 0x0F
    PUSH0 = 0x10
    PUSH1 = 0x11
    PUSH2 = 0x12
    PUSH3 = 0x13
    PUSH4 = 0x14
    PUSH5 = 0x15
    PUSH6 = 0x16
    PUSH7 = 0x17
    PUSH8 = 0x18
    PUSH9 = 0x19
    PUSH10 = 0x1A
    PUSH11 = 0x1B
    PUSH12 = 0x1C
    PUSH13 = 0x1D
    PUSH14 = 0x1E
    PUSH15 = 0x1F
    PUSH16 = 0x20
    NOP = 0x21
    JMP = 0x22
    JMP_L = 0x23
    JMPIF = 0x24
    JMPIF_L = 0x25
    JMPIFNOT = 0x26
    JMPIFNOT_L = 0x27
    JMPEQ = 0x28
    JMPEQ_L = 0x29
    JMPNE = 0x2A
    JMPNE_L = 0x2B
    JMPGT = 0x2C
    JMPGT_L = 0x2D
    JMPGE = 0x2E
    JMPGE_L = 0x2F
    JMPLT = 0x30
    JMPLT_L = 0x31
    JMPLE = 0x32
    JMPLE_L = 0x33
    CALL = 0x34
    CALL_L = 0x35
    CALLA = 0x36
    CALLT = 0x37
    ABORT = 0x38
    ASSERT = 0x39
    THROW = 0x3A
    TRY = 0x3B
    TRY_L = 0x3C
    ENDTRY = 0x3D
    ENDTRY_L = 0x3E
    ENDFINALLY = 0x3F
    RET = 0x40
    SYSCALL = 0x41
    DEPTH = 0x43
    DROP = 0x45
    NIP = 0x46
    XDROP = 0x48
    CLEAR = 0x49
    DUP = 0x4A
    OVER = 0x4B
    PICK = 0x4D
    TUCK = 0x4E
    SWAP = 0x50
    ROT = 0x51
    ROLL = 0x52
    REVERSE3 = 0x53
    REVERSE4 = 0x54
    REVERSEN = 0x55
    INITSSLOT = 0x56
    INITSLOT = 0x57
    LDSFLD0 = 0x58
    LDSFLD1 = 0x59
    LDSFLD2 = 0x5A
    LDSFLD3 = 0x5B
    LDSFLD4 = 0x5C
    LDSFLD5 = 0x5D
    LDSFLD6 = 0x5E
    LDSFLD = 0x5F
    STSFLD0 = 0x60
    STSFLD1 = 0x61
    STSFLD2 = 0x62
    STSFLD3 = 0x63
    STSFLD4 = 0x64
    STSFLD5 = 0x65
    STSFLD6 = 0x66
    STSFLD = 0x67
    LDLOC0 = 0x68
    LDLOC1 = 0x69
    LDLOC2 = 0x6A
    LDLOC3 = 0x6B
    LDLOC4 = 0x6C
    LDLOC5 = 0x6D
    LDLOC6 = 0x6E
    LDLOC = 0x6F
    STLOC0 = 0x70
    STLOC1 = 0x71
    STLOC2 = 0x72
    STLOC3 = 0x73
    STLOC4 = 0x74
    STLOC5 = 0x75
    STLOC6 = 0x76
    STLOC = 0x77
    LDARG0 = 0x78
    LDARG1 = 0x79
    LDARG2 = 0x7A
    LDARG3 = 0x7B
    LDARG4 = 0x7C
    LDARG5 = 0x7D
    LDARG6 = 0x7E
    LDARG = 0x7F
    STARG0 = 0x80
    STARG1 = 0x81
    STARG2 = 0x82
    STARG3 = 0x83
    STARG4 = 0x84
    STARG5 = 0x85
    STARG6 = 0x86
    STARG = 0x87
    NEWBUFFER = 0x88
    MEMCPY = 0x89
    CAT = 0x8B
    SUBSTR = 0x8C
    LEFT = 0x8D
    RIGHT = 0x8E
    INVERT = 0x90
    AND = 0x91
    OR = 0x92
    XOR = 0x93
    EQUAL = 0x97
    NOTEQUAL = 0x98
    SIGN = 0x99
    ABS = 0x9A
    NEGATE = 0x9B
    INC = 0x9C
    DEC = 0x9D
    ADD = 0x9E
    SUB = 0x9F
    MUL = 0xA0
    DIV = 0xA1
    MOD = 0xA2
    POW = 0xA3
    SQRT = 0xA4
    MODMUL = 0xA5
    MODPOW = 0xA6
    SHL = 0xA8
    SHR = 0xA9
    NOT = 0xAA
    BOOLAND = 0xAB
    BOOLOR = 0xAC
    NZ = 0xB1
    NUMEQUAL = 0xB3
    NUMNOTEQUAL = 0xB4
    LT = 0xB5
    LE = 0xB6
    GT = 0xB7
    GE = 0xB8
    MIN = 0xB9
    MAX = 0xBA
    WITHIN = 0xBB
    PACKMAP = 0xBE
    PACKSTRUCT = 0xBF
    PACK = 0xC0
    UNPACK = 0xC1
    NEWARRAY0 = 0xC2
    NEWARRAY = 0xC3
    NEWARRAY_T = 0xC4
    NEWSTRUCT0 = 0xC5
    NEWSTRUCT = 0xC6
    NEWMAP = 0xC8
    SIZE = 0xCA
    HASKEY = 0xCB
    KEYS = 0xCC
    VALUES = 0xCD
    PICKITEM = 0xCE
    APPEND = 0xCF
    SETITEM = 0xD0
    REVERSEITEMS = 0xD1
    REMOVE = 0xD2
    CLEARITEMS = 0xD3
    POPITEM = 0xD4
    ISNULL = 0xD8
    ISTYPE = 0xD9
    CONVERT = 0xDB

    @property
    def is_push(self) -> bool:
        """True for the instructions that only push a constant."""
        return self <= OpCode.PUSH16 and self != OpCode.PUSHA

    def __eq__(self, other):
        if isinstance(other, (bytes, bytearray)):
            return bytes([self.value]) == other
        return super(OpCode, self).__eq__(other)

    def __hash__(self):
        return hash(self.value)

    def __add__(self, other):
        if isinstance(other, OpCode):
            return bytes([self.value, other.value])
        if isinstance(other, (bytes, bytearray)):
            return bytes([self.value]) + other
        return super(OpCode, self).__add__(other)

    def __radd__(self, other):
        if isinstance(other, (bytes, bytearray)):
            return bytes(other) + bytes([self.value])
        return super(OpCode, self).__radd__(other)


class VMState(IntEnum):
    NONE = 0
    HALT = 1 << 0
    FAULT = 1 << 1
    BREAK = 1 << 2

    @staticmethod
    def from_string(value: str) -> VMState:
        match value:
            case "NONE":
                return VMState.NONE
            case "HALT":
                return VMState.HALT
            case "FAULT":
                return VMState.FAULT
            case "BREAK":
                return VMState.BREAK
            case _:
                raise ValueError(f"{value} cannot be converted to VMState")


class Syscall:
    def __init__(self, syscall_name: str, required_callflags: callflags.CallFlags):
        self.name = syscall_name
        self.number = syscall_name_to_int(self.name)
        self.required_callflags = required_callflags

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.number}, {self.name}>"

    def __eq__(self, other):
        if isinstance(other, Syscall):
            return self.number == other.number
        if isinstance(other, int):
            return self.number == other
        if isinstance(other, str):
            return self.name == other
        if isinstance(other, (bytes, bytearray)):
            return self.to_array() == other
        return False

    def __hash__(self):
        return self.number

    def to_array(self) -> bytes:
        return self.number.to_bytes(4, "little")


class Syscalls:
    """
    The interop services the SDK emits.
    """

    #: Call another smart contract.
    SYSTEM_CONTRACT_CALL = Syscall(
        "System.Contract.Call", callflags.CallFlags.READ_STATES | callflags.CallFlags.ALLOW_CALL
    )
    #: Validates a single signature of the current script container.
    SYSTEM_CRYPTO_CHECK_SIG = Syscall("System.Crypto.CheckSig", callflags.CallFlags.NONE)
    #: Validates m-out-of-n signatures of the current script container.
    SYSTEM_CRYPTO_CHECK_MULTISIG = Syscall("System.Crypto.CheckMultisig", callflags.CallFlags.NONE)
    #: Returns the script hash of the calling contract.
    SYSTEM_RUNTIME_GET_CALLING_SCRIPT_HASH = Syscall(
        "System.Runtime.GetCallingScriptHash", callflags.CallFlags.NONE
    )


class ScriptBuilder:
    """
    A utility class to create scripts (sequence of opcodes) that can be executed by the NEO Virtual Machine.

    All emit and push functions return the builder so calls can be chained.

    Example:
        >>> ScriptBuilder().push_string("Hello, ").push_string("Neo!").emit(OpCode.CAT).to_array()
    """

    def __init__(self):
        self.data = bytearray()

    def __len__(self):
        return len(self.data)

    def emit(self, opcode: OpCode, data: Optional[bytes] = None) -> ScriptBuilder:
        """
        Append a single instruction with an optional operand.
        """
        self.data.append(opcode.value)
        if data is not None:
            self.data.extend(data)
        return self

    def emit_raw(self, data: bytes) -> ScriptBuilder:
        self.data.extend(data)
        return self

    def push_integer(self, value: int) -> ScriptBuilder:
        """
        Push an integer using the smallest possible encoding.

        ``-1..16`` use the single byte ``PUSHM1``/``PUSH0``..``PUSH16`` instructions, anything else is written as
        little endian two's complement padded to 1, 2, 4, 8, 16 or 32 bytes with the matching ``PUSHINT*``.

        Raises:
            InvalidInput: if the value does not fit in 256 bits.
        """
        if isinstance(value, bool) or not isinstance(value, int):
            raise errors.InvalidInput(f"Expected an integer, got {type(value).__name__}")
        if -1 <= value <= 16:
            self.data.append(OpCode.PUSH0 + value)
            return self

        # minimal two's complement length
        length = ((value if value >= 0 else ~value).bit_length() + 8) // 8
        for i, width in enumerate(_PUSHINT_WIDTHS):
            if length <= width:
                return self.emit(OpCode(OpCode.PUSHINT8 + i), value.to_bytes(width, "little", signed=True))
        raise errors.InvalidInput("Input number exceeds maximum data size of 32 bytes")

    def push_bool(self, value: bool) -> ScriptBuilder:
        return self.emit(OpCode.PUSH1 if value else OpCode.PUSH0)

    def push_data(self, value: bytes | bytearray) -> ScriptBuilder:
        """
        Push a byte string using ``PUSHDATA1``, ``PUSHDATA2`` or ``PUSHDATA4`` depending on its length.

        Raises:
            InvalidInput: if the data is longer than 0xFFFF_FFFF bytes.
        """
        len_value = len(value)
        if len_value < 0x100:
            self.emit(OpCode.PUSHDATA1, len_value.to_bytes(1, "little"))
        elif len_value < 0x10000:
            self.emit(OpCode.PUSHDATA2, len_value.to_bytes(2, "little"))
        elif len_value <= MAX_PUSHDATA_LENGTH:
            self.emit(OpCode.PUSHDATA4, len_value.to_bytes(4, "little"))
        else:
            raise errors.InvalidInput(
                f"Value is too long {len_value}. Maximum allowed length is 0xFFFF_FFFF"
            )
        return self.emit_raw(value)

    def push_string(self, value: str) -> ScriptBuilder:
        return self.push_data(value.encode("utf-8"))

    def push_parameter(self, parameter: ContractParameter) -> ScriptBuilder:
        """
        Push a typed contract parameter.

        Arrays push their elements last to first followed by the count and ``PACK`` so that element 0 ends up at
        index 0. Maps push every (value, key) pair followed by the count and ``PACKMAP``.

        Raises:
            InvalidInput: for `InteropInterface` and `Void` parameters or unsupported map keys.
        """
        match parameter.type:
            case ContractParameterType.ANY:
                return self.emit(OpCode.PUSHNULL)
            case ContractParameterType.BOOLEAN:
                return self.push_bool(parameter.value)
            case ContractParameterType.INTEGER:
                return self.push_integer(parameter.value)
            case ContractParameterType.BYTEARRAY | ContractParameterType.SIGNATURE:
                return self.push_data(parameter.value)
            case ContractParameterType.STRING:
                return self.push_string(parameter.value)
            case ContractParameterType.HASH160 | ContractParameterType.HASH256 | ContractParameterType.PUBLICKEY:
                return self.push_data(parameter.value.to_array())
            case ContractParameterType.ARRAY:
                for item in reversed(parameter.value):
                    self.push_parameter(item)
                self.push_integer(len(parameter.value))
                return self.emit(OpCode.PACK)
            case ContractParameterType.MAP:
                for key, value in parameter.value:
                    # the VM only accepts primitive types as map keys
                    if key.type not in _MAP_KEY_TYPES:
                        raise errors.InvalidInput(f"Unsupported map key type {key.type.PascalCase()}")
                    self.push_parameter(value)
                    self.push_parameter(key)
                self.push_integer(len(parameter.value))
                return self.emit(OpCode.PACKMAP)
        raise errors.InvalidInput(f"Cannot push a parameter of type {parameter.type.PascalCase()}")

    def emit_push(self, value: Any) -> ScriptBuilder:
        """
        Push a native Python value or :class:`ContractParameter`.

        Raises:
            InvalidInput: for unsupported types.
        """
        if value is None:
            return self.emit(OpCode.PUSHNULL)
        elif isinstance(value, ContractParameter):
            return self.push_parameter(value)
        elif isinstance(value, bool):
            return self.push_bool(value)
        elif isinstance(value, Enum):
            return self.emit_push(value.value)
        elif isinstance(value, int):
            return self.push_integer(value)
        elif isinstance(value, str):
            return self.push_string(value)
        elif isinstance(value, (bytes, bytearray)):
            return self.push_data(value)
        elif isinstance(value, serialization.ISerializable):
            return self.push_data(value.to_array())
        return self.push_parameter(ContractParameter.from_native(value))

    def emit_syscall(self, syscall: int | str | Syscall) -> ScriptBuilder:
        if isinstance(syscall, Syscall):
            number = syscall.number
        elif isinstance(syscall, str):
            number = syscall_name_to_int(syscall)
        else:
            number = syscall
        return self.emit(OpCode.SYSCALL, number.to_bytes(4, "little"))

    def emit_contract_call(
        self,
        script_hash: types.UInt160,
        operation: str,
        args: Optional[Sequence] = None,
        call_flags: Optional[callflags.CallFlags] = None,
    ) -> ScriptBuilder:
        """
        Emit opcode sequence to call a smart contract operation.

        The arguments are pushed in reverse order and packed, so the first argument is element 0 of the array the
        callee receives.

        Args:
            script_hash: contract script hash.
            operation: method to call on contract.
            args: parameters to pass to the `operation`. Either :class:`ContractParameter` instances or native values.
            call_flags: call flags for the operation. Defaults to `CallFlags.ALL`.
        """
        if not args:
            self.emit(OpCode.NEWARRAY0)
        else:
            for arg in reversed(args):
                self.emit_push(arg)
            self.push_integer(len(args))
            self.emit(OpCode.PACK)
        self.push_integer(int(callflags.CallFlags.ALL if call_flags is None else call_flags))
        self.push_string(operation)
        self.push_data(script_hash.to_array())
        return self.emit_syscall(Syscalls.SYSTEM_CONTRACT_CALL)

    def to_array(self) -> bytes:
        return bytes(self.data)
