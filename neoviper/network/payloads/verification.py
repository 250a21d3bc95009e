"""
Classes for managing transaction signers, signature scopes and witnesses.
"""
from __future__ import annotations
import abc
import base64
from collections.abc import Sequence
from enum import IntFlag, IntEnum
from typing import Optional, Any, Iterator, ClassVar
from neoviper import errors
from neoviper.core import serialization, utils, types, cryptography, Size as s, interfaces


class WitnessScope(IntFlag):
    """
    Where a signature counts when a contract calls `CheckWitness()`.
    """

    #: fee payment only, no contract sees the witness
    NONE = 0x0
    #: only the entry script sees the witness
    CALLED_BY_ENTRY = 0x01
    #: contracts listed in `Signer.allowed_contracts`
    CUSTOM_CONTRACTS = 0x10
    #: contracts whose manifest holds a key from `Signer.allowed_groups`
    CUSTOM_GROUPS = 0x20
    #: decided by `Signer.rules`
    WITNESS_RULES = 0x40
    #: everywhere. Cannot be combined.
    GLOBAL = 0x80

    def to_csharp_name(self) -> str:
        """Comma separated names as used by the node RPC interface."""
        if self == WitnessScope.NONE:
            return "None"
        return ", ".join(name for flag, name in _SCOPE_NAMES if flag in self)

    @classmethod
    def from_csharp_name(cls, csharp_name: str) -> WitnessScope:
        scope = cls.NONE
        for part in csharp_name.split(","):
            part = part.strip()
            if part == "None":
                continue
            for flag, name in _SCOPE_NAMES:
                if name == part:
                    scope |= flag
                    break
            else:
                raise ValueError(f"{part} is not a valid member of {cls.__name__}")
        return scope


_SCOPE_NAMES = (
    (WitnessScope.CALLED_BY_ENTRY, "CalledByEntry"),
    (WitnessScope.CUSTOM_CONTRACTS, "CustomContracts"),
    (WitnessScope.CUSTOM_GROUPS, "CustomGroups"),
    (WitnessScope.WITNESS_RULES, "WitnessRules"),
    (WitnessScope.GLOBAL, "Global"),
)

_VALID_SCOPE_BITS = 0
for _flag, _ in _SCOPE_NAMES:
    _VALID_SCOPE_BITS |= _flag


class WitnessRuleAction(IntEnum):
    """
    Outcome of a matching rule.
    """

    DENY = 0
    ALLOW = 1


class WitnessConditionType(IntEnum):
    """
    Wire tag of each condition kind.
    """

    BOOLEAN = 0x0
    NOT = 0x01
    AND = 0x2
    OR = 0x03
    SCRIPT_HASH = 0x18
    GROUP = 0x19
    CALLED_BY_ENTRY = 0x20
    CALLED_BY_CONTRACT = 0x28
    CALLED_BY_GROUP = 0x29

    def to_csharp_string(self) -> str:
        return "".join(part.title() for part in self.name.split("_"))

    @classmethod
    def from_csharp_string(cls, name: str) -> WitnessConditionType:
        for member in cls:
            if member.to_csharp_string() == name:
                return member
        raise ValueError(f"{name} cannot be converted to {cls.__name__}")


class WitnessCondition(serialization.ISerializable, interfaces.IJson):
    """
    A node of a witness rule condition tree.

    Composite conditions (`And`, `Or`, `Not`) may nest at most ``MAX_NESTING_DEPTH`` levels deep and a single
    condition tree may hold at most ``MAX_SUB_ITEMS`` nodes.
    """

    MAX_SUB_ITEMS = 16
    MAX_NESTING_DEPTH = 2

    _type: ClassVar[WitnessConditionType] = WitnessConditionType.BOOLEAN
    _registry: ClassVar[dict[WitnessConditionType, type[WitnessCondition]]] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "_type" in cls.__dict__:
            WitnessCondition._registry[cls._type] = cls

    def __len__(self):
        return s.uint8

    @property
    def type(self) -> WitnessConditionType:
        return self._type

    def children(self) -> Sequence[WitnessCondition]:
        return ()

    def nesting_depth(self) -> int:
        """Number of composite levels in this tree. Leaves have depth 0."""
        children = self.children()
        if not children:
            return 0
        return 1 + max(c.nesting_depth() for c in children)

    def node_count(self) -> int:
        return 1 + sum(c.node_count() for c in self.children())

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_uint8(self.type.value)
        self._serialize_body(writer)

    @abc.abstractmethod
    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        pass

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        condition_type = reader.read_uint8()
        if condition_type != self.type:
            raise ValueError(f"Deserialization error - expected condition type {self.type}, got {condition_type}")
        self._deserialize_body(reader, self.MAX_NESTING_DEPTH)

    @abc.abstractmethod
    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        pass

    @staticmethod
    def _deserialize_conditions(reader: serialization.BinaryReader, max_nesting_depth: int) -> list[WitnessCondition]:
        count = reader.read_var_int(WitnessCondition.MAX_SUB_ITEMS)
        return [WitnessCondition._deserialize_from(reader, max_nesting_depth) for _ in range(count)]

    @staticmethod
    def _deserialize_from(reader: serialization.BinaryReader, max_nesting_depth: int) -> WitnessCondition:
        condition_type = reader.read_uint8()
        try:
            sub = WitnessCondition._registry[WitnessConditionType(condition_type)]
        except (KeyError, ValueError):
            raise ValueError(
                f"Deserialization error - unknown witness condition type {hex(condition_type)}"
            ) from None
        child = sub._serializable_init()
        child._deserialize_body(reader, max_nesting_depth)
        return child

    def to_json(self) -> dict:
        # subclasses extend this with their own members
        return {"type": self.type.to_csharp_string()}

    @classmethod
    def from_json(cls, json: dict) -> WitnessCondition:
        """Create the matching condition subclass from JSON."""
        condition_type = WitnessConditionType.from_csharp_string(json["type"])
        return WitnessCondition._registry[condition_type]._from_json(json)

    @classmethod
    @abc.abstractmethod
    def _from_json(cls, json: dict) -> WitnessCondition:
        """Construct an instance from the type specific JSON members."""


class _CompositeCondition(WitnessCondition):
    """Shared implementation of `And` and `Or`."""

    def __init__(self, expressions: list[WitnessCondition]):
        self.expressions = expressions

    def __len__(self):
        return super(_CompositeCondition, self).__len__() + utils.get_var_size(self.expressions)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.expressions == other.expressions

    def children(self) -> Sequence[WitnessCondition]:
        return self.expressions

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        writer.write_serializable_list(self.expressions)

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        if max_nesting_depth <= 0:
            raise ValueError("Deserialization error - max nesting depth exceeded")
        self.expressions = WitnessCondition._deserialize_conditions(reader, max_nesting_depth - 1)
        if len(self.expressions) == 0:
            raise ValueError("Cannot have 0 expressions")

    def to_json(self) -> dict:
        json = super(_CompositeCondition, self).to_json()
        json["expressions"] = [exp.to_json() for exp in self.expressions]
        return json

    @classmethod
    def _from_json(cls, json: dict):
        return cls([WitnessCondition.from_json(expr) for expr in json["expressions"]])

    @classmethod
    def _serializable_init(cls):
        return cls([])


class ConditionAnd(_CompositeCondition):
    """
    True when every expression is true.
    """

    _type = WitnessConditionType.AND


class ConditionOr(_CompositeCondition):
    """
    True when at least one expression is true.
    """

    _type = WitnessConditionType.OR


class ConditionBool(WitnessCondition):
    """
    Constant outcome. `ConditionBool(True)` behaves like the GLOBAL scope.
    """

    _type = WitnessConditionType.BOOLEAN

    def __init__(self, value: bool):
        self.value = value

    def __len__(self):
        return super(ConditionBool, self).__len__() + s.uint8

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.value == other.value

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        writer.write_bool(self.value)

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        self.value = reader.read_bool()

    def to_json(self) -> dict:
        json = super(ConditionBool, self).to_json()
        json["expression"] = self.value
        return json

    @classmethod
    def _from_json(cls, json: dict):
        value = json["expression"]
        # nodes return the expression as a string
        if isinstance(value, str):
            value = value.lower() == "true"
        return cls(value)

    @classmethod
    def _serializable_init(cls):
        return cls(False)


class ConditionNot(WitnessCondition):
    """
    Negates its expression.
    """

    _type = WitnessConditionType.NOT

    def __init__(self, expression: WitnessCondition):
        self.expression = expression

    def __len__(self):
        return super(ConditionNot, self).__len__() + len(self.expression)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.expression == other.expression

    def children(self) -> Sequence[WitnessCondition]:
        return (self.expression,)

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        writer.write_serializable(self.expression)

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        if max_nesting_depth <= 0:
            raise ValueError("Deserialization error - max nesting depth exceeded")
        self.expression = WitnessCondition._deserialize_from(reader, max_nesting_depth - 1)

    def to_json(self) -> dict:
        json = super(ConditionNot, self).to_json()
        json["expression"] = self.expression.to_json()
        return json

    @classmethod
    def _from_json(cls, json: dict):
        return cls(WitnessCondition.from_json(json["expression"]))

    @classmethod
    def _serializable_init(cls):
        return cls(ConditionBool(False))


class ConditionCalledByContract(WitnessCondition):
    """
    True when the calling contract has the given hash.
    """

    _type = WitnessConditionType.CALLED_BY_CONTRACT

    def __init__(self, hash_: types.UInt160):
        self.hash_ = hash_

    def __len__(self):
        return super(ConditionCalledByContract, self).__len__() + s.uint160

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.hash_ == other.hash_

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        writer.write_serializable(self.hash_)

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        self.hash_ = reader.read_serializable(types.UInt160)

    def to_json(self) -> dict:
        json = super(ConditionCalledByContract, self).to_json()
        json["hash"] = f"0x{self.hash_}"
        return json

    @classmethod
    def _from_json(cls, json: dict):
        return cls(types.UInt160.from_string(json["hash"]))

    @classmethod
    def _serializable_init(cls):
        return cls(types.UInt160.zero())


class ConditionScriptHash(ConditionCalledByContract):
    """
    True when the executing contract has the given hash.
    """

    _type = WitnessConditionType.SCRIPT_HASH


class ConditionCalledByEntry(WitnessCondition):
    """
    True when the caller is the entry script.
    """

    _type = WitnessConditionType.CALLED_BY_ENTRY

    def __eq__(self, other):
        return type(self) is type(other)

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        pass

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        pass

    @classmethod
    def _from_json(cls, json: dict):
        return cls()


class ConditionCalledByGroup(WitnessCondition):
    """
    True when the calling contract belongs to the given group.
    """

    _type = WitnessConditionType.CALLED_BY_GROUP

    def __init__(self, group: cryptography.ECPoint):
        self.group = group

    def __len__(self):
        return super(ConditionCalledByGroup, self).__len__() + len(self.group)

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return self.group == other.group

    def _serialize_body(self, writer: serialization.BinaryWriter) -> None:
        writer.write_serializable(self.group)

    def _deserialize_body(self, reader: serialization.BinaryReader, max_nesting_depth: int) -> None:
        self.group = reader.read_serializable(cryptography.ECPoint)  # type: ignore

    def to_json(self) -> dict:
        json = super(ConditionCalledByGroup, self).to_json()
        json["group"] = str(self.group)
        return json

    @classmethod
    def _from_json(cls, json: dict):
        return cls(cryptography.ECPoint.from_string(json["group"]))

    @classmethod
    def _serializable_init(cls):
        return cls(cryptography.ECPoint._serializable_init())


class ConditionGroup(ConditionCalledByGroup):
    """
    True when the executing contract belongs to the given group.
    """

    _type = WitnessConditionType.GROUP


class WitnessRule(serialization.ISerializable, interfaces.IJson):
    """
    Allow or deny the witness when the condition holds. Rules are evaluated in order and the first match wins.
    """

    def __init__(self, action: WitnessRuleAction, condition: WitnessCondition):
        self.action = action
        self.condition = condition

    def __len__(self):
        return s.uint8 + len(self.condition)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return self.action == other.action and self.condition == other.condition

    def validate(self) -> None:
        """
        Raises:
            ScopeViolation: if the condition tree nests too deep or holds too many nodes.
        """
        depth = self.condition.nesting_depth()
        if depth > WitnessCondition.MAX_NESTING_DEPTH:
            raise errors.ScopeViolation(
                f"Witness rule nesting depth {depth} exceeds maximum of {WitnessCondition.MAX_NESTING_DEPTH}"
            )
        nodes = self.condition.node_count()
        if nodes > WitnessCondition.MAX_SUB_ITEMS:
            raise errors.ScopeViolation(
                f"Witness rule has {nodes} conditions, maximum is {WitnessCondition.MAX_SUB_ITEMS}"
            )
        for node in _walk(self.condition):
            if isinstance(node, _CompositeCondition) and len(node.expressions) == 0:
                raise errors.ScopeViolation(f"{node.type.to_csharp_string()} condition without expressions")

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_uint8(self.action.value)
        writer.write_serializable(self.condition)

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        self.action = WitnessRuleAction(reader.read_uint8())
        self.condition = WitnessCondition._deserialize_from(reader, WitnessCondition.MAX_NESTING_DEPTH)

    def to_json(self) -> dict:
        return {
            "action": self.action.name.title(),
            "condition": self.condition.to_json(),
        }

    @classmethod
    def from_json(cls, json: dict):
        action = WitnessRuleAction[json["action"].upper()]
        condition = WitnessCondition.from_json(json["condition"])
        return cls(action, condition)

    @classmethod
    def _serializable_init(cls):
        return cls(WitnessRuleAction.DENY, ConditionBool(False))


def _walk(condition: WitnessCondition) -> Iterator[WitnessCondition]:
    yield condition
    for child in condition.children():
        yield from _walk(child)


class Signer(serialization.ISerializable, interfaces.IJson):
    """
    An account that authorizes the transaction, plus the scope in which its witness is accepted.

    Two signers are equal when their accounts are equal. A transaction may not hold two signers for the same account.
    """

    #: limit per list (contracts, groups, rules)
    MAX_SUB_ITEMS = 16

    def __init__(
        self,
        account: types.UInt160,
        scope: WitnessScope = WitnessScope.CALLED_BY_ENTRY,
        allowed_contracts: Optional[Sequence[types.UInt160]] = None,
        allowed_groups: Optional[Sequence[cryptography.ECPoint]] = None,
        rules: Optional[Sequence[WitnessRule]] = None,
    ):
        #: script hash of the account that provides the witness
        self.account = account
        self.scope = scope
        #: only serialized with CUSTOM_CONTRACTS
        self.allowed_contracts = list(allowed_contracts) if allowed_contracts else []
        #: only serialized with CUSTOM_GROUPS
        self.allowed_groups = list(allowed_groups) if allowed_groups else []
        #: only serialized with WITNESS_RULES
        self.rules = list(rules) if rules else []

    def __len__(self):
        contracts_size = 0
        if WitnessScope.CUSTOM_CONTRACTS in self.scope:
            contracts_size = utils.get_var_size(self.allowed_contracts)

        groups_size = 0
        if WitnessScope.CUSTOM_GROUPS in self.scope:
            groups_size = utils.get_var_size(self.allowed_groups)

        rules_size = 0
        if WitnessScope.WITNESS_RULES in self.scope:
            rules_size = utils.get_var_size(self.rules)

        return s.uint160 + s.uint8 + contracts_size + groups_size + rules_size

    def __eq__(self, other):
        if type(self) is not type(other):
            return False
        return self.account == other.account

    def __hash__(self):
        return hash(self.account)

    def __repr__(self):
        return f"<{self.__class__.__name__} at {hex(id(self))}> 0x{self.account} {self.scope.to_csharp_name()}"

    def validate(self) -> None:
        """
        Check the scope composition.

        Raises:
            ScopeViolation: if ``GLOBAL`` or ``NONE`` are combined with anything else, a ``CUSTOM_*`` or
                ``WITNESS_RULES`` scope lacks its list, a list is present without its scope, a list holds more than 16
                entries or a witness rule is too complex.
        """
        scope = int(self.scope)
        if scope & ~_VALID_SCOPE_BITS:
            raise errors.ScopeViolation(f"Invalid scope value {hex(scope)}")

        has_contracts = WitnessScope.CUSTOM_CONTRACTS in self.scope
        has_groups = WitnessScope.CUSTOM_GROUPS in self.scope
        has_rules = WitnessScope.WITNESS_RULES in self.scope

        if WitnessScope.GLOBAL in self.scope and self.scope != WitnessScope.GLOBAL:
            raise errors.ScopeViolation("GLOBAL scope not allowed with other scope types")
        if self.scope in (WitnessScope.NONE, WitnessScope.GLOBAL) and (
            self.allowed_contracts or self.allowed_groups or self.rules
        ):
            raise errors.ScopeViolation(
                f"{self.scope.to_csharp_name()} scope cannot carry allowed contracts, groups or rules"
            )

        if has_contracts and not self.allowed_contracts:
            raise errors.ScopeViolation("CUSTOM_CONTRACTS scope requires at least one allowed contract")
        if self.allowed_contracts and not has_contracts:
            raise errors.ScopeViolation("Allowed contracts are set without the CUSTOM_CONTRACTS scope")
        if has_groups and not self.allowed_groups:
            raise errors.ScopeViolation("CUSTOM_GROUPS scope requires at least one allowed group")
        if self.allowed_groups and not has_groups:
            raise errors.ScopeViolation("Allowed groups are set without the CUSTOM_GROUPS scope")
        if has_rules and not self.rules:
            raise errors.ScopeViolation("WITNESS_RULES scope requires at least one rule")
        if self.rules and not has_rules:
            raise errors.ScopeViolation("Rules are set without the WITNESS_RULES scope")

        for name, items in (
            ("allowed contracts", self.allowed_contracts),
            ("allowed groups", self.allowed_groups),
            ("rules", self.rules),
        ):
            if len(items) > self.MAX_SUB_ITEMS:
                raise errors.ScopeViolation(f"Too many {name}: {len(items)} > {self.MAX_SUB_ITEMS}")
        if len(set(self.allowed_contracts)) != len(self.allowed_contracts):
            raise errors.ScopeViolation("Duplicate entries in allowed contracts")
        if len(set(self.allowed_groups)) != len(self.allowed_groups):
            raise errors.ScopeViolation("Duplicate entries in allowed groups")

        for rule in self.rules:
            rule.validate()

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_serializable(self.account)
        writer.write_uint8(self.scope)

        if WitnessScope.CUSTOM_CONTRACTS in self.scope:
            writer.write_serializable_list(self.allowed_contracts)

        if WitnessScope.CUSTOM_GROUPS in self.scope:
            writer.write_serializable_list(self.allowed_groups)

        if WitnessScope.WITNESS_RULES in self.scope:
            writer.write_serializable_list(self.rules)

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        self.account = reader.read_serializable(types.UInt160)
        self.scope = WitnessScope(reader.read_uint8())

        if WitnessScope.GLOBAL in self.scope and self.scope != WitnessScope.GLOBAL:
            raise ValueError(
                "Deserialization error - GLOBAL scope combined with other scopes"
            )

        if WitnessScope.CUSTOM_CONTRACTS in self.scope:
            self.allowed_contracts = reader.read_serializable_list(types.UInt160, max=self.MAX_SUB_ITEMS)

        if WitnessScope.CUSTOM_GROUPS in self.scope:
            self.allowed_groups = reader.read_serializable_list(
                cryptography.ECPoint, max=self.MAX_SUB_ITEMS  # type: ignore
            )

        if WitnessScope.WITNESS_RULES in self.scope:
            self.rules = reader.read_serializable_list(WitnessRule, max=self.MAX_SUB_ITEMS)

    def get_all_rules(self) -> Iterator[WitnessRule]:
        """
        Express the scope as the equivalent list of witness rules.
        """
        if WitnessScope.GLOBAL in self.scope:
            yield WitnessRule(WitnessRuleAction.ALLOW, ConditionBool(True))
            return

        if WitnessScope.CALLED_BY_ENTRY in self.scope:
            yield WitnessRule(WitnessRuleAction.ALLOW, ConditionCalledByEntry())

        if WitnessScope.CUSTOM_CONTRACTS in self.scope:
            for hash_ in self.allowed_contracts:
                yield WitnessRule(WitnessRuleAction.ALLOW, ConditionScriptHash(hash_))

        if WitnessScope.CUSTOM_GROUPS in self.scope:
            for group in self.allowed_groups:
                yield WitnessRule(WitnessRuleAction.ALLOW, ConditionGroup(group))

        if WitnessScope.WITNESS_RULES in self.scope:
            yield from self.rules

    def to_json(self) -> dict:
        """Convert object into the JSON form used by the node RPC interface."""
        json: dict[str, Any] = {
            "account": f"0x{self.account}",
            "scopes": self.scope.to_csharp_name(),
        }
        if WitnessScope.CUSTOM_CONTRACTS in self.scope:
            json["allowedcontracts"] = [f"0x{a}" for a in self.allowed_contracts]
        if WitnessScope.CUSTOM_GROUPS in self.scope:
            json["allowedgroups"] = [str(g) for g in self.allowed_groups]
        if WitnessScope.WITNESS_RULES in self.scope:
            json["rules"] = [r.to_json() for r in self.rules]
        return json

    @classmethod
    def from_json(cls, json: dict):
        """Parse the node RPC form. Missing lists default to empty."""
        return cls(
            types.UInt160.from_string(json["account"]),
            WitnessScope.from_csharp_name(json["scopes"]),
            [types.UInt160.from_string(c) for c in json.get("allowedcontracts", [])],
            [cryptography.ECPoint.from_string(g) for g in json.get("allowedgroups", [])],
            [WitnessRule.from_json(r) for r in json.get("rules", [])],
        )

    @classmethod
    def _serializable_init(cls):
        return cls(types.UInt160.zero())


class Witness(serialization.ISerializable, interfaces.IJson):
    """
    Invocation script (pushes signatures) and verification script (checks them) for one signer.
    """

    MAX_INVOCATION_SCRIPT = 1024
    MAX_VERIFICATION_SCRIPT = 1024

    def __init__(self, invocation_script: bytes, verification_script: bytes):
        self.invocation_script = invocation_script
        self.verification_script = verification_script

    def __len__(self):
        return utils.get_var_size(self.invocation_script) + utils.get_var_size(self.verification_script)

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return (
            self.invocation_script == other.invocation_script
            and self.verification_script == other.verification_script
        )

    def serialize(self, writer: serialization.BinaryWriter) -> None:
        writer.write_var_bytes(self.invocation_script)
        writer.write_var_bytes(self.verification_script)

    def deserialize(self, reader: serialization.BinaryReader) -> None:
        self.invocation_script = reader.read_var_bytes(max=self.MAX_INVOCATION_SCRIPT)
        self.verification_script = reader.read_var_bytes(max=self.MAX_VERIFICATION_SCRIPT)

    def script_hash(self) -> types.UInt160:
        """The account this witness is for: hash160 of the verification script."""
        return utils.to_script_hash(self.verification_script)

    def to_json(self) -> dict:
        return {
            "invocation": base64.b64encode(self.invocation_script).decode(),
            "verification": base64.b64encode(self.verification_script).decode(),
        }

    @classmethod
    def from_json(cls, json: dict):
        return cls(base64.b64decode(json["invocation"]), base64.b64decode(json["verification"]))

    @classmethod
    def _serializable_init(cls):
        return cls(b"", b"")
