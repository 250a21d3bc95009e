import unittest
from neoviper import errors
from neoviper.core import types, cryptography, utils
from neoviper.network.payloads import verification
from neoviper.network.payloads.verification import (
    Signer,
    WitnessScope,
    WitnessRule,
    WitnessRuleAction,
    ConditionAnd,
    ConditionOr,
    ConditionNot,
    ConditionBool,
    ConditionScriptHash,
    ConditionCalledByEntry,
    ConditionCalledByContract,
    ConditionGroup,
)

ACCOUNT = types.UInt160.from_string("d7678dd97c000be3f33e9362e673101bac4ca654")
CONTRACT = types.UInt160.from_string("d2a4cff31913016155e38e474a2c06d08be276cf")


class WitnessScopeTestCase(unittest.TestCase):
    def test_csharp_names(self):
        scope = WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS
        self.assertEqual("CalledByEntry, CustomContracts", scope.to_csharp_name())
        self.assertEqual(scope, WitnessScope.from_csharp_name("CalledByEntry, CustomContracts"))
        self.assertEqual("None", WitnessScope.NONE.to_csharp_name())
        self.assertEqual(WitnessScope.NONE, WitnessScope.from_csharp_name("None"))
        with self.assertRaises(ValueError):
            WitnessScope.from_csharp_name("Everywhere")


class SignerValidationTestCase(unittest.TestCase):
    def test_valid_scopes(self):
        Signer(ACCOUNT, WitnessScope.NONE).validate()
        Signer(ACCOUNT, WitnessScope.CALLED_BY_ENTRY).validate()
        Signer(ACCOUNT, WitnessScope.GLOBAL).validate()
        Signer(
            ACCOUNT, WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=[CONTRACT]
        ).validate()
        Signer(
            ACCOUNT,
            WitnessScope.WITNESS_RULES,
            rules=[WitnessRule(WitnessRuleAction.ALLOW, ConditionCalledByEntry())],
        ).validate()

    def test_global_is_exclusive(self):
        signer = Signer(ACCOUNT, WitnessScope.GLOBAL | WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=[CONTRACT])
        with self.assertRaises(errors.ScopeViolation) as context:
            signer.validate()
        self.assertIn("GLOBAL scope not allowed with other scope types", str(context.exception))

        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope.GLOBAL | WitnessScope.CALLED_BY_ENTRY).validate()

    def test_list_requires_scope(self):
        with self.assertRaises(errors.ScopeViolation) as context:
            Signer(ACCOUNT, WitnessScope.CALLED_BY_ENTRY, allowed_contracts=[CONTRACT]).validate()
        self.assertIn("without the CUSTOM_CONTRACTS scope", str(context.exception))

        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope.NONE, allowed_contracts=[CONTRACT]).validate()

        with self.assertRaises(errors.ScopeViolation):
            Signer(
                ACCOUNT,
                WitnessScope.CALLED_BY_ENTRY,
                rules=[WitnessRule(WitnessRuleAction.ALLOW, ConditionBool(True))],
            ).validate()

    def test_scope_requires_list(self):
        with self.assertRaises(errors.ScopeViolation) as context:
            Signer(ACCOUNT, WitnessScope.CUSTOM_CONTRACTS).validate()
        self.assertIn("requires at least one allowed contract", str(context.exception))

        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope.CUSTOM_GROUPS).validate()

        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope.WITNESS_RULES).validate()

    def test_too_many_entries(self):
        contracts = [types.UInt160(bytes([i]) * 20) for i in range(17)]
        with self.assertRaises(errors.ScopeViolation) as context:
            Signer(ACCOUNT, WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=contracts).validate()
        self.assertIn("Too many allowed contracts", str(context.exception))

        Signer(ACCOUNT, WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=contracts[:16]).validate()

    def test_duplicate_entries(self):
        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=[CONTRACT, CONTRACT]).validate()

    def test_invalid_scope_bits(self):
        with self.assertRaises(errors.ScopeViolation):
            Signer(ACCOUNT, WitnessScope(0x02)).validate()

    def test_scope_violation_is_value_error(self):
        with self.assertRaises(ValueError):
            Signer(ACCOUNT, WitnessScope.CUSTOM_GROUPS).validate()


class WitnessRuleTestCase(unittest.TestCase):
    def test_nesting_depth(self):
        ok = WitnessRule(WitnessRuleAction.ALLOW, ConditionNot(ConditionNot(ConditionBool(True))))
        ok.validate()
        self.assertEqual(2, ok.condition.nesting_depth())

        too_deep = WitnessRule(
            WitnessRuleAction.ALLOW, ConditionNot(ConditionAnd([ConditionNot(ConditionBool(True))]))
        )
        with self.assertRaises(errors.ScopeViolation) as context:
            too_deep.validate()
        self.assertIn("nesting depth 3", str(context.exception))

    def test_node_count(self):
        too_many = WitnessRule(WitnessRuleAction.DENY, ConditionOr([ConditionBool(True)] * 16))
        self.assertEqual(17, too_many.condition.node_count())
        with self.assertRaises(errors.ScopeViolation):
            too_many.validate()

        WitnessRule(WitnessRuleAction.DENY, ConditionOr([ConditionBool(True)] * 15)).validate()

    def test_empty_composite(self):
        with self.assertRaises(errors.ScopeViolation) as context:
            WitnessRule(WitnessRuleAction.ALLOW, ConditionAnd([])).validate()
        self.assertIn("And condition without expressions", str(context.exception))

    def test_serialization(self):
        group = cryptography.KeyPair.generate().public_key
        rule = WitnessRule(
            WitnessRuleAction.ALLOW,
            ConditionAnd([ConditionCalledByEntry(), ConditionOr([ConditionScriptHash(CONTRACT), ConditionGroup(group)])]),
        )
        data = rule.to_array()
        self.assertEqual(len(rule), len(data))
        self.assertEqual(b"\x01\x02\x02\x20\x03\x02\x18", data[:7])
        self.assertEqual(rule, WitnessRule.deserialize_from_bytes(data))

    def test_deserialize_too_deep(self):
        # ALLOW Not(Not(Not(Boolean true)))
        with self.assertRaises(ValueError) as context:
            WitnessRule.deserialize_from_bytes(b"\x01\x01\x01\x01\x00\x01")
        self.assertIn("max nesting depth exceeded", str(context.exception))

    def test_deserialize_unknown_condition(self):
        with self.assertRaises(ValueError) as context:
            WitnessRule.deserialize_from_bytes(b"\x01\x77")
        self.assertIn("unknown witness condition", str(context.exception))

    def test_json(self):
        rule = WitnessRule(WitnessRuleAction.DENY, ConditionNot(ConditionCalledByContract(CONTRACT)))
        expected = {
            "action": "Deny",
            "condition": {
                "type": "Not",
                "expression": {"type": "CalledByContract", "hash": "0xd2a4cff31913016155e38e474a2c06d08be276cf"},
            },
        }
        self.assertEqual(expected, rule.to_json())
        self.assertEqual(rule, WitnessRule.from_json(expected))

    def test_boolean_json_from_string(self):
        condition = verification.WitnessCondition.from_json({"type": "Boolean", "expression": "true"})
        self.assertEqual(ConditionBool(True), condition)


class SignerSerializationTestCase(unittest.TestCase):
    def test_called_by_entry(self):
        signer = Signer(ACCOUNT, WitnessScope.CALLED_BY_ENTRY)
        self.assertEqual(ACCOUNT.to_array() + b"\x01", signer.to_array())
        self.assertEqual(21, len(signer))

    def test_custom_contracts(self):
        signer = Signer(ACCOUNT, WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=[CONTRACT])
        data = signer.to_array()
        self.assertEqual(len(signer), len(data))
        self.assertEqual(ACCOUNT.to_array() + b"\x10\x01" + CONTRACT.to_array(), data)

        parsed = Signer.deserialize_from_bytes(data)
        self.assertEqual(signer.account, parsed.account)
        self.assertEqual(signer.scope, parsed.scope)
        self.assertEqual([CONTRACT], parsed.allowed_contracts)

    def test_deserialize_invalid_global(self):
        with self.assertRaises(ValueError):
            Signer.deserialize_from_bytes(ACCOUNT.to_array() + b"\x81")

    def test_json(self):
        group = cryptography.KeyPair.generate().public_key
        signer = Signer(
            ACCOUNT,
            WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_GROUPS,
            allowed_groups=[group],
        )
        json = signer.to_json()
        self.assertEqual("0xd7678dd97c000be3f33e9362e673101bac4ca654", json["account"])
        self.assertEqual("CalledByEntry, CustomGroups", json["scopes"])
        self.assertEqual([str(group)], json["allowedgroups"])
        self.assertNotIn("allowedcontracts", json)

        parsed = Signer.from_json(json)
        self.assertEqual(signer.scope, parsed.scope)
        self.assertEqual([group], parsed.allowed_groups)

    def test_get_all_rules(self):
        rules = list(
            Signer(
                ACCOUNT, WitnessScope.CALLED_BY_ENTRY | WitnessScope.CUSTOM_CONTRACTS, allowed_contracts=[CONTRACT]
            ).get_all_rules()
        )
        self.assertEqual(
            [
                WitnessRule(WitnessRuleAction.ALLOW, ConditionCalledByEntry()),
                WitnessRule(WitnessRuleAction.ALLOW, ConditionScriptHash(CONTRACT)),
            ],
            rules,
        )
        self.assertEqual(
            [WitnessRule(WitnessRuleAction.ALLOW, ConditionBool(True))],
            list(Signer(ACCOUNT, WitnessScope.GLOBAL).get_all_rules()),
        )


class WitnessTestCase(unittest.TestCase):
    def test_script_hash(self):
        witness = verification.Witness(b"\x01", b"\x02\x03")
        self.assertEqual(utils.to_script_hash(b"\x02\x03"), witness.script_hash())

    def test_serialization(self):
        witness = verification.Witness(b"\x01", b"\x02\x03")
        data = witness.to_array()
        self.assertEqual(b"\x01\x01\x02\x02\x03", data)
        self.assertEqual(len(witness), len(data))
        self.assertEqual(witness, verification.Witness.deserialize_from_bytes(data))

    def test_json(self):
        witness = verification.Witness(b"\x01", b"\x02\x03")
        self.assertEqual({"invocation": "AQ==", "verification": "AgM="}, witness.to_json())
        self.assertEqual(witness, verification.Witness.from_json(witness.to_json()))
