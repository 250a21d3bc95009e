import unittest
from neoviper import errors
from neoviper.contracts import ContractParameter, ContractParameterType, CallFlags
from neoviper.core import types, cryptography


class ContractParameterTestCase(unittest.TestCase):
    def test_from_native(self):
        h160 = types.UInt160(bytes(range(20)))
        h256 = types.UInt256(bytes(range(32)))
        public_key = cryptography.KeyPair.generate().public_key

        self.assertEqual(ContractParameter.any(), ContractParameter.from_native(None))
        self.assertEqual(ContractParameterType.BOOLEAN, ContractParameter.from_native(True).type)
        self.assertEqual(ContractParameterType.INTEGER, ContractParameter.from_native(1).type)
        self.assertEqual(ContractParameterType.STRING, ContractParameter.from_native("a").type)
        self.assertEqual(ContractParameterType.BYTEARRAY, ContractParameter.from_native(b"a").type)
        self.assertEqual(ContractParameter.hash160(h160), ContractParameter.from_native(h160))
        self.assertEqual(ContractParameter.hash256(h256), ContractParameter.from_native(h256))
        self.assertEqual(ContractParameterType.PUBLICKEY, ContractParameter.from_native(public_key).type)
        self.assertEqual(ContractParameterType.INTEGER, ContractParameter.from_native(CallFlags.ALL).type)

        array = ContractParameter.from_native([1, "a"])
        self.assertEqual(ContractParameterType.ARRAY, array.type)
        self.assertEqual((ContractParameter.integer(1), ContractParameter.string("a")), array.value)

        map_ = ContractParameter.from_native({"a": 1})
        self.assertEqual(ContractParameterType.MAP, map_.type)
        self.assertEqual(((ContractParameter.string("a"), ContractParameter.integer(1)),), map_.value)

    def test_from_native_unsupported(self):
        with self.assertRaises(errors.InvalidInput) as context:
            ContractParameter.from_native(1.5)
        self.assertIn("Unsupported type", str(context.exception))

    def test_integer_range(self):
        ContractParameter.integer(2**255 - 1)
        ContractParameter.integer(-(2**255))
        with self.assertRaises(errors.InvalidInput):
            ContractParameter.integer(2**255)
        with self.assertRaises(errors.InvalidInput):
            ContractParameter.integer(True)

    def test_signature_length(self):
        with self.assertRaises(errors.InvalidInput):
            ContractParameter.signature(bytes(63))

    def test_to_json(self):
        h160 = types.UInt160.from_string("d2a4cff31913016155e38e474a2c06d08be276cf")
        self.assertEqual(
            {"type": "Hash160", "value": "0xd2a4cff31913016155e38e474a2c06d08be276cf"},
            ContractParameter.hash160(h160).to_json(),
        )
        self.assertEqual({"type": "Integer", "value": "100"}, ContractParameter.integer(100).to_json())
        self.assertEqual({"type": "ByteArray", "value": "AQI="}, ContractParameter.byte_array(b"\x01\x02").to_json())
        self.assertEqual({"type": "Any"}, ContractParameter.any().to_json())
        self.assertEqual(
            {
                "type": "Map",
                "value": [{"key": {"type": "String", "value": "a"}, "value": {"type": "Boolean", "value": True}}],
            },
            ContractParameter.from_native({"a": True}).to_json(),
        )

    def test_from_json(self):
        param = ContractParameter.from_native(
            [types.UInt160.zero(), {"key": b"\x01"}, -5, None, "text", types.UInt256.zero()]
        )
        self.assertEqual(param, ContractParameter.from_json(param.to_json()))

    def test_pascal_case(self):
        self.assertEqual("ByteArray", ContractParameterType.BYTEARRAY.PascalCase())
        self.assertEqual("PublicKey", ContractParameterType.PUBLICKEY.PascalCase())
        self.assertEqual(ContractParameterType.HASH160, ContractParameterType.from_pascal_case("Hash160"))
        with self.assertRaises(ValueError):
            ContractParameterType.from_pascal_case("Float")


class CallFlagsTestCase(unittest.TestCase):
    def test_from_csharp_name(self):
        self.assertEqual(CallFlags.READ_ONLY, CallFlags.from_csharp_name("ReadStates, AllowCall"))
        self.assertEqual(CallFlags.ALL, CallFlags.from_csharp_name("All"))
        self.assertEqual(0x0F, CallFlags.ALL)
        with self.assertRaises(ValueError):
            CallFlags.from_csharp_name("Everything")
