import unittest
from neoviper import errors
from neoviper.core import types


class UInt160TestCase(unittest.TestCase):
    def test_zero(self):
        zero = types.UInt160.zero()
        self.assertEqual(bytes(20), zero.to_array())
        self.assertEqual(zero, types.UInt160())
        self.assertEqual(20, len(zero))

    def test_string_form_is_reversed(self):
        data = bytes(range(20))
        uint = types.UInt160(data)
        self.assertEqual(data[::-1].hex(), str(uint))
        self.assertEqual(uint, types.UInt160.from_string(str(uint)))
        self.assertEqual(uint, types.UInt160.from_string("0x" + str(uint)))
        self.assertEqual(data, uint.to_array())

    def test_invalid_length(self):
        with self.assertRaises(errors.InvalidInput) as context:
            types.UInt160(b"\x01" * 19)
        self.assertIn("data length 19 != 20", str(context.exception))

        with self.assertRaises(errors.InvalidInput) as context:
            types.UInt160.from_string("ab" * 19)
        self.assertIn("38 chars != 40 chars", str(context.exception))

    def test_invalid_hex(self):
        with self.assertRaises(errors.InvalidHex):
            types.UInt160.from_string("a" * 39)
        with self.assertRaises(errors.InvalidHex):
            types.UInt160.from_string("zz" * 20)
        # still usable as a plain ValueError
        with self.assertRaises(ValueError):
            types.UInt160.from_string("zz" * 20)

    def test_equality_and_hash(self):
        a = types.UInt160(b"\x01" * 20)
        b = types.UInt160(b"\x01" * 20)
        self.assertEqual(a, b)
        self.assertEqual(1, len({a, b}))
        self.assertNotEqual(a, types.UInt160.zero())
        self.assertNotEqual(types.UInt160.zero(), types.UInt256.zero())
        self.assertNotEqual(a, b"\x01" * 20)

    def test_compare(self):
        small = types.UInt160(b"\x01" + bytes(19))
        big = types.UInt160(bytes(19) + b"\x01")
        self.assertTrue(small < big)
        self.assertTrue(big > small)
        self.assertTrue(small <= small)
        self.assertTrue(big >= big)
        with self.assertRaises(TypeError):
            small < types.UInt256.zero()  # type: ignore

    def test_serialization(self):
        uint = types.UInt160(bytes(range(20)))
        self.assertEqual(uint, types.UInt160.deserialize_from_bytes(uint.to_array()))
        with self.assertRaises(errors.InvalidInput):
            types.UInt160.deserialize_from_bytes(b"\x00")


class UInt256TestCase(unittest.TestCase):
    def test_from_string(self):
        value = "7da6ae7ff9d0b7af3d32f3a2feb2aa96c2a27ef8b651f9a132cfaad6ef20724c"
        uint = types.UInt256.from_string(value)
        self.assertEqual(value, str(uint))
        self.assertEqual(bytes.fromhex(value)[::-1], uint.to_array())
        self.assertEqual(32, len(uint))

    def test_invalid_length(self):
        with self.assertRaises(errors.InvalidInput):
            types.UInt256(bytes(20))
