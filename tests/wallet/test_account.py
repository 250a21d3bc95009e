import unittest
import jsonschema
from neoviper import errors
from neoviper.core import types, cryptography
from neoviper.network.payloads import transaction, verification
from neoviper.wallet import account, scrypt_parameters as scrypt

account_list = [
    {
        "address": "NRaKbRA5JAEJtfUgJJZzmeDnKvP3pJwKp1",
        "encrypted_key": "6PYKuriAL7pFeVTr3tKksbD1SpKUP7K82vjGuskZ5zpo9EWDhLRW6GcnyL",
        "password": "city of zion",
        "private_key": "58124574dfcca1a7a958775f6ea94e3d6c392ec3ba125b5bc591dd5e14f05e52",
        "script_hash": "18f13748e08d53c9a164227e1a3e8d8d9e78193e",
        "wif_key": "KzAuju4yBqBhmUzYpfEEppPW8jfxALTsdsUR8hLPv9R3PBD97CUv",
    },
    {
        "address": "NgPptMp2tcjnXuYbUrTozvwvLExGKk5jXc",
        "encrypted_key": "6PYMEujkLZiJrQ5AK9W4z1BtYZT2U27ZVKrjbEFt8zZh5CJANZdEx21Fyx",
        "password": "123",
        "private_key": "2032b737522d22e2b6faf30555faa91d95c5aa5113c18f218f45815b6934c558",
        "script_hash": "cfa9032d65b3d0fc1df3956a4ef01666f23ba7e0",
        "wif_key": "KxJJLmU1Nv7igx3RFM4siSvio7wasF3ZzMzi7SrJ1s78QDQeEtjs",
        "scrypt": {"n": 2, "r": 8, "p": 8},
    },
    {
        "address": "NZMHRJMPbyJJwtXpvS2mYAWcWp4qmZZFx8",
        "encrypted_key": "6PYL44vbRemjfwCJ8qprKKJJiuzcopnJhghPoMLRVJLpymDwm2BNj9v7fq",
        "password": "neo",
        "private_key": "4c5182d9041f416bee1a6adac6a03f3e0319a83e75e78e6ff739304095791f19",
        "script_hash": "0df27baba6baeeb6834bea0d6c2a78183b416393",
        "wif_key": "Kyn4fA6czAhktoAM9YXKv3m7jtt47AuQxCXqSusnBmj3GsZUZQ6M",
        "scrypt": {"n": 2, "r": 8, "p": 8},
    },
]

# the vectors were created with n=2, which is only allowed for encryption in test mode
TEST_SCRYPT = scrypt.ScryptParameters(2, 8, 8, test_mode=True)

MAGIC = 894710606


def _dummy_tx(sender: types.UInt160) -> transaction.Transaction:
    return transaction.Transaction(
        version=0,
        nonce=123,
        system_fee=0,
        network_fee=0,
        valid_until_block=1,
        signers=[verification.Signer(sender)],
        script=b"\x40",
    )


class KeyEncodingTestCase(unittest.TestCase):
    def test_wif(self):
        for testcase in account_list:
            private_key = bytes.fromhex(testcase["private_key"])
            self.assertEqual(testcase["wif_key"], account.private_key_to_wif(private_key))
            self.assertEqual(private_key, account.private_key_from_wif(testcase["wif_key"]))

    def test_wif_invalid(self):
        with self.assertRaises(errors.InvalidInput) as context:
            account.private_key_from_wif("KzAuju4yBqBhmUzYpfEEppPW8jfxALTsdsUR8hLPv9R3PBD97CUw")
        self.assertIn("Base58decode failure of wif", str(context.exception))

        with self.assertRaises(errors.InvalidInput):
            account.private_key_to_wif(bytes(31))

    def test_nep2_encrypt(self):
        for testcase in account_list[1:]:
            private_key = bytes.fromhex(testcase["private_key"])
            nep2 = account.private_key_to_nep2(private_key, testcase["password"], TEST_SCRYPT)
            self.assertEqual(testcase["encrypted_key"], nep2)

    def test_nep2_decrypt(self):
        for testcase in account_list[1:]:
            private_key = account.private_key_from_nep2(
                testcase["encrypted_key"],
                testcase["password"],
                scrypt.ScryptParameters.from_json(testcase["scrypt"]),
            )
            self.assertEqual(bytes.fromhex(testcase["private_key"]), private_key)

    def test_nep2_default_parameters(self):
        testcase = account_list[0]
        private_key = account.private_key_from_nep2(testcase["encrypted_key"], testcase["password"])
        self.assertEqual(bytes.fromhex(testcase["private_key"]), private_key)

    def test_nep2_wrong_password(self):
        testcase = account_list[1]
        with self.assertRaises(ValueError) as context:
            account.private_key_from_nep2(
                testcase["encrypted_key"], "wrong password", scrypt.ScryptParameters.from_json(testcase["scrypt"])
            )
        self.assertIn("Wrong passphrase", str(context.exception))

    def test_nep2_invalid_length(self):
        with self.assertRaises(ValueError) as context:
            account.private_key_from_nep2("6PYKuriAL7", "123")
        self.assertIn("length of 58", str(context.exception))

    def test_nep2_refuses_weak_parameters(self):
        private_key = bytes.fromhex(account_list[1]["private_key"])
        with self.assertRaises(errors.InvalidInput) as context:
            account.private_key_to_nep2(private_key, "123", scrypt.ScryptParameters(2, 8, 8))
        self.assertIn("Refusing to encrypt", str(context.exception))


class ScryptParametersTestCase(unittest.TestCase):
    def test_defaults(self):
        params = scrypt.ScryptParameters()
        self.assertEqual({"n": 16384, "r": 8, "p": 8}, params.to_json())
        self.assertTrue(params.is_secure)
        params.ensure_encryption_allowed()

    def test_invalid(self):
        with self.assertRaises(errors.InvalidInput):
            scrypt.ScryptParameters(n=3)
        with self.assertRaises(errors.InvalidInput):
            scrypt.ScryptParameters(n=1)
        with self.assertRaises(errors.InvalidInput):
            scrypt.ScryptParameters(r=0)

    def test_json(self):
        params = scrypt.ScryptParameters.from_json({"n": 1024, "r": 1, "p": 1})
        self.assertEqual(scrypt.ScryptParameters(1024, 1, 1), params)
        with self.assertRaises(jsonschema.ValidationError):
            scrypt.ScryptParameters.from_json({"n": 1024, "r": 1})


class AccountCreationTestCase(unittest.TestCase):
    def test_new_account(self):
        acc = account.Account.create_new("label")
        self.assertEqual("unlocked", acc.state)
        self.assertFalse(acc.is_locked)
        self.assertFalse(acc.is_watchonly)
        self.assertIsNotNone(acc.public_key)
        self.assertEqual("label", acc.label)

    def test_from_private_key(self):
        for testcase in account_list:
            acc = account.Account.from_private_key(bytes.fromhex(testcase["private_key"]))
            self.assertEqual(testcase["address"], acc.address)
            self.assertEqual(testcase["script_hash"], str(acc.script_hash))
            self.assertIsNone(acc.encrypted_key)

    def test_from_wif(self):
        for testcase in account_list:
            acc = account.Account.from_wif(testcase["wif_key"])
            self.assertEqual(testcase["address"], acc.address)

    def test_from_encrypted_key(self):
        for testcase in account_list[1:]:
            acc = account.Account.from_encrypted_key(
                testcase["encrypted_key"],
                testcase["address"],
                scrypt_parameters=scrypt.ScryptParameters.from_json(testcase["scrypt"]),
            )
            self.assertEqual("locked", acc.state)
            self.assertTrue(acc.is_locked)
            self.assertEqual(testcase["script_hash"], str(acc.script_hash))

            unlocked = acc.unlock(testcase["password"])
            self.assertEqual("unlocked", unlocked.state)
            self.assertEqual(testcase["address"], unlocked.address)

    def test_unlock_wrong_password(self):
        testcase = account_list[1]
        acc = account.Account.from_encrypted_key(
            testcase["encrypted_key"],
            testcase["address"],
            scrypt_parameters=scrypt.ScryptParameters.from_json(testcase["scrypt"]),
        )
        with self.assertRaises(ValueError) as context:
            acc.unlock("wrong password")
        self.assertIn("Wrong passphrase", str(context.exception))

    def test_from_encrypted_key_invalid_address(self):
        with self.assertRaises(errors.InvalidAddress):
            account.Account.from_encrypted_key(account_list[1]["encrypted_key"], "not an address")

    def test_lock(self):
        testcase = account_list[1]
        acc = account.Account.from_private_key(bytes.fromhex(testcase["private_key"]), label="x")
        locked = acc.lock(testcase["password"], TEST_SCRYPT)
        self.assertEqual("locked", locked.state)
        self.assertEqual(testcase["encrypted_key"], locked.encrypted_key)
        self.assertEqual(acc.address, locked.address)
        self.assertEqual(acc.public_key, locked.public_key)
        self.assertEqual("x", locked.label)

    def test_watch_only(self):
        for testcase in account_list:
            acc = account.Account.watch_only(types.UInt160.from_string(testcase["script_hash"]))
            self.assertEqual(testcase["address"], acc.address)
            self.assertEqual("watch-only", acc.state)
            self.assertTrue(acc.is_watchonly)
            self.assertIsNone(acc.encrypted_key)
            self.assertIsNone(acc.public_key)

    def test_key_pair_and_encrypted_key_are_exclusive(self):
        with self.assertRaises(errors.InvalidInput):
            account.Account(
                key_pair=cryptography.KeyPair.generate(),
                encrypted_key=account_list[0]["encrypted_key"],
            )

    def test_equality(self):
        testcase = account_list[1]
        unlocked = account.Account.from_wif(testcase["wif_key"])
        watch_only = account.Account.watch_only(unlocked.script_hash)
        self.assertEqual(unlocked, watch_only)
        self.assertNotEqual(unlocked, account.Account.create_new())


class AccountSigningTestCase(unittest.TestCase):
    def test_sign_tx(self):
        acc = account.Account.from_wif(account_list[0]["wif_key"])
        tx = _dummy_tx(acc.script_hash)
        witness = acc.sign_tx(tx, magic=MAGIC)

        self.assertEqual(acc.script_hash, witness.script_hash())
        self.assertEqual(acc.verification_script, witness.verification_script)
        self.assertEqual(66, len(witness.invocation_script))
        self.assertEqual(b"\x0c\x40", witness.invocation_script[:2])
        self.assertTrue(
            cryptography.verify_signature(
                tx.get_hash_data(MAGIC), witness.invocation_script[2:], acc.public_key.encode_point(True)
            )
        )

    def test_sign_tx_locked(self):
        testcase = account_list[1]
        acc = account.Account.from_encrypted_key(
            testcase["encrypted_key"],
            testcase["address"],
            scrypt_parameters=scrypt.ScryptParameters.from_json(testcase["scrypt"]),
        )
        tx = _dummy_tx(acc.script_hash)
        with self.assertRaises(ValueError) as context:
            acc.sign_tx(tx, magic=MAGIC)
        self.assertIn("password is required", str(context.exception))

        witness = acc.sign_tx(tx, testcase["password"], MAGIC)
        self.assertEqual(acc.script_hash, witness.script_hash())

    def test_sign_watch_only(self):
        acc = account.Account.watch_only(types.UInt160.zero())
        with self.assertRaises(ValueError) as context:
            acc.sign(b"\x01")
        self.assertIn("watch only", str(context.exception))

    def test_sign(self):
        acc = account.Account.create_new()
        signature = acc.sign(b"\x01\x02")
        self.assertTrue(cryptography.verify_signature(b"\x01\x02", signature, acc.public_key.encode_point(True)))


class MultiSigTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.accounts = [account.Account.create_new() for _ in range(3)]
        self.public_keys = [acc.public_key for acc in self.accounts]
        self.context = account.MultiSigContext.from_public_keys(2, self.public_keys)
        self.tx = _dummy_tx(self.context.script_hash)

    def test_collect_signatures(self):
        self.assertIsNone(self.accounts[2].sign_multisig(self.tx, self.context, magic=MAGIC))
        self.assertFalse(self.context.is_complete)
        witness = self.accounts[0].sign_multisig(self.tx, self.context, magic=MAGIC)
        self.assertIsNotNone(witness)
        self.assertTrue(self.context.is_complete)
        self.assertEqual(self.context.script_hash, witness.script_hash())

        # signatures are ordered like the public keys in the verification script
        self.assertEqual(2 * 66, len(witness.invocation_script))
        signed_keys = [key for key in self.context.expected_public_keys if key in self.context.signature_pairs]
        for i, key in enumerate(signed_keys):
            signature = witness.invocation_script[i * 66 + 2 : (i + 1) * 66]
            self.assertTrue(
                cryptography.verify_signature(self.tx.get_hash_data(MAGIC), signature, key.encode_point(True))
            )

    def test_signing_status(self):
        self.accounts[1].sign_multisig(self.tx, self.context, magic=MAGIC)
        status = self.context.signing_status()
        self.assertTrue(status[self.accounts[1].public_key])
        self.assertFalse(status[self.accounts[0].public_key])

    def test_foreign_key(self):
        with self.assertRaises(ValueError) as context:
            account.Account.create_new().sign_multisig(self.tx, self.context, magic=MAGIC)
        self.assertIn("not in the required key list", str(context.exception))

    def test_incomplete_witness(self):
        with self.assertRaises(ValueError) as context:
            self.context.to_witness()
        self.assertIn("Not enough signatures", str(context.exception))

    def test_invalid_script(self):
        with self.assertRaises(ValueError):
            account.MultiSigContext(self.accounts[0].verification_script)


class AccountJsonTestCase(unittest.TestCase):
    def test_to_json_requires_lock(self):
        acc = account.Account.create_new()
        with self.assertRaises(ValueError) as context:
            acc.to_json()
        self.assertIn("lock it first", str(context.exception))

    def test_round_trip(self):
        testcase = account_list[2]
        acc = account.Account.from_private_key(bytes.fromhex(testcase["private_key"]), label="main")
        acc.is_default = True
        locked = acc.lock(testcase["password"], TEST_SCRYPT)

        json = locked.to_json()
        self.assertEqual(testcase["address"], json["address"])
        self.assertEqual(testcase["encrypted_key"], json["key"])
        self.assertEqual({"n": 2, "r": 8, "p": 8}, json["scrypt"])
        self.assertTrue(json["isDefault"])

        parsed = account.Account.from_json(json)
        self.assertEqual(locked, parsed)
        self.assertEqual("main", parsed.label)
        self.assertEqual(acc.public_key, parsed.public_key)
        self.assertEqual(acc.address, parsed.unlock(testcase["password"]).address)

    def test_from_json_invalid(self):
        with self.assertRaises(jsonschema.ValidationError):
            account.Account.from_json({"address": account_list[0]["address"], "label": None})


class AccountAsyncTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_unlock_async(self):
        testcase = account_list[1]
        acc = account.Account.from_encrypted_key(
            testcase["encrypted_key"],
            testcase["address"],
            scrypt_parameters=scrypt.ScryptParameters.from_json(testcase["scrypt"]),
        )
        unlocked = await acc.unlock_async(testcase["password"])
        self.assertFalse(unlocked.is_locked)
        self.assertEqual(testcase["address"], unlocked.address)
