"""
Accounts, their key material and the WIF and NEP-2 key formats.
"""
from __future__ import annotations
import asyncio
import hashlib
import unicodedata
from typing import Optional
import base58  # type: ignore
from Crypto.Cipher import AES  # type: ignore
from jsonschema import validate  # type: ignore
from neoviper import errors, settings, vm, wallet_logger as logger
from neoviper.contracts import utils as contractutils
from neoviper.core import types, cryptography
from neoviper.network.payloads import transaction, verification
from neoviper.wallet import utils, scrypt_parameters as scrypt
from neoviper.wallet.types import NeoAddress

# both constants below are used to encrypt/decrypt a private key to/from a nep2 key
NEP_HEADER = bytes([0x01, 0x42])
NEP_FLAG = bytes([0xE0])
# both constants are used when trying to decrypt a private key from a wif
WIF_PREFIX = bytes([0x80])
WIF_SUFFIX = bytes([0x01])
PRIVATE_KEY_LENGTH = 32


def _xor_bytes(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b, strict=True))


def _address_hash(address: NeoAddress) -> bytes:
    # NEP2 checksum: hash the address twice and get the first 4 bytes
    return hashlib.sha256(hashlib.sha256(address.encode("utf-8")).digest()).digest()[:4]


def _derive(passphrase: str, salt: bytes, params: scrypt.ScryptParameters) -> tuple[bytes, bytes]:
    pwd_normalized = bytes(unicodedata.normalize("NFC", passphrase), "utf-8")
    derived = hashlib.scrypt(
        password=pwd_normalized,
        salt=salt,
        n=params.n,
        r=params.r,
        p=params.p,
        dklen=64,
        maxmem=256 * params.r * (params.n + params.p + 2),
    )
    return derived[:32], derived[32:]


def _private_key_to_address(private_key: bytes, address_version: Optional[int] = None) -> NeoAddress:
    key_pair = cryptography.KeyPair(private_key)
    script_hash = contractutils.public_key_to_script_hash(key_pair.public_key)
    return utils.script_hash_to_address(script_hash, address_version)


def private_key_to_nep2(
    private_key: bytes,
    passphrase: str,
    scrypt_parameters: Optional[scrypt.ScryptParameters] = None,
    address_version: Optional[int] = None,
) -> str:
    """
    Encrypt a private key into a nep2 key.

    Args:
        private_key: the key that will be encrypted.
        passphrase: the password to encrypt the nep2 key.
        scrypt_parameters: key derivation parameters. Defaults to ``n=16384, r=8, p=8``.
        address_version: the address version used for the address hash.

    Raises:
        InvalidInput: if the private key is invalid or the scrypt parameters are too weak outside of test mode.

    Returns:
        the encrypted nep2 key.
    """
    if scrypt_parameters is None:
        scrypt_parameters = scrypt.ScryptParameters()
    scrypt_parameters.ensure_encryption_allowed()

    checksum = _address_hash(_private_key_to_address(private_key, address_version))
    derived1, derived2 = _derive(passphrase, checksum, scrypt_parameters)

    cipher = AES.new(derived2, AES.MODE_ECB)
    encrypted = cipher.encrypt(_xor_bytes(bytes(private_key), derived1))

    nep2 = NEP_HEADER + NEP_FLAG + checksum + encrypted
    return base58.b58encode_check(nep2).decode("utf-8")


def private_key_from_nep2(
    nep2_key: str,
    passphrase: str,
    scrypt_parameters: Optional[scrypt.ScryptParameters] = None,
    address_version: Optional[int] = None,
) -> bytes:
    """
    Decrypt a nep2 key into a private key.

    Args:
        nep2_key: the key that will be decrypted.
        passphrase: the password to decrypt the nep2 key.
        scrypt_parameters: the key derivation parameters the key was encrypted with.
        address_version: the address version used for the address hash.

    Raises:
        ValueError: if the length of the nep2_key is not valid.
        ValueError: if it's not possible to decode the nep2_key.
        ValueError: if the passphrase is incorrect or the version of the account is not valid.

    Returns:
        the private key.
    """
    if scrypt_parameters is None:
        scrypt_parameters = scrypt.ScryptParameters()

    if len(nep2_key) != 58:
        raise ValueError(f"Please provide a nep2_key with a length of 58 bytes (LEN: {len(nep2_key)})")

    try:
        decoded_key = base58.b58decode_check(nep2_key)
    except ValueError:
        raise ValueError("Base58decode failure of nep2 key") from None

    if len(decoded_key) != 39 or decoded_key[:2] != NEP_HEADER or decoded_key[2:3] != NEP_FLAG:
        raise ValueError("Invalid nep2 key header")

    address_hash_offset = len(NEP_HEADER) + len(NEP_FLAG)
    address_checksum = decoded_key[address_hash_offset : address_hash_offset + 4]
    encrypted = decoded_key[-32:]

    derived1, derived2 = _derive(passphrase, address_checksum, scrypt_parameters)
    cipher = AES.new(derived2, AES.MODE_ECB)
    private_key = _xor_bytes(cipher.decrypt(encrypted), derived1)

    # If the address hashes don't match, the password was wrong.
    try:
        address = _private_key_to_address(private_key, address_version)
    except errors.InvalidInput:
        address = ""
    if _address_hash(address) != address_checksum:
        version = settings.settings.network.account_version if address_version is None else address_version
        raise ValueError(f"Wrong passphrase or key was encrypted with an address version that is not {version}")
    return private_key


def private_key_to_wif(private_key: bytes) -> str:
    """
    Encode a private key in wallet import format.
    """
    if len(private_key) != PRIVATE_KEY_LENGTH:
        raise errors.InvalidInput(f"Private key must be {PRIVATE_KEY_LENGTH} bytes, got {len(private_key)}")
    return base58.b58encode_check(WIF_PREFIX + bytes(private_key) + WIF_SUFFIX).decode("utf-8")


def private_key_from_wif(wif: str) -> bytes:
    """
    Decode a private key from a wif.

    Raises:
        InvalidInput: if the wif is not valid.
    """
    try:
        decoded_key: bytes = base58.b58decode_check(wif)
    except ValueError:
        raise errors.InvalidInput("Base58decode failure of wif") from None

    if len(decoded_key) != len(WIF_PREFIX) + PRIVATE_KEY_LENGTH + len(WIF_SUFFIX):
        raise errors.InvalidInput(
            f"The decoded wif length should be "
            f"{len(WIF_PREFIX) + PRIVATE_KEY_LENGTH + len(WIF_SUFFIX)}, while the given wif "
            f"length is {len(decoded_key)}"
        )
    elif decoded_key[:1] != WIF_PREFIX:
        raise errors.InvalidInput(f"The decoded wif first byte should be {WIF_PREFIX.hex()}")
    elif decoded_key[-1:] != WIF_SUFFIX:
        raise errors.InvalidInput(f"The decoded wif last byte should be {WIF_SUFFIX.hex()}")
    return decoded_key[1:33]


class MultiSigContext:
    """
    Collects signatures for an m-out-of-n multi-signature account.

    Collect signatures from the participating accounts with :meth:`Account.sign_multisig` and turn them into a
    witness once `signing_threshold` signatures are present.
    """

    def __init__(self, verification_script: bytes):
        valid, threshold, public_keys = contractutils.parse_as_multisig_contract(verification_script)
        if not valid:
            raise ValueError("Invalid multi-signature verification script")
        self.verification_script = verification_script
        #: number of signatures needed
        self.signing_threshold = threshold
        #: keys allowed to sign, in script order
        self.expected_public_keys: list[cryptography.ECPoint] = public_keys
        #: completed pairs.
        self.signature_pairs: dict[cryptography.ECPoint, bytes] = {}

    @classmethod
    def from_public_keys(cls, m: int, public_keys: list[cryptography.ECPoint]) -> MultiSigContext:
        return cls(contractutils.create_multisig_redeemscript(m, public_keys))

    @property
    def script_hash(self) -> types.UInt160:
        return verification.Witness(b"", self.verification_script).script_hash()

    @property
    def is_complete(self) -> bool:
        return len(self.signature_pairs) >= self.signing_threshold

    def signing_status(self) -> dict[cryptography.ECPoint, bool]:
        return {key: key in self.signature_pairs for key in self.expected_public_keys}

    def add_signature(self, public_key: cryptography.ECPoint, signature: bytes) -> None:
        if public_key not in self.expected_public_keys:
            raise ValueError("Public key is not in the required key list for this signing context")
        self.signature_pairs[public_key] = signature

    def to_witness(self) -> verification.Witness:
        """
        Build the witness. Signatures are pushed in the order of their public keys in the verification script.

        Raises:
            ValueError: if fewer than `signing_threshold` signatures were collected.
        """
        if not self.is_complete:
            raise ValueError(
                f"Not enough signatures. Have {len(self.signature_pairs)}, need {self.signing_threshold}"
            )
        sb = vm.ScriptBuilder()
        signed = [key for key in self.expected_public_keys if key in self.signature_pairs]
        for key in signed[: self.signing_threshold]:
            sb.push_data(self.signature_pairs[key])
        return verification.Witness(sb.to_array(), self.verification_script)


class Account:
    """
    An address with optional key material. Unlocked, locked (NEP-2 encrypted) or watch-only.

    An account is in exactly one of three states:

    * unlocked - holds a :class:`~neoviper.core.cryptography.KeyPair`.
    * locked - holds a NEP-2 encrypted key. A password is needed to sign.
    * watch only - holds only an address.
    """

    _json_schema = {
        "type": "object",
        "properties": {
            "address": {"type": "string"},
            "label": {"type": ["string", "null"]},
            "isDefault": {"type": "boolean"},
            "key": {"type": ["string", "null"]},
            "publicKey": {"type": ["string", "null"]},
            "scrypt": {"type": "object"},
        },
        "required": ["address", "label", "isDefault", "key"],
    }

    def __init__(
        self,
        *,
        key_pair: Optional[cryptography.KeyPair] = None,
        encrypted_key: Optional[str] = None,
        address: Optional[NeoAddress] = None,
        public_key: Optional[cryptography.ECPoint] = None,
        label: Optional[str] = None,
        is_default: bool = False,
        scrypt_parameters: Optional[scrypt.ScryptParameters] = None,
    ):
        if key_pair is not None and encrypted_key is not None:
            raise errors.InvalidInput("An account holds either a key pair or an encrypted key, not both")

        self._key_pair = key_pair
        #: NEP-2 encrypted private key, only set for locked accounts.
        self.encrypted_key = encrypted_key
        self.label = label
        self.is_default = is_default
        self.scrypt_parameters = scrypt_parameters if scrypt_parameters else scrypt.ScryptParameters()

        if key_pair is not None:
            self.public_key: Optional[cryptography.ECPoint] = key_pair.public_key
            self.address: NeoAddress = utils.script_hash_to_address(
                contractutils.public_key_to_script_hash(key_pair.public_key)
            )
        else:
            if address is None:
                raise errors.InvalidInput("An address is required for locked and watch only accounts")
            utils.validate_address(address)
            self.public_key = public_key
            self.address = address

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return False
        return self.address == other.address

    def __repr__(self):
        return f"<{self.__class__.__name__} at {hex(id(self))}> {self.address} ({self.state})"

    @property
    def state(self) -> str:
        if self._key_pair is not None:
            return "unlocked"
        return "locked" if self.encrypted_key is not None else "watch-only"

    @property
    def script_hash(self) -> types.UInt160:
        return utils.address_to_script_hash(self.address)

    @property
    def is_locked(self) -> bool:
        return self.encrypted_key is not None

    @property
    def is_watchonly(self) -> bool:
        """
        Indicates if the account has no key material.
        """
        return self._key_pair is None and self.encrypted_key is None

    @property
    def verification_script(self) -> bytes:
        if self.public_key is None:
            raise ValueError("Public key unknown for this account")
        return contractutils.create_signature_redeemscript(self.public_key)

    @classmethod
    def create_new(cls, label: Optional[str] = None) -> Account:
        """
        Instantiate and returns a new account with a freshly generated key.
        """
        return cls(key_pair=cryptography.KeyPair.generate(), label=label)

    @classmethod
    def from_private_key(cls, private_key: bytes, label: Optional[str] = None) -> Account:
        """
        Instantiate an unlocked account from a raw 32 byte private key.

        Raises:
            InvalidInput: if the key is not a valid secp256r1 scalar.
        """
        return cls(key_pair=cryptography.KeyPair(private_key), label=label)

    @classmethod
    def from_wif(cls, wif: str, label: Optional[str] = None) -> Account:
        """
        Instantiate an unlocked account from a private key in wallet import format.
        """
        return cls.from_private_key(private_key_from_wif(wif), label)

    @classmethod
    def from_encrypted_key(
        cls,
        encrypted_key: str,
        address: NeoAddress,
        label: Optional[str] = None,
        is_default: bool = False,
        public_key: Optional[cryptography.ECPoint] = None,
        scrypt_parameters: Optional[scrypt.ScryptParameters] = None,
    ) -> Account:
        """
        Instantiate a locked account from a NEP-2 key. The key is not decrypted until it is needed.
        """
        return cls(
            encrypted_key=encrypted_key,
            address=address,
            public_key=public_key,
            label=label,
            is_default=is_default,
            scrypt_parameters=scrypt_parameters,
        )

    @classmethod
    def watch_only(cls, script_hash: types.UInt160, label: Optional[str] = None) -> Account:
        """
        Instantiate an account without key material. Watch only accounts cannot sign.
        """
        return cls(address=utils.script_hash_to_address(script_hash), label=label)

    def lock(self, password: str, scrypt_parameters: Optional[scrypt.ScryptParameters] = None) -> Account:
        """
        Return a locked copy of this account with its private key NEP-2 encrypted using `password`.
        """
        if self._key_pair is None:
            raise ValueError("Only unlocked accounts can be locked")
        params = scrypt_parameters if scrypt_parameters else self.scrypt_parameters
        nep2 = private_key_to_nep2(self._key_pair.private_key, password, params)
        return Account.from_encrypted_key(nep2, self.address, self.label, self.is_default, self.public_key, params)

    def unlock(self, password: str) -> Account:
        """
        Return an unlocked copy of this account. Returns itself if already unlocked.

        Raises:
            ValueError: if the account is watch only or the password is wrong.
        """
        if self._key_pair is not None:
            return self
        if self.encrypted_key is None:
            raise ValueError("Cannot unlock a watch only account")
        private_key = private_key_from_nep2(self.encrypted_key, password, self.scrypt_parameters)
        account = Account(
            key_pair=cryptography.KeyPair(private_key),
            label=self.label,
            is_default=self.is_default,
            scrypt_parameters=self.scrypt_parameters,
        )
        if account.address != self.address:
            raise ValueError("Decrypted key does not match the account address")
        logger.debug(f"Unlocked account {self.address}")
        return account

    async def unlock_async(self, password: str) -> Account:
        """
        Like :meth:`unlock` but runs the key derivation in the default executor.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.unlock, password)

    def _private_key(self, password: Optional[str]) -> bytes:
        if self._key_pair is not None:
            return self._key_pair.private_key
        if self.encrypted_key is None:
            raise ValueError("Cannot sign using a watch only account")
        if password is None:
            raise ValueError("A password is required to sign with a locked account")
        return private_key_from_nep2(self.encrypted_key, password, self.scrypt_parameters)

    def sign(self, data: bytes, password: Optional[str] = None) -> bytes:
        """
        ECDSA secp256r1 signature over `data`.

        Args:
            data: data to be signed.
            password: the password to decrypt the private key. Only needed for locked accounts.

        Returns:
            signature of the signed data.
        """
        return cryptography.sign(data, self._private_key(password))

    def sign_tx(
        self, tx: transaction.Transaction, password: Optional[str] = None, magic: Optional[int] = None
    ) -> verification.Witness:
        """
        Create the single signature witness for `tx`.

        Args:
            tx: transaction to sign.
            password: the password to decrypt the private key, if the account is locked.
            magic: the network magic.
        """
        private_key = self._private_key(password)
        if self.public_key is None:
            self.public_key = cryptography.KeyPair(private_key).public_key
        signature = cryptography.sign(tx.get_hash_data(magic), private_key)
        invocation_script = vm.ScriptBuilder().push_data(signature).to_array()
        return verification.Witness(invocation_script, self.verification_script)

    def sign_multisig(
        self,
        tx: transaction.Transaction,
        context: MultiSigContext,
        password: Optional[str] = None,
        magic: Optional[int] = None,
    ) -> Optional[verification.Witness]:
        """
        Add the signature of this account to a multi-signature signing context.

        Returns:
            the witness once the context holds enough signatures, otherwise ``None``.
        """
        private_key = self._private_key(password)
        public_key = cryptography.KeyPair(private_key).public_key
        context.add_signature(public_key, cryptography.sign(tx.get_hash_data(magic), private_key))
        return context.to_witness() if context.is_complete else None

    def to_json(self) -> dict:
        """
        Raises:
            ValueError: for unlocked accounts. Lock the account first to avoid exporting a plain private key.
        """
        if self._key_pair is not None:
            raise ValueError("Cannot export an unlocked account, lock it first")
        return {
            "address": self.address,
            "label": self.label,
            "isDefault": self.is_default,
            "key": self.encrypted_key,
            "publicKey": str(self.public_key) if self.public_key else None,
            "scrypt": self.scrypt_parameters.to_json(),
        }

    @classmethod
    def from_json(cls, json: dict) -> Account:
        """
        Restore an account from its JSON form. The key stays encrypted.

        Raises:
            jsonschema.ValidationError: if the data does not match the schema.
        """
        validate(json, schema=cls._json_schema)
        public_key = json.get("publicKey")
        return cls(
            encrypted_key=json["key"],
            address=json["address"],
            public_key=cryptography.ECPoint.from_string(public_key) if public_key else None,
            label=json["label"],
            is_default=json["isDefault"],
            scrypt_parameters=scrypt.ScryptParameters.from_json(json["scrypt"]) if "scrypt" in json else None,
        )
