from __future__ import annotations
from jsonschema import validate  # type: ignore
from neoviper import errors
from neoviper.core import interfaces

#: Lowest scrypt cost parameter accepted for encryption outside of test mode
MIN_SECURE_N = 2**10


class ScryptParameters(interfaces.IJson):
    """
    Scrypt key derivation parameters used for NEP-2 encryption.

    Encrypting with ``n < 1024`` is refused unless `test_mode` is set. Decrypting always uses whatever was recorded
    with the key.
    """

    json_schema = {
        "type": "object",
        "properties": {
            "n": {"type": "integer", "minimum": 2},
            "r": {"type": "integer", "minimum": 1},
            "p": {"type": "integer", "minimum": 1},
        },
        "required": ["n", "r", "p"],
    }

    def __init__(self, n: int = 16384, r: int = 8, p: int = 8, test_mode: bool = False):
        if n < 2 or n & (n - 1) != 0:
            raise errors.InvalidInput(f"Scrypt parameter n must be a power of 2 larger than 1, got {n}")
        if r < 1 or p < 1:
            raise errors.InvalidInput("Scrypt parameters r and p must be positive")
        self.n = n
        self.r = r
        self.p = p
        self.test_mode = test_mode

    def __eq__(self, other):
        if type(other) is not type(self):
            return False
        return (self.n, self.r, self.p) == (other.n, other.r, other.p)

    def __repr__(self):
        return f"<{self.__class__.__name__} n={self.n} r={self.r} p={self.p}>"

    @property
    def is_secure(self) -> bool:
        return self.n >= MIN_SECURE_N

    def ensure_encryption_allowed(self) -> None:
        """
        Raises:
            InvalidInput: if `n` is below 1024 and the parameters are not in test mode.
        """
        if not self.is_secure and not self.test_mode:
            raise errors.InvalidInput(
                f"Refusing to encrypt with scrypt n={self.n} (< {MIN_SECURE_N}). Use test_mode=True for tests"
            )

    def to_json(self) -> dict:
        return {"n": self.n, "r": self.r, "p": self.p}

    @classmethod
    def from_json(cls, json: dict) -> ScryptParameters:
        """
        Parse object out of JSON data.

        Raises:
            jsonschema.ValidationError: if the data does not match the schema.
        """
        validate(json, schema=cls.json_schema)
        return cls(n=json["n"], r=json["r"], p=json["p"])
