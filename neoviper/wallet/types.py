from typing import TypeAlias

# A NeoAddress is the base58check encoding of (address version + script hash).
NeoAddress: TypeAlias = str
