from __future__ import annotations
from enum import IntEnum


class Size(IntEnum):
    """
    Explicit bytes of memory consumed
    """

    uint8 = 1
    uint16 = 2
    uint32 = 4
    uint64 = 8
    uint160 = 20
    uint256 = 32
