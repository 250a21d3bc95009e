from .uint import UInt160, UInt256

__all__ = ["UInt160", "UInt256"]
