from .callflags import CallFlags
from .parameter import ContractParameter, ContractParameterType

__all__ = ["CallFlags", "ContractParameter", "ContractParameterType"]
