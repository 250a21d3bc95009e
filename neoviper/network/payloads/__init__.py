from .verification import (
    Witness,
    WitnessScope,
    Signer,
    WitnessRule,
    WitnessRuleAction,
    WitnessCondition,
    WitnessConditionType,
    ConditionAnd,
    ConditionBool,
    ConditionNot,
    ConditionOr,
    ConditionScriptHash,
    ConditionGroup,
    ConditionCalledByEntry,
    ConditionCalledByContract,
    ConditionCalledByGroup,
)
from .transaction import Transaction, TransactionAttribute, TransactionAttributeType, HighPriorityAttribute

__all__ = [
    "Witness",
    "WitnessScope",
    "Signer",
    "WitnessRule",
    "WitnessRuleAction",
    "WitnessCondition",
    "WitnessConditionType",
    "ConditionAnd",
    "ConditionBool",
    "ConditionNot",
    "ConditionOr",
    "ConditionScriptHash",
    "ConditionGroup",
    "ConditionCalledByEntry",
    "ConditionCalledByContract",
    "ConditionCalledByGroup",
    "Transaction",
    "TransactionAttribute",
    "TransactionAttributeType",
    "HighPriorityAttribute",
]
