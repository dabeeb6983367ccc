"""
Transaction execution for custodial Amadeus wallets.

Usage:
    from amabot.core.execution import TransactionExecutor

    executor = TransactionExecutor(protocol, oracle, cipher, system_wallet, fee)
    result = await executor.execute_batch(account, recipient, "10")
"""

from .executor import (
    BatchExecutionError,
    ExecutionError,
    InsufficientBalanceError,
    PartialBatchError,
    PaymentError,
    TransactionExecutor,
)
from .models import (
    BatchResult,
    ChargeResult,
    CreatedTransaction,
    SignedTransaction,
    TransactionLeg,
    TransferResult,
    TransferSpec,
)

__all__ = [
    "BatchExecutionError",
    "ExecutionError",
    "InsufficientBalanceError",
    "PartialBatchError",
    "PaymentError",
    "TransactionExecutor",
    "BatchResult",
    "ChargeResult",
    "CreatedTransaction",
    "SignedTransaction",
    "TransactionLeg",
    "TransferResult",
    "TransferSpec",
]
