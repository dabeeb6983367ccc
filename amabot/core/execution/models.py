"""
Transaction execution models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class TransactionLeg(str, Enum):
    """Role of a transaction inside a fee + transfer batch."""
    FEE = "fee"
    TRANSFER = "transfer"


@dataclass
class TransferSpec:
    """A single Coin.transfer to build."""
    leg: TransactionLeg
    recipient: str
    amount: Decimal
    amount_atomic: int

    def to_create_arguments(self, signer: str, symbol: str) -> Dict[str, Any]:
        return {
            "signer": signer,
            "contract": "Coin",
            "function": "transfer",
            "args": [{"b58": self.recipient}, str(self.amount_atomic), symbol],
        }


@dataclass
class CreatedTransaction:
    """An unsigned transaction returned by ``create_transaction``."""
    leg: TransactionLeg
    signing_payload: str
    blob: str


@dataclass
class SignedTransaction:
    leg: TransactionLeg
    blob: str
    signature: str = field(repr=False)


@dataclass
class BatchResult:
    """Both legs of a fee + transfer batch reached the chain."""
    fee_tx_hash: str
    transfer_tx_hash: str
    fee: Decimal
    amount: Decimal
    recipient: str
    sender: str
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_cost(self) -> Decimal:
        return self.fee + self.amount


@dataclass
class ChargeResult:
    """A single fee payment to the system wallet."""
    tx_hash: str
    amount: Decimal


@dataclass
class TransferResult:
    """A single transfer with no fee attached."""
    tx_hash: str
    sender: str
    recipient: str
    amount: Decimal
